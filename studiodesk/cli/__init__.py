"""StudioDesk command-line interface."""

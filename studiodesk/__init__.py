"""
StudioDesk: Personal Productivity Backend

A small JSON API combining:
- Task management with outbound webhook notifications
- Practice-protocol tracking with progress derived from logged sessions

Distribution: Available as both Python library and CLI
"""

__version__ = "0.1.0"
__all__ = [
    "__version__",
]

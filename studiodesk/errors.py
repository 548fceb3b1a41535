"""
StudioDesk Error Hierarchy

Base error and specific error types for all StudioDesk components.
Errors carry metadata for structured logging.
"""

from typing import Any, Dict, Optional


class StudioDeskError(RuntimeError):
    """
    Base error for StudioDesk components. Carries metadata for structured logging.

    Attributes:
        category: Error category for classification (e.g., "validation", "storage")
        retryable: Whether the operation can be retried
        metadata: Additional context for logging and debugging
    """

    category: str = "runtime"
    retryable: bool = True

    def __init__(
        self,
        message: str,
        *,
        metadata: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(message)
        self.metadata = metadata or {}
        if retryable is not None:
            self.retryable = retryable


class ValidationError(StudioDeskError, ValueError):
    """Raised when input is missing or out of range."""

    category = "validation"
    retryable = False


class ConfigError(StudioDeskError):
    """Raised when configuration is invalid or missing."""

    category = "config"
    retryable = False


class NotFoundError(StudioDeskError, KeyError):
    """Raised when a task or protocol id is unknown."""

    category = "not_found"
    retryable = False

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message.
        return str(self.args[0]) if self.args else ""


class PersistenceError(StudioDeskError):
    """Raised when the JSON store cannot be written."""

    category = "storage"


class DispatchError(StudioDeskError):
    """
    Raised for a single failed webhook delivery attempt.

    Attributes:
        status_code: HTTP status of the response, if one was received
    """

    category = "webhook"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None,
        retryable: Optional[bool] = None,
    ) -> None:
        super().__init__(message, metadata=metadata, retryable=retryable)
        self.status_code = status_code

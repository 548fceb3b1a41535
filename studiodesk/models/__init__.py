"""
StudioDesk Models

Typed domain objects shared by storage, services and the API.
"""

from studiodesk.models.domain import (
    # Status Constants
    ProtocolStatus,
    DesignStatus,
    SessionKind,
    TaskType,
    TaskCategory,
    TaskStatus,
    TaskPriority,
    WebhookEvent,
    # Core Models
    Protocol,
    ProtocolSession,
    ProtocolSummary,
    Task,
    TaskAttachment,
    clamp_progress,
)

__all__ = [
    "ProtocolStatus",
    "DesignStatus",
    "SessionKind",
    "TaskType",
    "TaskCategory",
    "TaskStatus",
    "TaskPriority",
    "WebhookEvent",
    "Protocol",
    "ProtocolSession",
    "ProtocolSummary",
    "Task",
    "TaskAttachment",
    "clamp_progress",
]

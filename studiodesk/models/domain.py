"""
StudioDesk Domain Models

Data classes representing the core entities in the StudioDesk system.
These are used for data transfer between storage and services; each
knows how to round-trip itself through the JSON record layout.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


# Status Constants

class ProtocolStatus:
    """Practice status of a protocol."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    ALL = (NOT_STARTED, IN_PROGRESS, COMPLETED)


class DesignStatus:
    """Administrative design status of a protocol."""
    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    APPROVED = "approved"

    ALL = (DRAFT, IN_PROGRESS, APPROVED)


class SessionKind:
    SCORED = "scored"
    BASIC = "basic"


class TaskType:
    WRITING = "WRITING"
    TRANSLATION = "TRANSLATION"
    LEARNING = "LEARNING"
    TECH = "TECH"

    ALL = (WRITING, TRANSLATION, LEARNING, TECH)


class TaskCategory:
    WORK = "WORK"
    PERSONAL = "PERSONAL"
    STUDY = "STUDY"
    PROJECT = "PROJECT"
    MEETING = "MEETING"
    OTHER = "OTHER"

    ALL = (WORK, PERSONAL, STUDY, PROJECT, MEETING, OTHER)


class TaskStatus:
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"

    ALL = (OPEN, IN_PROGRESS, DONE)


class TaskPriority:
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"

    ALL = (LOW, NORMAL, HIGH, URGENT)


class WebhookEvent:
    """Outbound webhook event names."""
    TASK_CREATED = "task_created"
    TASK_UPDATED = "task_updated"
    TASK_DELETED = "task_deleted"
    TASK_STATUS_CHANGED = "task_status_changed"

    ALL = (TASK_CREATED, TASK_UPDATED, TASK_DELETED, TASK_STATUS_CHANGED)


def clamp_progress(value: float) -> float:
    """Clamp a progress value into [0, 1]."""
    return max(0.0, min(1.0, float(value)))


# Protocols

@dataclass
class Protocol:
    """
    A named practice routine whose status and progress are derived from
    its session log.
    """
    id: int
    name: str
    status: str = ProtocolStatus.NOT_STARTED
    progress: float = 0.0
    last_session: Optional[str] = None
    notes: str = ""
    next_focus: str = ""
    # Administration
    design_status: str = DesignStatus.DRAFT
    is_active_for_practice: bool = True
    admin_notes: str = ""

    def __post_init__(self) -> None:
        self.progress = clamp_progress(self.progress)
        if self.status == ProtocolStatus.COMPLETED:
            self.progress = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "progress": self.progress,
            "last_session": self.last_session,
            "notes": self.notes,
            "next_focus": self.next_focus,
            "design_status": self.design_status,
            "is_active_for_practice": self.is_active_for_practice,
            "admin_notes": self.admin_notes,
        }

    def meta(self) -> Dict[str, Any]:
        """The administrative view shown on the protocols admin page."""
        return {
            "id": self.id,
            "name": self.name,
            "design_status": self.design_status,
            "is_active_for_practice": self.is_active_for_practice,
            "admin_notes": self.admin_notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Protocol":
        return cls(
            id=int(data["id"]),
            name=str(data.get("name") or ""),
            status=data.get("status") or ProtocolStatus.NOT_STARTED,
            progress=float(data.get("progress") or 0.0),
            last_session=data.get("last_session"),
            notes=data.get("notes") or "",
            next_focus=data.get("next_focus") or "",
            design_status=data.get("design_status") or DesignStatus.DRAFT,
            is_active_for_practice=bool(data.get("is_active_for_practice", True)),
            admin_notes=data.get("admin_notes") or "",
        )


@dataclass
class ProtocolSession:
    """One logged practice occurrence. Immutable once appended."""
    id: str
    protocol_id: int
    date: str
    piece_title: str
    composer: str = ""
    duration_minutes: int = 0
    subjective_progress_score: Optional[int] = None
    notes: str = ""
    next_time_hint: str = ""
    kind: str = SessionKind.SCORED
    status_after_session: Optional[str] = None

    @property
    def is_scored(self) -> bool:
        return self.subjective_progress_score is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "protocol_id": self.protocol_id,
            "date": self.date,
            "piece_title": self.piece_title,
            "composer": self.composer,
            "duration_minutes": self.duration_minutes,
            "subjective_progress_score": self.subjective_progress_score,
            "notes": self.notes,
            "next_time_hint": self.next_time_hint,
            "kind": self.kind,
            "status_after_session": self.status_after_session,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProtocolSession":
        score = data.get("subjective_progress_score")
        return cls(
            id=str(data["id"]),
            protocol_id=int(data["protocol_id"]),
            date=str(data.get("date") or ""),
            piece_title=data.get("piece_title") or "",
            composer=data.get("composer") or "",
            duration_minutes=int(data.get("duration_minutes") or 0),
            subjective_progress_score=int(score) if score is not None else None,
            notes=data.get("notes") or "",
            next_time_hint=data.get("next_time_hint") or "",
            # Records written before the basic path existed carry no kind.
            kind=data.get("kind") or (SessionKind.SCORED if score is not None else SessionKind.BASIC),
            status_after_session=data.get("status_after_session"),
        )


@dataclass
class ProtocolSummary:
    total: int
    not_started: int
    in_progress: int
    completed: int
    average_progress: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "not_started": self.not_started,
            "in_progress": self.in_progress,
            "completed": self.completed,
            "average_progress": self.average_progress,
        }


# Tasks

@dataclass
class TaskAttachment:
    id: str
    name: str
    url: str
    type: str
    size: int
    uploaded_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "type": self.type,
            "size": self.size,
            "uploadedAt": self.uploaded_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskAttachment":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            url=str(data.get("url") or ""),
            type=str(data.get("type") or ""),
            size=int(data.get("size") or 0),
            uploaded_at=str(data.get("uploadedAt") or data.get("uploaded_at") or ""),
        )


@dataclass
class Task:
    """
    A unit of work. Serialized with camelCase keys (dueDate, createdAt,
    updatedAt) since that is the shape clients and webhook receivers see.
    """
    id: str
    title: str
    type: str
    status: str = TaskStatus.OPEN
    priority: str = TaskPriority.NORMAL
    description: Optional[str] = None
    category: Optional[str] = None
    due_date: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    attachments: List[TaskAttachment] = field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "category": self.category,
            "status": self.status,
            "priority": self.priority,
            "dueDate": self.due_date,
            "tags": list(self.tags),
            "attachments": [a.to_dict() for a in self.attachments],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            type=data.get("type") or TaskType.TECH,
            status=data.get("status") or TaskStatus.OPEN,
            priority=data.get("priority") or TaskPriority.NORMAL,
            description=data.get("description"),
            category=data.get("category"),
            due_date=data.get("dueDate"),
            tags=list(data.get("tags") or []),
            attachments=[TaskAttachment.from_dict(a) for a in data.get("attachments") or []],
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

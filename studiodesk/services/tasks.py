"""
StudioDesk Task Lifecycle

CRUD over an injected task store. Each mutation picks at most one webhook
event and hands it to the dispatcher without waiting for delivery.
"""

import secrets
import string
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from studiodesk.db.database import TaskStore
from studiodesk.errors import ValidationError
from studiodesk.models.domain import (
    Task,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    TaskType,
    WebhookEvent,
)
from studiodesk.services.base import Service, ServiceContext
from studiodesk.services.webhooks import WebhookDispatcher

_ID_ALPHABET = string.ascii_lowercase + string.digits

# Patch keys (wire name -> Task attribute)
_PATCHABLE_FIELDS = {
    "title": "title",
    "description": "description",
    "type": "type",
    "category": "category",
    "status": "status",
    "priority": "priority",
    "dueDate": "due_date",
    "tags": "tags",
}
_REQUIRED_ON_TASK = {"title", "type", "status", "priority", "tags"}


def generate_task_id() -> str:
    """task_<epoch ms>_<7 random base36 chars>"""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(7))
    return f"task_{int(time.time() * 1000)}_{suffix}"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _choice(value: Any, allowed: tuple, field: str) -> str:
    if value not in allowed:
        raise ValidationError(
            f"{field} must be one of {', '.join(allowed)}",
            metadata={"field": field, "value": value},
        )
    return value


def _text(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", metadata={"field": field})
    return value


def _tags(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple, set)) or not all(isinstance(t, str) for t in value):
        raise ValidationError("tags must be a list of strings", metadata={"field": "tags"})
    # Set semantics, first occurrence wins the position.
    return list(dict.fromkeys(t.strip() for t in value if t.strip()))


def _validate_field(key: str, value: Any) -> Any:
    if key == "title":
        value = _text(value, "title").strip()
        if not value:
            raise ValidationError("title must not be empty", metadata={"field": "title"})
        return value
    if key == "type":
        return _choice(value, TaskType.ALL, "type")
    if key == "status":
        return _choice(value, TaskStatus.ALL, "status")
    if key == "priority":
        return _choice(value, TaskPriority.ALL, "priority")
    if key == "category":
        return None if value is None else _choice(value, TaskCategory.ALL, "category")
    if key == "tags":
        return _tags(value)
    # description, dueDate
    return None if value is None else _text(value, key)


class TaskLifecycle(Service):
    """
    Task CRUD with webhook event selection.

    Webhook delivery is submitted to the dispatcher's worker pool; the
    mutation is committed and returned regardless of how delivery goes.
    """

    def __init__(
        self,
        context: ServiceContext,
        store: TaskStore,
        dispatcher: Optional[WebhookDispatcher] = None,
    ) -> None:
        super().__init__(context)
        self.store = store
        self.dispatcher = dispatcher

    def get(self, task_id: str) -> Task:
        return self.store.get(task_id)

    def list(self) -> List[Task]:
        return self.store.list()

    def create(self, data: Mapping[str, Any]) -> Task:
        """
        Create a task. Requires title and type.

        Raises:
            ValidationError: missing title/type or an unknown enum value
        """
        if not data.get("title") or not data.get("type"):
            raise ValidationError(
                "Missing required fields: title and type",
                metadata={"fields": ["title", "type"]},
            )
        fields: Dict[str, Any] = {}
        for key, attr in _PATCHABLE_FIELDS.items():
            value = data.get(key)
            if value is None:
                continue
            fields[attr] = _validate_field(key, value)

        now = utc_now()
        task = Task(
            id=generate_task_id(),
            title=fields.pop("title"),
            type=fields.pop("type"),
            status=fields.pop("status", TaskStatus.OPEN),
            priority=fields.pop("priority", TaskPriority.NORMAL),
            tags=fields.pop("tags", []),
            attachments=[],
            created_at=now,
            updated_at=now,
            **fields,
        )
        self.store.insert(task)
        self.logger.info("task_created", extra=self.log_extra(task_id=task.id, title=task.title))
        self._emit(WebhookEvent.TASK_CREATED, task)
        return task

    def update(self, task_id: str, patch: Mapping[str, Any]) -> Task:
        """
        Merge a patch over an existing task.

        A status change fires task_status_changed; any other change fires
        task_updated; a patch that changes nothing fires nothing.

        Raises:
            NotFoundError: unknown task id
            ValidationError: invalid field value
        """
        original = self.store.get(task_id)

        changes: Dict[str, Any] = {}
        for key, attr in _PATCHABLE_FIELDS.items():
            if key not in patch:
                continue
            value = patch[key]
            if value is None and attr in _REQUIRED_ON_TASK:
                continue
            changes[attr] = _validate_field(key, value)

        updated = replace(original, **changes, updated_at=utc_now())
        self.store.update(updated)

        status_changed = "status" in changes and changes["status"] != original.status
        other_changed = any(
            getattr(updated, attr) != getattr(original, attr)
            for attr in changes
            if attr != "status"
        )

        if status_changed:
            self.logger.info(
                "task_status_changed",
                extra=self.log_extra(task_id=task_id, old_status=original.status, new_status=updated.status),
            )
            self._emit(WebhookEvent.TASK_STATUS_CHANGED, updated)
        elif other_changed:
            self.logger.info("task_updated", extra=self.log_extra(task_id=task_id, fields=sorted(changes)))
            self._emit(WebhookEvent.TASK_UPDATED, updated)
        else:
            self.logger.debug("task_update_noop", extra=self.log_extra(task_id=task_id))
        return updated

    def delete(self, task_id: str) -> Task:
        """
        Remove a task and announce the pre-deletion snapshot.

        Raises:
            NotFoundError: unknown task id (no event fires)
        """
        task = self.store.delete(task_id)
        self.logger.info("task_deleted", extra=self.log_extra(task_id=task_id))
        self._emit(WebhookEvent.TASK_DELETED, task)
        return task

    def _emit(self, event: str, task: Task) -> None:
        if self.dispatcher is None:
            return
        helpers = {
            WebhookEvent.TASK_CREATED: self.dispatcher.task_created,
            WebhookEvent.TASK_UPDATED: self.dispatcher.task_updated,
            WebhookEvent.TASK_DELETED: self.dispatcher.task_deleted,
            WebhookEvent.TASK_STATUS_CHANGED: self.dispatcher.task_status_changed,
        }
        try:
            helpers[event](task)
        except RuntimeError as exc:
            # Pool already shut down; the mutation stands.
            self.logger.error(
                "webhook_submit_failed",
                extra=self.log_extra(task_id=task.id, event=event, error=str(exc)),
            )

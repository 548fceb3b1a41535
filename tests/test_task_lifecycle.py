"""
Tests for TaskLifecycle: CRUD semantics and webhook event selection.
"""

import json
import re
import threading
from pathlib import Path
from typing import List

import httpx
import pytest

from studiodesk.db.database import InMemoryTaskStore, JsonTaskStore
from studiodesk.errors import NotFoundError, ValidationError
from studiodesk.models.domain import TaskPriority, TaskStatus, WebhookEvent
from studiodesk.services.base import ServiceContext
from studiodesk.services.tasks import TaskLifecycle, generate_task_id
from studiodesk.services.webhooks import WebhookDispatcher

from conftest import RecordingDispatcher


@pytest.fixture
def lifecycle(
    context: ServiceContext, task_store: InMemoryTaskStore, dispatcher: RecordingDispatcher
) -> TaskLifecycle:
    return TaskLifecycle(context, task_store, dispatcher)


def test_generated_ids_follow_format() -> None:
    ids = {generate_task_id() for _ in range(50)}

    assert len(ids) == 50
    for task_id in ids:
        assert re.fullmatch(r"task_\d{13}_[a-z0-9]{7}", task_id)


def test_create_applies_defaults_and_emits(lifecycle: TaskLifecycle, dispatcher: RecordingDispatcher) -> None:
    task = lifecycle.create({"title": "Draft chapter 3", "type": "WRITING"})

    assert task.status == TaskStatus.OPEN
    assert task.priority == TaskPriority.NORMAL
    assert task.tags == []
    assert task.attachments == []
    assert task.created_at == task.updated_at
    assert task.created_at.endswith("Z")
    assert dispatcher.events == [WebhookEvent.TASK_CREATED]
    assert dispatcher.payloads[0]["task"]["id"] == task.id
    assert lifecycle.get(task.id) == task


def test_create_keeps_optional_fields(lifecycle: TaskLifecycle) -> None:
    task = lifecycle.create(
        {
            "title": "Translate preface",
            "type": "TRANSLATION",
            "category": "WORK",
            "priority": "HIGH",
            "dueDate": "2026-11-01",
            "tags": ["fr", "draft", "fr"],
            "description": "Chapters 1-2",
        }
    )

    assert task.category == "WORK"
    assert task.priority == TaskPriority.HIGH
    assert task.due_date == "2026-11-01"
    assert task.tags == ["fr", "draft"]
    assert task.to_dict()["dueDate"] == "2026-11-01"


@pytest.mark.parametrize(
    "data",
    [
        {"type": "TECH"},
        {"title": "No type"},
        {"title": "", "type": "TECH"},
        {"title": "Bad type", "type": "GARDENING"},
        {"title": "Bad status", "type": "TECH", "status": "BLOCKED"},
    ],
)
def test_create_rejects_invalid_input(
    lifecycle: TaskLifecycle, dispatcher: RecordingDispatcher, data: dict
) -> None:
    with pytest.raises(ValidationError):
        lifecycle.create(data)

    assert lifecycle.list() == []
    assert dispatcher.events == []


def test_status_change_emits_status_event_only(
    lifecycle: TaskLifecycle, dispatcher: RecordingDispatcher
) -> None:
    task = lifecycle.create({"title": "Fix build", "type": "TECH"})

    updated = lifecycle.update(task.id, {"status": "IN_PROGRESS", "title": "Fix CI build"})

    assert updated.status == TaskStatus.IN_PROGRESS
    assert updated.title == "Fix CI build"
    assert updated.created_at == task.created_at
    assert dispatcher.events == [WebhookEvent.TASK_CREATED, WebhookEvent.TASK_STATUS_CHANGED]
    assert dispatcher.payloads[-1]["task"]["status"] == "IN_PROGRESS"


def test_other_field_change_emits_task_updated(
    lifecycle: TaskLifecycle, dispatcher: RecordingDispatcher
) -> None:
    task = lifecycle.create({"title": "Read paper", "type": "LEARNING"})

    lifecycle.update(task.id, {"status": "OPEN", "priority": "URGENT"})

    assert dispatcher.events[-1] == WebhookEvent.TASK_UPDATED


def test_noop_update_emits_nothing(lifecycle: TaskLifecycle, dispatcher: RecordingDispatcher) -> None:
    task = lifecycle.create({"title": "Read paper", "type": "LEARNING"})

    lifecycle.update(task.id, {"title": "Read paper", "status": None})

    assert dispatcher.events == [WebhookEvent.TASK_CREATED]


def test_update_can_clear_optional_field(lifecycle: TaskLifecycle) -> None:
    task = lifecycle.create({"title": "Call", "type": "TECH", "dueDate": "2026-10-30"})

    updated = lifecycle.update(task.id, {"dueDate": None})

    assert updated.due_date is None


def test_update_unknown_task(lifecycle: TaskLifecycle, dispatcher: RecordingDispatcher) -> None:
    with pytest.raises(NotFoundError):
        lifecycle.update("task_missing", {"status": "DONE"})
    assert dispatcher.events == []


def test_delete_emits_snapshot(lifecycle: TaskLifecycle, dispatcher: RecordingDispatcher) -> None:
    task = lifecycle.create({"title": "Old task", "type": "TECH"})

    removed = lifecycle.delete(task.id)

    assert removed == task
    assert lifecycle.list() == []
    assert dispatcher.events[-1] == WebhookEvent.TASK_DELETED
    assert dispatcher.payloads[-1]["task"]["title"] == "Old task"
    with pytest.raises(NotFoundError):
        lifecycle.delete(task.id)
    assert dispatcher.events.count(WebhookEvent.TASK_DELETED) == 1


def test_mutations_survive_closed_dispatcher(context: ServiceContext, task_store: InMemoryTaskStore) -> None:
    dispatcher = WebhookDispatcher("http://hooks.test/tasks")
    dispatcher._get_executor().shutdown()
    lifecycle = TaskLifecycle(context, task_store, dispatcher)

    task = lifecycle.create({"title": "Still saved", "type": "TECH"})

    assert lifecycle.get(task.id).title == "Still saved"


def _http_dispatcher(handler) -> WebhookDispatcher:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return WebhookDispatcher("http://hooks.test/tasks", client=client, sleep=lambda seconds: None)


def test_create_returns_before_delivery_completes(context: ServiceContext, task_store: InMemoryTaskStore) -> None:
    started = threading.Event()
    release = threading.Event()

    def handler(request: httpx.Request) -> httpx.Response:
        started.set()
        release.wait(timeout=5)
        return httpx.Response(200)

    dispatcher = _http_dispatcher(handler)
    lifecycle = TaskLifecycle(context, task_store, dispatcher)
    try:
        task = lifecycle.create({"title": "Not blocked", "type": "TECH"})

        assert not release.is_set()
        assert lifecycle.get(task.id).title == "Not blocked"
        assert started.wait(timeout=5)
    finally:
        release.set()
        dispatcher.close()


def test_failing_webhook_never_rolls_back_mutations(
    context: ServiceContext, task_store: InMemoryTaskStore
) -> None:
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(500)

    dispatcher = _http_dispatcher(handler)
    lifecycle = TaskLifecycle(context, task_store, dispatcher)
    try:
        task = lifecycle.create({"title": "Kept", "type": "TECH"})
        updated = lifecycle.update(task.id, {"priority": "HIGH"})
        assert lifecycle.get(task.id) == updated
        lifecycle.delete(task.id)
    finally:
        dispatcher.close()

    assert lifecycle.list() == []
    assert len(requests) == 3 * 3
    events = sorted({json.loads(r.content)["event"] for r in requests})
    assert events == sorted([WebhookEvent.TASK_CREATED, WebhookEvent.TASK_UPDATED, WebhookEvent.TASK_DELETED])


def test_json_store_persists_across_instances(
    context: ServiceContext, tmp_path: Path, dispatcher: RecordingDispatcher
) -> None:
    path = tmp_path / "tasks.json"
    first = TaskLifecycle(context, JsonTaskStore(path), dispatcher)
    task = first.create({"title": "Persisted", "type": "WRITING", "tags": ["a"]})
    first.update(task.id, {"status": "DONE"})

    second = TaskLifecycle(context, JsonTaskStore(path))
    reloaded = second.get(task.id)

    assert reloaded.status == TaskStatus.DONE
    assert reloaded.tags == ["a"]
    assert reloaded.created_at == task.created_at

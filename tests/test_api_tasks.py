"""
Tests for the /api/tasks endpoints.
"""

from conftest import RecordingDispatcher


def _create(client, **overrides):
    body = {"title": "Draft outline", "type": "WRITING"}
    body.update(overrides)
    return client.post("/api/tasks", json=body)


def test_health(client) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Request-ID"]


def test_request_id_is_echoed(client) -> None:
    response = client.get("/api/tasks", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"


def test_create_task(client, dispatcher: RecordingDispatcher) -> None:
    response = _create(client, dueDate="2026-11-02", tags=["book"], category="PROJECT")

    assert response.status_code == 201
    data = response.json()
    assert data["id"].startswith("task_")
    assert data["status"] == "OPEN"
    assert data["priority"] == "NORMAL"
    assert data["dueDate"] == "2026-11-02"
    assert data["tags"] == ["book"]
    assert data["attachments"] == []
    assert data["createdAt"] == data["updatedAt"]
    assert dispatcher.events == ["task_created"]
    assert dispatcher.payloads[0]["task"]["id"] == data["id"]


def test_create_requires_title_and_type(client, dispatcher: RecordingDispatcher) -> None:
    assert _create(client, title=None).status_code == 400
    assert _create(client, type=None).status_code == 400
    assert _create(client, type="COOKING").status_code == 400
    assert client.get("/api/tasks").json() == []
    assert dispatcher.events == []


def test_mistyped_fields_are_bad_requests(client, dispatcher: RecordingDispatcher) -> None:
    assert _create(client, title=123).status_code == 400
    assert _create(client, tags="book").status_code == 400
    assert _create(client, dueDate=20261102).status_code == 400
    task = _create(client).json()

    response = client.put(f"/api/tasks/{task['id']}", json={"tags": [1, 2]})

    assert response.status_code == 400
    assert "tags" in response.json()["detail"]
    assert [t["id"] for t in client.get("/api/tasks").json()] == [task["id"]]
    assert dispatcher.events == ["task_created"]


def test_list_and_get(client) -> None:
    first = _create(client, title="One").json()
    second = _create(client, title="Two").json()

    listed = client.get("/api/tasks").json()
    assert [t["id"] for t in listed] == [first["id"], second["id"]]

    fetched = client.get(f"/api/tasks/{second['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Two"


def test_get_unknown_task(client) -> None:
    response = client.get("/api/tasks/task_0_missing")

    assert response.status_code == 404
    assert response.json() == {"detail": "Task not found"}


def test_update_status_emits_status_changed(client, dispatcher: RecordingDispatcher) -> None:
    task = _create(client).json()

    response = client.put(f"/api/tasks/{task['id']}", json={"status": "DONE"})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "DONE"
    assert data["title"] == task["title"]
    assert data["createdAt"] == task["createdAt"]
    assert dispatcher.events == ["task_created", "task_status_changed"]


def test_update_other_fields_emits_updated(client, dispatcher: RecordingDispatcher) -> None:
    task = _create(client).json()

    response = client.put(f"/api/tasks/{task['id']}", json={"priority": "HIGH", "dueDate": "2026-12-01"})

    assert response.status_code == 200
    assert response.json()["dueDate"] == "2026-12-01"
    assert dispatcher.events[-1] == "task_updated"


def test_update_with_same_values_emits_nothing(client, dispatcher: RecordingDispatcher) -> None:
    task = _create(client).json()

    client.put(f"/api/tasks/{task['id']}", json={"title": task["title"], "status": "OPEN"})

    assert dispatcher.events == ["task_created"]


def test_update_errors(client) -> None:
    assert client.put("/api/tasks/task_0_missing", json={"status": "DONE"}).status_code == 404

    task = _create(client).json()
    assert client.put(f"/api/tasks/{task['id']}", json={"status": "ARCHIVED"}).status_code == 400


def test_delete_task(client, dispatcher: RecordingDispatcher) -> None:
    task = _create(client).json()

    response = client.delete(f"/api/tasks/{task['id']}")

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Task deleted successfully"
    assert body["task"]["id"] == task["id"]
    assert dispatcher.events[-1] == "task_deleted"
    assert dispatcher.payloads[-1]["task"]["title"] == task["title"]
    assert client.get(f"/api/tasks/{task['id']}").status_code == 404

    again = client.delete(f"/api/tasks/{task['id']}")
    assert again.status_code == 404
    assert dispatcher.events.count("task_deleted") == 1

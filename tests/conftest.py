import sys
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Ensure repository root is on sys.path so the in-tree package imports cleanly.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from studiodesk.api.dependencies import _reset_state_for_tests  # noqa: E402
from studiodesk.config import _reset_config_for_tests, load_config  # noqa: E402
from studiodesk.db.database import Database, InMemoryTaskStore  # noqa: E402
from studiodesk.services.base import ServiceContext  # noqa: E402
from studiodesk.services.webhooks import WebhookDispatcher, WebhookResult  # noqa: E402

_ENV_VARS = (
    "STUDIODESK_DATA_DIR",
    "STUDIODESK_ENV",
    "STUDIODESK_LOG_LEVEL",
    "STUDIODESK_LOG_JSON",
    "STUDIODESK_WEBHOOK_URL",
    "STUDIODESK_WEBHOOK_SECRET",
    "STUDIODESK_WEBHOOK_WORKERS",
    "STUDIODESK_TASK_STORE",
    "STUDIODESK_CORS_ORIGINS",
    "WEBHOOK_URL",
    "WEBHOOK_SECRET",
)


class RecordingDispatcher(WebhookDispatcher):
    """Captures submitted payloads instead of delivering them."""

    def __init__(self) -> None:
        super().__init__("http://hooks.test/tasks")
        self.payloads: List[Dict[str, Any]] = []

    def submit(self, payload: Dict[str, Any]) -> "Future[WebhookResult]":
        self.payloads.append(payload)
        future: "Future[WebhookResult]" = Future()
        future.set_result(WebhookResult(success=True, attempts=1))
        return future

    @property
    def events(self) -> List[str]:
        return [p["event"] for p in self.payloads]


@pytest.fixture(autouse=True)
def studiodesk_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolated environment: a fresh data dir and no inherited webhook settings."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    data_dir = tmp_path / "data"
    monkeypatch.setenv("STUDIODESK_DATA_DIR", str(data_dir))
    _reset_config_for_tests()
    _reset_state_for_tests()
    yield data_dir
    _reset_state_for_tests()
    _reset_config_for_tests()


@pytest.fixture
def data_dir(studiodesk_env: Path) -> Path:
    return studiodesk_env


@pytest.fixture
def db(data_dir: Path) -> Database:
    return Database(data_dir)


@pytest.fixture
def context() -> ServiceContext:
    return ServiceContext(config=load_config(), request_id="test-req")


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def task_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def client(dispatcher: RecordingDispatcher):
    """TestClient whose outbound webhooks are captured by `dispatcher`."""
    from fastapi.testclient import TestClient

    from studiodesk.api.app import app
    from studiodesk.api.dependencies import get_dispatcher

    app.dependency_overrides[get_dispatcher] = lambda: dispatcher
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()

import threading
import uuid
from typing import Optional

from fastapi import Depends, Header

from studiodesk.config import load_config
from studiodesk.db.database import Database, TaskStore, create_task_store
from studiodesk.services.base import ServiceContext
from studiodesk.services.progress import ProgressEngine
from studiodesk.services.tasks import TaskLifecycle
from studiodesk.services.webhooks import WebhookDispatcher

# Process-wide task table and dispatcher pool (created on first use).
_task_store: Optional[TaskStore] = None
_dispatcher: Optional[WebhookDispatcher] = None
_state_lock = threading.Lock()


def get_service_context(
    x_request_id: Optional[str] = Header(None, alias="X-Request-ID"),
) -> ServiceContext:
    """Build a request-scoped service context from the current environment."""
    return ServiceContext(config=load_config(), request_id=x_request_id or uuid.uuid4().hex[:12])


def get_db(ctx: ServiceContext = Depends(get_service_context)) -> Database:
    """Get the JSON database for the configured data directory."""
    return Database(ctx.config.data_dir)


def get_task_store(ctx: ServiceContext = Depends(get_service_context)) -> TaskStore:
    global _task_store
    with _state_lock:
        if _task_store is None:
            _task_store = create_task_store(ctx.config.task_store, ctx.config.data_dir)
        return _task_store


def get_dispatcher(ctx: ServiceContext = Depends(get_service_context)) -> WebhookDispatcher:
    global _dispatcher
    with _state_lock:
        if _dispatcher is None:
            _dispatcher = WebhookDispatcher.from_config(ctx.config)
        return _dispatcher


def get_progress_engine(
    ctx: ServiceContext = Depends(get_service_context),
    db: Database = Depends(get_db),
) -> ProgressEngine:
    return ProgressEngine(ctx, db)


def get_task_lifecycle(
    ctx: ServiceContext = Depends(get_service_context),
    store: TaskStore = Depends(get_task_store),
    dispatcher: WebhookDispatcher = Depends(get_dispatcher),
) -> TaskLifecycle:
    return TaskLifecycle(ctx, store, dispatcher)


def shutdown_dispatcher(wait: bool = True) -> None:
    """Close the shared dispatcher pool, letting queued deliveries finish."""
    global _dispatcher
    with _state_lock:
        dispatcher, _dispatcher = _dispatcher, None
    if dispatcher is not None:
        dispatcher.close(wait=wait)


def _reset_state_for_tests() -> None:
    """Drop the shared task table and dispatcher (tests only)."""
    global _task_store
    shutdown_dispatcher(wait=False)
    with _state_lock:
        _task_store = None

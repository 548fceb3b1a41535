"""
StudioDesk Services

Core service layer: protocol progress, task lifecycle and webhook delivery.
"""

from importlib import import_module
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from studiodesk.services.base import Service, ServiceContext
    from studiodesk.services.progress import ProgressEngine, compute_progress, project_protocol
    from studiodesk.services.tasks import TaskLifecycle
    from studiodesk.services.webhooks import WebhookDispatcher, WebhookResult

__all__ = [
    # Base
    "Service",
    "ServiceContext",
    # Protocols
    "ProgressEngine",
    "compute_progress",
    "project_protocol",
    # Tasks
    "TaskLifecycle",
    # Webhooks
    "WebhookDispatcher",
    "WebhookResult",
]

_EXPORTS = {
    "Service": "studiodesk.services.base",
    "ServiceContext": "studiodesk.services.base",
    "ProgressEngine": "studiodesk.services.progress",
    "compute_progress": "studiodesk.services.progress",
    "project_protocol": "studiodesk.services.progress",
    "TaskLifecycle": "studiodesk.services.tasks",
    "WebhookDispatcher": "studiodesk.services.webhooks",
    "WebhookResult": "studiodesk.services.webhooks",
}


def __getattr__(name: str):
    module_path = _EXPORTS.get(name)
    if not module_path:
        raise AttributeError(f"module {__name__} has no attribute {name}")
    module = import_module(module_path)
    return getattr(module, name)


def __dir__() -> list[str]:
    return sorted(__all__)

"""
StudioDesk Structured Logging

Every record carries the request, task, protocol and webhook event it
relates to. Webhook URLs and secrets never reach the output: credentials
and query strings are stripped, secret-looking keys are masked.
"""

import json
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from urllib.parse import urlsplit, urlunsplit
from typing import Any, Dict, Generator, Optional


# Correlation fields shown on every line ("-" when unknown).
CORRELATION_FIELDS = ("request_id", "task_id", "protocol_id", "event")

TEXT_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(message)s "
    "req=%(request_id)s task=%(task_id)s protocol=%(protocol_id)s event=%(event)s"
)

# Exit codes shared by the CLI commands
EXIT_RUNTIME_ERROR = 1
EXIT_CONFIG_ERROR = 2

_BUILTIN_RECORD_KEYS = frozenset(
    logging.makeLogRecord({}).__dict__.keys() | {"asctime", "message"}
)

_MASK = "[REDACTED]"
_SECRET_MARKERS = ("secret", "token", "password", "api_key", "apikey", "credential")

_CONTEXT: ContextVar[Dict[str, Any]] = ContextVar("studiodesk_log_context", default={})


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in _SECRET_MARKERS)


def _scrub_url(value: str) -> str:
    """Drop userinfo and the query from anything that parses as an absolute URL."""
    try:
        parts = urlsplit(value)
    except ValueError:
        return value
    if not (parts.scheme and parts.netloc):
        return value
    # The incoming webhook secret travels as ?secret=...
    host = parts.netloc.rpartition("@")[2]
    return urlunsplit((parts.scheme, host, parts.path, "", parts.fragment))


def _scrub(key: str, value: Any) -> Any:
    if _is_secret_key(key):
        return _MASK
    if isinstance(value, str):
        return _scrub_url(value)
    if isinstance(value, dict):
        return {k: _scrub(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_scrub(key, item) for item in value]
    return value


def _present(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in fields.items() if v is not None}


@contextmanager
def log_context(**fields: Any) -> Generator[None, None, None]:
    """Attach fields to every record logged inside the block (same thread or task)."""
    token = _CONTEXT.set({**_CONTEXT.get(), **_present(fields)})
    try:
        yield
    finally:
        _CONTEXT.reset(token)


class ContextFilter(logging.Filter):
    """Copy the active log_context onto records and default correlation fields to "-"."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _CONTEXT.get().items():
            if key not in _BUILTIN_RECORD_KEYS and not hasattr(record, key):
                setattr(record, key, value)
        for key in CORRELATION_FIELDS:
            if not hasattr(record, key):
                setattr(record, key, "-")
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line: fixed header, correlation fields, then any `extra=` values."""

    def format(self, record: logging.LogRecord) -> str:
        data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CORRELATION_FIELDS:
            data[key] = getattr(record, key, "-")
        for key, value in record.__dict__.items():
            if key not in _BUILTIN_RECORD_KEYS and key not in data:
                data[key] = value
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps({k: _scrub(k, v) for k, v in data.items()}, default=str)


def setup_logging(level: Optional[str] = None, json_output: bool = False) -> logging.Logger:
    """
    Install a single stderr handler on the root logger.

    Args:
        level: Level name; falls back to STUDIODESK_LOG_LEVEL, then INFO
        json_output: Emit JSON lines instead of the key=value text format

    Returns:
        The "studiodesk" logger
    """
    name = (level or os.environ.get("STUDIODESK_LOG_LEVEL") or "INFO").upper()

    handler = logging.StreamHandler()
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, name, logging.INFO))
    return logging.getLogger("studiodesk")


def get_logger(name: str = "studiodesk") -> logging.Logger:
    return logging.getLogger(name)


def init_cli_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> logging.Logger:
    """CLI entry: STUDIODESK_LOG_JSON decides the format unless json_output is given."""
    if json_output is None:
        json_output = os.environ.get("STUDIODESK_LOG_JSON", "").lower() in ("1", "true", "yes")
    return setup_logging(level, json_output=json_output)


def log_extra(**fields: Any) -> Dict[str, Any]:
    """
    Build an `extra=` dict, leaving out None values so ContextFilter defaults apply.

    Example:
        logger.info("webhook_delivered", extra=log_extra(task_id=task.id, attempt=1))
    """
    return _present(fields)

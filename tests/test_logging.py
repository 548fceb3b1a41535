"""
Tests for structured logging: context propagation and secret scrubbing.
"""

import json
import logging

from studiodesk.logging import ContextFilter, JsonFormatter, init_cli_logging, log_context, log_extra


def _record(msg: str = "task_created", **extra) -> logging.LogRecord:
    record = logging.makeLogRecord({"name": "studiodesk.test", "levelname": "INFO", "msg": msg})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def _render(record: logging.LogRecord) -> dict:
    ContextFilter().filter(record)
    return json.loads(JsonFormatter().format(record))


def test_context_fields_reach_records_and_are_scoped() -> None:
    with log_context(request_id="req-1", protocol_id=None):
        inside = _render(_record())
    outside = _render(_record())

    assert inside["request_id"] == "req-1"
    assert inside["protocol_id"] == "-"
    assert outside["request_id"] == "-"


def test_explicit_extra_wins_over_context() -> None:
    with log_context(task_id="task_ctx"):
        data = _render(_record(task_id="task_own"))

    assert data["task_id"] == "task_own"


def test_secrets_and_webhook_urls_are_scrubbed() -> None:
    data = _render(
        _record(
            webhook_secret="hunter2",
            url="https://user:pw@hooks.test/in?secret=hunter2",
            nested={"api_key": "k", "attempt": 2},
        )
    )

    assert data["webhook_secret"] == "[REDACTED]"
    assert data["url"] == "https://hooks.test/in"
    assert data["nested"] == {"api_key": "[REDACTED]", "attempt": 2}
    assert "hunter2" not in json.dumps(data)


def test_log_extra_drops_none_values() -> None:
    assert log_extra(task_id="task_1", event=None, attempt=1) == {"task_id": "task_1", "attempt": 1}


def test_cli_logging_reads_json_flag_from_env(monkeypatch) -> None:
    monkeypatch.setenv("STUDIODESK_LOG_JSON", "true")
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        init_cli_logging("debug")
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.DEBUG
    finally:
        root.handlers = saved_handlers
        root.setLevel(saved_level)

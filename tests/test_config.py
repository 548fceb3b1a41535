from pathlib import Path

import pytest

from studiodesk.config import _reset_config_for_tests, get_config, load_config
from studiodesk.errors import ConfigError


def test_defaults(data_dir: Path) -> None:
    config = load_config()

    assert config.data_dir == data_dir
    assert config.task_store == "memory"
    assert config.environment == "local"
    assert config.cors_allow_origins == ["*"]
    assert config.webhook_url is None
    assert config.webhook_enabled is False
    assert config.webhook_workers == 4


def test_prefixed_variables_win_over_legacy(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("WEBHOOK_URL", "http://legacy.test/hook")
    assert load_config().webhook_url == "http://legacy.test/hook"

    monkeypatch.setenv("STUDIODESK_WEBHOOK_URL", "http://primary.test/hook")
    config = load_config()
    assert config.webhook_url == "http://primary.test/hook"
    assert config.webhook_enabled is True


def test_non_local_env_has_no_default_cors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STUDIODESK_ENV", "production")
    assert load_config().cors_allow_origins == []

    monkeypatch.setenv("STUDIODESK_CORS_ORIGINS", "https://a.test, https://b.test")
    assert load_config().cors_allow_origins == ["https://a.test", "https://b.test"]


def test_task_store_selection(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STUDIODESK_TASK_STORE", "JSON")
    assert load_config().task_store == "json"

    monkeypatch.setenv("STUDIODESK_TASK_STORE", "redis")
    with pytest.raises(ConfigError):
        load_config()


def test_invalid_worker_count(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STUDIODESK_WEBHOOK_WORKERS", "many")
    with pytest.raises(ConfigError):
        load_config()

    monkeypatch.setenv("STUDIODESK_WEBHOOK_WORKERS", "0")
    assert load_config().webhook_workers == 1


def test_get_config_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_config()
    monkeypatch.setenv("STUDIODESK_LOG_LEVEL", "DEBUG")
    assert get_config() is first

    _reset_config_for_tests()
    assert get_config().log_level == "DEBUG"


def test_stores_write_under_configured_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    from studiodesk.api.dependencies import get_db, get_service_context, get_task_store
    from studiodesk.models.domain import Task

    target = tmp_path / "elsewhere"
    monkeypatch.setenv("STUDIODESK_DATA_DIR", str(target))
    monkeypatch.setenv("STUDIODESK_TASK_STORE", "json")
    ctx = get_service_context(x_request_id="cfg")

    get_db(ctx).create_protocol("Arpeggios")
    get_task_store(ctx).insert(Task(id="task_1", title="Demo", type="TECH"))

    assert sorted(p.name for p in target.iterdir()) == ["protocols.json", "tasks.json"]

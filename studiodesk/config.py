"""
StudioDesk Configuration

Pydantic-backed configuration loaded from environment variables.
Uses STUDIODESK_ prefix for all environment variables.
"""

import os
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from studiodesk.errors import ConfigError

TASK_STORE_BACKENDS = ("memory", "json")


class Config(BaseModel):
    """
    Pydantic-backed configuration loaded from environment variables.

    Key env vars:
    - STUDIODESK_DATA_DIR (default: .studiodesk) holds the JSON collections.
    - STUDIODESK_ENV (default: local)
    - STUDIODESK_LOG_LEVEL (default: INFO)
    - STUDIODESK_WEBHOOK_URL (outbound task notifications; falls back to WEBHOOK_URL)
    - STUDIODESK_WEBHOOK_SECRET (inbound webhook secret; falls back to WEBHOOK_SECRET)
    - STUDIODESK_TASK_STORE (memory | json)
    """

    # Storage
    data_dir: Path = Field(default=Path(".studiodesk"))
    task_store: str = Field(default="memory")

    # Environment
    environment: str = Field(default="local")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    # Webhooks
    webhook_url: Optional[str] = Field(default=None)
    webhook_secret: Optional[str] = Field(default=None)
    webhook_workers: int = Field(default=4)

    # API / web
    cors_allow_origins: List[str] = Field(default_factory=list)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def webhook_enabled(self) -> bool:
        """Check if outbound webhook delivery is configured."""
        return bool(self.webhook_url)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def _parse_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    if value.strip() == "*":
        return ["*"]
    return [v.strip() for v in value.split(",") if v.strip()]


def _env_with_fallback(name: str, legacy: str) -> Optional[str]:
    """Read STUDIODESK_<name>, then the unprefixed legacy variable."""
    return os.environ.get(name) or os.environ.get(legacy) or None


def load_config() -> Config:
    """
    Load StudioDesk configuration from environment.

    Environment variables use the STUDIODESK_ prefix. The webhook URL and
    secret also honour the unprefixed WEBHOOK_URL / WEBHOOK_SECRET names.
    """
    env = os.environ.get("STUDIODESK_ENV", "local")
    cors = _parse_csv(os.environ.get("STUDIODESK_CORS_ORIGINS"))
    if not cors and env == "local":
        cors = ["*"]
    task_store = os.environ.get("STUDIODESK_TASK_STORE", "memory").strip().lower()
    if task_store not in TASK_STORE_BACKENDS:
        raise ConfigError(
            f"STUDIODESK_TASK_STORE must be one of {', '.join(TASK_STORE_BACKENDS)}",
            metadata={"value": task_store},
        )
    workers_raw = os.environ.get("STUDIODESK_WEBHOOK_WORKERS", "4")
    try:
        webhook_workers = max(1, int(workers_raw))
    except ValueError as exc:
        raise ConfigError(
            "STUDIODESK_WEBHOOK_WORKERS must be an integer", metadata={"value": workers_raw}
        ) from exc
    return Config(
        # Storage
        data_dir=Path(os.environ.get("STUDIODESK_DATA_DIR", ".studiodesk")).expanduser(),
        task_store=task_store,

        # Environment
        environment=env,
        log_level=os.environ.get("STUDIODESK_LOG_LEVEL", "INFO"),
        log_json=_parse_bool(os.environ.get("STUDIODESK_LOG_JSON")),

        # Webhooks
        webhook_url=_env_with_fallback("STUDIODESK_WEBHOOK_URL", "WEBHOOK_URL"),
        webhook_secret=_env_with_fallback("STUDIODESK_WEBHOOK_SECRET", "WEBHOOK_SECRET"),
        webhook_workers=webhook_workers,

        # API / web
        cors_allow_origins=cors,
    )


# Singleton config instance (lazy loaded)
_config: Optional[Config] = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Get or create the singleton config instance."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:
                _config = load_config()
    return _config


def _reset_config_for_tests() -> None:
    """Reset the global config cache (tests only)."""
    global _config
    with _config_lock:
        _config = None

"""
Runtime configuration for ordersync.

Every setting comes from the environment so the service, the sync engine and
the scripts can be configured the same way:

    STORAGE_BACKEND          inmemory | sqlalchemy (default: inmemory)
    APP_DATABASE_URL         SQLAlchemy URL (default: sqlite:///ordersync.db)
    ORDER_API_URL            base URL used by HttpOrderApi (default: http://localhost:8000)
    SYNC_DEBOUNCE_MS         quiet period before local edits are written (default: 300)
    SYNC_DRAIN_MAX_ATTEMPTS  sync cycles tried before a kitchen submission (default: 5)
    HTTP_TIMEOUT_SECONDS     timeout of outbound HTTP calls (default: 10)
    LOG_LEVEL                logging level name (default: INFO)
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from ordersync.errors import ConfigurationError

STORAGE_BACKENDS = ("inmemory", "sqlalchemy")
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def _get_int_env(key: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}")
    if value < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {value}")
    return value


def _get_float_env(key: str, default: float) -> float:
    raw = os.getenv(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """Resolved configuration values."""

    storage_backend: str = "inmemory"
    database_url: str = "sqlite:///ordersync.db"
    order_api_url: str = "http://localhost:8000"
    sync_debounce_ms: int = 300
    sync_drain_max_attempts: int = 5
    http_timeout_seconds: float = 10.0
    log_level: str = "INFO"

    @property
    def sync_debounce_seconds(self) -> float:
        return self.sync_debounce_ms / 1000.0


def get_settings() -> Settings:
    """Read settings from the environment. Raises ConfigurationError on bad values."""
    storage_backend = os.getenv("STORAGE_BACKEND", "inmemory").strip().lower()
    if storage_backend not in STORAGE_BACKENDS:
        raise ConfigurationError(
            f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, got {storage_backend!r}"
        )

    return Settings(
        storage_backend=storage_backend,
        database_url=os.getenv("APP_DATABASE_URL", "sqlite:///ordersync.db"),
        order_api_url=os.getenv("ORDER_API_URL", "http://localhost:8000").rstrip("/"),
        sync_debounce_ms=_get_int_env("SYNC_DEBOUNCE_MS", 300),
        sync_drain_max_attempts=_get_int_env("SYNC_DRAIN_MAX_ATTEMPTS", 5, minimum=1),
        http_timeout_seconds=_get_float_env("HTTP_TIMEOUT_SECONDS", 10.0),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: Optional[str] = None) -> None:
    """Set up root logging once for scripts and the server."""
    level_name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=LOG_FORMAT,
    )

"""Configuration loading from environment variables."""

from __future__ import annotations

import os

from imagereloader.models.config import (
    APIConfig,
    ClusterConfig,
    DispatcherConfig,
    ImageReloaderConfig,
    LogConfig,
    WebhookConfig,
)


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"IMAGE_RELOADER_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def _validate_log_format(value: str) -> str:
    if value.lower() not in ("json", "console"):
        raise ValueError(f"Invalid log format: {value}. Must be 'json' or 'console'")
    return value.lower()


def load_config() -> ImageReloaderConfig:
    """Load configuration from IMAGE_RELOADER_* environment variables."""
    return ImageReloaderConfig(
        cluster=ClusterConfig(
            namespace=_env("NAMESPACE", ""),
            resync_seconds=_env_int("RESYNC_SECONDS", 30, min_val=5, max_val=3600),
            sync_timeout_seconds=_env_int("SYNC_TIMEOUT", 120, min_val=1),
            update_timeout_seconds=_env_int("UPDATE_TIMEOUT", 10, min_val=1, max_val=120),
        ),
        dispatcher=DispatcherConfig(
            queue_size=_env_int("QUEUE_SIZE", 0, min_val=0),
        ),
        webhook=WebhookConfig(
            auth_secret_ref=_env("WEBHOOK_AUTH_SECRET_REF", ""),
        ),
        api=APIConfig(
            port=_env_int("API_PORT", 8080, min_val=1024, max_val=65535),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
            format=_validate_log_format(_env("LOG_FORMAT", "json")),
        ),
    )

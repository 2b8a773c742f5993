"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ClusterConfig:
    """Cluster watch and update configuration."""

    namespace: str = ""  # empty watches every namespace
    resync_seconds: int = 30
    sync_timeout_seconds: int = 120
    update_timeout_seconds: int = 10


@dataclass
class DispatcherConfig:
    """Push event queue configuration."""

    queue_size: int = 0  # 0 means unbounded


@dataclass
class WebhookConfig:
    """Webhook receiver configuration."""

    auth_secret_ref: str = ""


@dataclass
class APIConfig:
    """REST API configuration."""

    port: int = 8080


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"
    format: str = "json"  # json | console


@dataclass
class ImageReloaderConfig:
    """Top-level image-reloader configuration."""

    cluster: ClusterConfig = field(default_factory=ClusterConfig)
    dispatcher: DispatcherConfig = field(default_factory=DispatcherConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    api: APIConfig = field(default_factory=APIConfig)
    log: LogConfig = field(default_factory=LogConfig)

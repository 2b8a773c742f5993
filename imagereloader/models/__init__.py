"""Core data structures for image-reloader."""

from imagereloader.models.config import ImageReloaderConfig
from imagereloader.models.events import DispatchReport, PushedImage, PushEvent
from imagereloader.models.resources import ResourceKey, ResourceKind, ResourceRef

__all__ = [
    "DispatchReport",
    "ImageReloaderConfig",
    "PushEvent",
    "PushedImage",
    "ResourceKey",
    "ResourceKind",
    "ResourceRef",
]

"""Prometheus metrics for image-reloader."""

from __future__ import annotations

from prometheus_client import Counter, Gauge

push_events_total = Counter(
    "image_reloader_push_events_total",
    "Registry push events dispatched.",
)

image_updates_total = Counter(
    "image_reloader_image_updates_total",
    "Container image update attempts by workload kind and outcome.",
    ["kind", "result"],
)

change_notifications_total = Counter(
    "image_reloader_change_notifications_total",
    "Cluster change notifications handled by the listener.",
    ["kind", "type"],
)

index_images = Gauge(
    "image_reloader_index_images",
    "Distinct image names currently held in the resource index.",
)

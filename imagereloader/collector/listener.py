"""Cluster change listener: keeps the ResourceIndex in step with workloads.

Every container in a workload's pod template becomes one ResourceKey under
its image name.  Containers whose image cannot be parsed are skipped (and,
on update, dropped from the index by the prune step).
"""

from __future__ import annotations

from typing import Any

from imagereloader.collector.informer import RawObject, ResourceEventHandler
from imagereloader.index.reference import parse_image_reference
from imagereloader.index.resource_index import ResourceIndex
from imagereloader.models.resources import ResourceKey, ResourceKind, ResourceRef
from imagereloader.observability.logging import get_logger
from imagereloader.observability.metrics import change_notifications_total

_logger = get_logger("collector.listener")


def _containers(obj: RawObject) -> list[dict[str, Any]]:
    spec = obj.get("spec") or {}
    pod_spec = (spec.get("template") or {}).get("spec") or {}
    return list(pod_spec.get("containers") or [])


def _owner(kind: ResourceKind, obj: RawObject) -> ResourceRef:
    metadata = obj.get("metadata") or {}
    return ResourceRef(
        kind=kind,
        namespace=str(metadata.get("namespace", "")),
        name=str(metadata.get("name", "")),
    )


class ClusterChangeListener(ResourceEventHandler):
    """ResourceEventHandler that writes workload images into the index."""

    def __init__(self, index: ResourceIndex) -> None:
        self._index = index

    async def on_add(self, kind: ResourceKind, obj: RawObject) -> None:
        change_notifications_total.labels(kind=kind.value, type="add").inc()
        await self._observe(kind, obj)

    async def on_update(self, kind: ResourceKind, old: RawObject, new: RawObject) -> None:
        change_notifications_total.labels(kind=kind.value, type="update").inc()
        await self._observe(kind, new)

    async def on_delete(self, kind: ResourceKind, obj: RawObject) -> None:
        change_notifications_total.labels(kind=kind.value, type="delete").inc()
        owner = _owner(kind, obj)
        removed = 0
        for container in _containers(obj):
            image_name, tag = parse_image_reference(str(container.get("image", "")))
            if not tag:
                continue
            removed += await self._index.remove(image_name, tag, owner=owner)
        # Slots recorded under an older tag than the final state still belong to owner
        removed += await self._index.prune(owner, keep=())
        _logger.info("workload_deleted", resource=str(owner), keys_removed=removed)

    async def _observe(self, kind: ResourceKind, obj: RawObject) -> None:
        owner = _owner(kind, obj)
        keep: set[tuple[str, str]] = set()
        for container in _containers(obj):
            container_name = str(container.get("name", ""))
            image = str(container.get("image", ""))
            image_name, tag = parse_image_reference(image)
            if not tag:
                _logger.warning(
                    "invalid_image_reference",
                    resource=str(owner),
                    container=container_name,
                    image=image,
                )
                continue
            key = ResourceKey(
                namespace=owner.namespace,
                resource_name=owner.name,
                resource_kind=kind,
                container_name=container_name,
                image_name=image_name,
                image_tag=tag,
            )
            await self._index.upsert(image_name, key)
            keep.add((container_name, image_name))
        await self._index.prune(owner, keep)

"""In-memory index of which workloads run which images.

Maps an image name (the part of a reference before its tag or digest) to
the container slots that were last observed referencing it.  The index is
an eventually consistent view of the cluster: it reflects the most recent
change notification, not necessarily the live state.

Writers (the change listener) take the lock exclusively; readers (the
dispatcher) share it and receive snapshots, so no lock is ever held while
the cluster API is being called.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from imagereloader.index.rwlock import ReadWriteLock
from imagereloader.models.resources import ResourceKey, ResourceRef
from imagereloader.observability.logging import get_logger
from imagereloader.observability.metrics import index_images

_logger = get_logger("index")


class ResourceIndex:
    """Image name -> ordered list of ResourceKey, guarded by a RW lock."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._entries: dict[str, list[ResourceKey]] = {}

    async def upsert(self, image_name: str, key: ResourceKey) -> None:
        """Record *key* under *image_name*.

        An existing key for the same container identity is replaced in
        place, keeping its position; otherwise *key* is appended.
        """
        async with self._lock.write():
            keys = self._entries.setdefault(image_name, [])
            for i, existing in enumerate(keys):
                if existing.identity == key.identity:
                    if existing != key:
                        _logger.debug(
                            "index_key_replaced",
                            image=image_name,
                            resource=str(key.owner),
                            container=key.container_name,
                            old_tag=existing.image_tag,
                            new_tag=key.image_tag,
                        )
                    keys[i] = key
                    break
            else:
                keys.append(key)
                _logger.debug(
                    "index_key_added",
                    image=image_name,
                    resource=str(key.owner),
                    container=key.container_name,
                    tag=key.image_tag,
                )
            index_images.set(len(self._entries))

    async def remove(self, image_name: str, tag: str, owner: ResourceRef | None = None) -> int:
        """Drop keys under *image_name* whose tag equals *tag*.

        When *owner* is given only that workload's keys are considered.
        An image name left with no keys is dropped from the index.

        Returns:
            Number of keys removed.
        """
        async with self._lock.write():
            keys = self._entries.get(image_name)
            if keys is None:
                return 0
            kept = [k for k in keys if k.image_tag != tag or (owner is not None and k.owner != owner)]
            removed = len(keys) - len(kept)
            if kept:
                self._entries[image_name] = kept
            else:
                del self._entries[image_name]
            index_images.set(len(self._entries))
            return removed

    async def prune(self, owner: ResourceRef, keep: Iterable[tuple[str, str]]) -> int:
        """Drop *owner*'s keys whose ``(container, image name)`` is not in *keep*.

        Called after a workload update so that a container which moved to a
        different image family does not leave its old slot behind.
        """
        keep_set = set(keep)
        removed = 0
        async with self._lock.write():
            for image_name in list(self._entries):
                keys = self._entries[image_name]
                kept = [k for k in keys if k.owner != owner or (k.container_name, image_name) in keep_set]
                if len(kept) == len(keys):
                    continue
                removed += len(keys) - len(kept)
                if kept:
                    self._entries[image_name] = kept
                else:
                    del self._entries[image_name]
            index_images.set(len(self._entries))
        return removed

    async def replace_tag(self, image_name: str, key: ResourceKey, tag: str) -> bool:
        """Record that *key*'s slot now runs *tag*, if the slot is still indexed."""
        async with self._lock.write():
            keys = self._entries.get(image_name) or []
            for i, existing in enumerate(keys):
                if existing.identity == key.identity:
                    keys[i] = replace(existing, image_tag=tag)
                    return True
            return False

    async def lookup(self, image_name: str) -> list[ResourceKey] | None:
        """Return a snapshot of the keys under *image_name*, or None."""
        async with self._lock.read():
            keys = self._entries.get(image_name)
            return list(keys) if keys is not None else None

    async def images(self) -> list[str]:
        async with self._lock.read():
            return sorted(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

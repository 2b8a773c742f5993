"""List-then-watch informer for one workload kind.

``ResourceInformer`` keeps a local store of the raw objects it has seen and
turns the kubernetes-asyncio watch stream into add/update/delete callbacks
on a ``ResourceEventHandler``:

* The initial list delivers ``on_add`` for every object and then sets the
  synced event.  A later relist diffs against the store, so known objects
  arrive as ``on_update`` and vanished ones as ``on_delete``.
* The watch runs with ``timeout_seconds=resync_seconds``.  When it ends
  normally every stored object is replayed as ``on_update(obj, obj)`` and
  the watch resumes from the last seen resourceVersion (periodic resync).
* HTTP 410 Gone triggers an immediate relist; any other failure triggers a
  relist after exponential back-off.

Handler exceptions are logged and never stop the loop.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from kubernetes_asyncio import client as k8s_client
from kubernetes_asyncio import watch
from kubernetes_asyncio.client.exceptions import ApiException

from imagereloader.models.resources import ResourceKind
from imagereloader.observability.logging import get_logger

_logger = get_logger("collector.informer")

_BACKOFF_INITIAL = 1.0
_BACKOFF_MAX = 60.0
_HTTP_GONE = 410

RawObject = dict[str, Any]


class ResourceEventHandler(ABC):
    """Receiver of informer notifications.

    Implementations must return quickly: the informer awaits each callback
    before reading the next watch event.
    """

    @abstractmethod
    async def on_add(self, kind: ResourceKind, obj: RawObject) -> None:
        """Called for an object seen for the first time."""

    @abstractmethod
    async def on_update(self, kind: ResourceKind, old: RawObject, new: RawObject) -> None:
        """Called for a modified (or resynced) object."""

    @abstractmethod
    async def on_delete(self, kind: ResourceKind, obj: RawObject) -> None:
        """Called with the last known state of a deleted object."""


class _ResourceExpired(Exception):
    """The watch resourceVersion is too old; a relist is required."""


def _object_key(obj: RawObject) -> tuple[str, str]:
    metadata = obj.get("metadata") or {}
    return str(metadata.get("namespace", "")), str(metadata.get("name", ""))


def _resource_version(obj: RawObject) -> str:
    return str((obj.get("metadata") or {}).get("resourceVersion", ""))


class ResourceInformer:
    """Watches one kind and feeds a handler.

    Args:
        kind:            Workload kind reported to the handler.
        list_fn:         kubernetes-asyncio list method, also used for the watch.
        handler:         Callback receiver.
        list_kwargs:     Extra arguments for ``list_fn`` (e.g. ``namespace``).
        resync_seconds:  Watch timeout; each expiry replays the store.
        watch_factory:   Factory for ``kubernetes_asyncio.watch.Watch`` objects.
    """

    def __init__(
        self,
        kind: ResourceKind,
        list_fn: Callable[..., Awaitable[Any]],
        handler: ResourceEventHandler,
        list_kwargs: dict[str, Any] | None = None,
        resync_seconds: int = 30,
        watch_factory: Callable[[], Any] = watch.Watch,
    ) -> None:
        self.kind = kind
        self._list_fn = list_fn
        self._handler = handler
        self._list_kwargs = list_kwargs or {}
        self._resync_seconds = resync_seconds
        self._watch_factory = watch_factory
        self._store: dict[tuple[str, str], RawObject] = {}
        self._synced = asyncio.Event()
        self._stopped = False
        self._watch: Any = None
        self._log = _logger.bind(kind=str(kind))

    @property
    def has_synced(self) -> bool:
        return self._synced.is_set()

    async def wait_for_sync(self) -> None:
        await self._synced.wait()

    def stop(self) -> None:
        self._stopped = True
        if self._watch is not None:
            self._watch.stop()

    async def run(self) -> None:
        """Relist and watch until stopped or cancelled."""
        backoff = _BACKOFF_INITIAL
        while not self._stopped:
            try:
                resource_version = await self._relist()
                self._synced.set()
                backoff = _BACKOFF_INITIAL
                while not self._stopped:
                    resource_version = await self._watch_once(resource_version)
                    if not self._stopped:
                        await self._resync()
            except asyncio.CancelledError:
                raise
            except _ResourceExpired:
                self._log.info("watch_expired_relisting")
            except Exception as exc:
                self._log.warning("watch_failed", error=str(exc), retry_in=backoff)
                await asyncio.sleep(backoff)
                backoff = min(backoff * 2, _BACKOFF_MAX)
        self._log.info("informer_stopped")

    async def _relist(self) -> str:
        resp = await self._list_fn(_preload_content=False, **self._list_kwargs)
        try:
            body = json.loads(await resp.read())
        finally:
            resp.release()

        fresh: dict[tuple[str, str], RawObject] = {}
        for item in body.get("items") or []:
            key = _object_key(item)
            fresh[key] = item
            old = self._store.get(key)
            if old is None:
                await self._deliver(self._handler.on_add(self.kind, item))
            else:
                await self._deliver(self._handler.on_update(self.kind, old, item))
        for key, old in self._store.items():
            if key not in fresh:
                await self._deliver(self._handler.on_delete(self.kind, old))
        self._store = fresh

        resource_version = str((body.get("metadata") or {}).get("resourceVersion", ""))
        self._log.info("relist_complete", objects=len(fresh), resource_version=resource_version)
        return resource_version

    async def _watch_once(self, resource_version: str) -> str:
        """Consume one watch stream; return the last resourceVersion seen."""
        w = self._watch_factory()
        self._watch = w
        try:
            async with w.stream(
                self._list_fn,
                resource_version=resource_version,
                timeout_seconds=self._resync_seconds,
                **self._list_kwargs,
            ) as stream:
                async for event in stream:
                    event_type = event.get("type", "")
                    obj = event.get("raw_object") or {}
                    if event_type == "ERROR":
                        if obj.get("code") == _HTTP_GONE:
                            raise _ResourceExpired(obj.get("message", ""))
                        raise RuntimeError(f"watch error: {obj.get('message', obj)}")
                    resource_version = _resource_version(obj) or resource_version
                    await self._apply(event_type, obj)
        except ApiException as exc:
            if exc.status == _HTTP_GONE:
                raise _ResourceExpired(str(exc.reason)) from exc
            raise
        finally:
            w.stop()
            self._watch = None
        return resource_version

    async def _apply(self, event_type: str, obj: RawObject) -> None:
        key = _object_key(obj)
        if event_type == "ADDED" or event_type == "MODIFIED":
            old = self._store.get(key)
            self._store[key] = obj
            if old is None:
                await self._deliver(self._handler.on_add(self.kind, obj))
            else:
                await self._deliver(self._handler.on_update(self.kind, old, obj))
        elif event_type == "DELETED":
            last = self._store.pop(key, obj)
            await self._deliver(self._handler.on_delete(self.kind, last))
        # BOOKMARK events only advance the resourceVersion

    async def _resync(self) -> None:
        for obj in list(self._store.values()):
            await self._deliver(self._handler.on_update(self.kind, obj, obj))
        self._log.debug("resync_complete", objects=len(self._store))

    async def _deliver(self, callback: Awaitable[None]) -> None:
        try:
            await callback
        except Exception as exc:
            self._log.error("handler_failed", error=str(exc))


_LIST_FUNCTIONS: dict[ResourceKind, tuple[str, str]] = {
    ResourceKind.DEPLOYMENT: ("list_namespaced_deployment", "list_deployment_for_all_namespaces"),
    ResourceKind.STATEFUL_SET: ("list_namespaced_stateful_set", "list_stateful_set_for_all_namespaces"),
}


def build_informer(
    kind: ResourceKind,
    handler: ResourceEventHandler,
    apps_api: k8s_client.AppsV1Api,
    namespace: str = "",
    resync_seconds: int = 30,
) -> ResourceInformer:
    """Create an informer for *kind* scoped to *namespace* (empty = cluster-wide)."""
    namespaced, cluster_wide = _LIST_FUNCTIONS[kind]
    if namespace:
        return ResourceInformer(
            kind,
            getattr(apps_api, namespaced),
            handler,
            list_kwargs={"namespace": namespace},
            resync_seconds=resync_seconds,
        )
    return ResourceInformer(kind, getattr(apps_api, cluster_wide), handler, resync_seconds=resync_seconds)

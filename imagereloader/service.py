"""Watcher service: owns the index and wires listener, informers and dispatcher.

Startup order: informers start delivering into the listener → wait for every
informer's initial sync → dispatcher starts consuming.  Push events are
refused until the sync completes so that no event is resolved against an
empty index.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable

from imagereloader.collector.informer import ResourceEventHandler, ResourceInformer
from imagereloader.collector.listener import ClusterChangeListener
from imagereloader.dispatcher.cluster import ClusterClient
from imagereloader.dispatcher.dispatcher import UpdateDispatcher
from imagereloader.index.resource_index import ResourceIndex
from imagereloader.models.events import DispatchReport, PushEvent
from imagereloader.models.resources import ResourceKind
from imagereloader.observability.logging import get_logger

_logger = get_logger("service")

InformerFactory = Callable[[ResourceKind, ResourceEventHandler], ResourceInformer]


class ServiceNotReadyError(Exception):
    """Raised when an event is submitted before the initial sync finished."""


class WatcherService:
    """Composition root for the index, listener and dispatcher.

    Args:
        client:            ClusterClient used to roll workloads.
        informer_factory:  Builds one informer per kind around the listener.
        kinds:             Workload kinds to watch.
        sync_timeout:      Seconds to wait for the initial sync in ``start``.
        update_timeout:    Deadline in seconds for each cluster call.
        queue_size:        Event queue bound; 0 means unbounded.
    """

    def __init__(
        self,
        client: ClusterClient,
        informer_factory: InformerFactory,
        kinds: Iterable[ResourceKind] = tuple(ResourceKind),
        sync_timeout: float = 120.0,
        update_timeout: float = 10.0,
        queue_size: int = 0,
    ) -> None:
        self.index = ResourceIndex()
        self.listener = ClusterChangeListener(self.index)
        self.dispatcher = UpdateDispatcher(
            self.index,
            client,
            update_timeout=update_timeout,
            queue_size=queue_size,
        )
        self._informers = [informer_factory(kind, self.listener) for kind in kinds]
        self._sync_timeout = sync_timeout
        self._tasks: list[asyncio.Task[None]] = []
        self._dispatcher_task: asyncio.Task[None] | None = None
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    async def start(self) -> None:
        """Start informers, wait for their sync, then start the dispatcher.

        Raises:
            TimeoutError: the initial sync did not finish within sync_timeout.
        """
        for informer in self._informers:
            self._tasks.append(asyncio.create_task(informer.run(), name=f"informer-{informer.kind}"))

        await asyncio.wait_for(
            asyncio.gather(*(informer.wait_for_sync() for informer in self._informers)),
            timeout=self._sync_timeout,
        )
        _logger.info("initial_sync_complete", images=len(self.index))

        self._dispatcher_task = asyncio.create_task(self.dispatcher.run(), name="dispatcher")
        self._ready = True

    async def enqueue(self, event: PushEvent) -> asyncio.Future[DispatchReport]:
        """Queue *event* and return its completion future without waiting."""
        if not self._ready:
            raise ServiceNotReadyError("watcher service has not finished its initial sync")
        return await self.dispatcher.enqueue(event)

    async def submit(self, event: PushEvent) -> DispatchReport:
        """Queue *event* and wait until it has been fully dispatched."""
        future = await self.enqueue(event)
        return await future

    async def stop(self) -> None:
        """Drain the dispatcher, then stop the informers."""
        self._ready = False
        await self.dispatcher.close()
        if self._dispatcher_task is not None:
            await self._dispatcher_task
            self._dispatcher_task = None

        for informer in self._informers:
            informer.stop()
        for task in self._tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        _logger.info("watcher_service_stopped")

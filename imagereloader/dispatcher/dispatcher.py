"""Single-consumer dispatcher for registry push events.

Push events are queued with a per-event future and processed strictly one
at a time in arrival order.  For every pushed image the dispatcher looks up
the workloads that run that image under another tag and rolls each of them
through the ClusterClient.

Failure model: a failed or timed-out get/update is logged and counted for
that one container slot; the remaining slots, images and events are still
processed.  The run loop only ends when the queue is closed.

Throughput ceiling: cluster calls are awaited serially, so one slow API
server round trip delays every event queued behind it.  Each call is
bounded by ``update_timeout`` seconds.
"""

from __future__ import annotations

import asyncio

from imagereloader.dispatcher.cluster import ClusterClient, set_container_image
from imagereloader.index.reference import parse_image_reference
from imagereloader.index.resource_index import ResourceIndex
from imagereloader.models.events import DispatchReport, PushEvent
from imagereloader.models.resources import ResourceKey
from imagereloader.observability.logging import get_logger
from imagereloader.observability.metrics import image_updates_total, push_events_total

_logger = get_logger("dispatcher")

_Submission = tuple[PushEvent, "asyncio.Future[DispatchReport]"]


class DispatcherClosedError(Exception):
    """Raised when an event is submitted after the dispatcher was closed."""


class UpdateDispatcher:
    """Drains push events and issues workload updates.

    Args:
        index:           Shared ResourceIndex (read for lookups, written
                         through after a successful update).
        client:          ClusterClient used for get/update calls.
        update_timeout:  Deadline in seconds for each cluster call.
        queue_size:      Maximum queued events; 0 means unbounded.
    """

    def __init__(
        self,
        index: ResourceIndex,
        client: ClusterClient,
        update_timeout: float = 10.0,
        queue_size: int = 0,
    ) -> None:
        self._index = index
        self._client = client
        self._timeout = update_timeout
        self._queue: asyncio.Queue[_Submission | None] = asyncio.Queue(maxsize=queue_size)
        self._closed = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def enqueue(self, event: PushEvent) -> asyncio.Future[DispatchReport]:
        """Queue *event*; the returned future resolves once it is dispatched.

        Waits for room when the queue is bounded and full.
        """
        if self._closed:
            raise DispatcherClosedError("dispatcher is closed")
        future: asyncio.Future[DispatchReport] = asyncio.get_running_loop().create_future()
        await self._queue.put((event, future))
        _logger.debug("push_event_queued", event_id=event.event_id, pending=self._queue.qsize())
        return future

    async def close(self) -> None:
        """Stop accepting events; the run loop exits after draining."""
        if self._closed:
            return
        self._closed = True
        await self._queue.put(None)

    async def run(self) -> None:
        """Process queued events until the queue is closed."""
        _logger.info("dispatcher_started")
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    break
                event, future = item
                try:
                    report = await self.dispatch(event)
                except asyncio.CancelledError:
                    future.cancel()
                    raise
                except Exception as exc:
                    _logger.error("push_event_failed", event_id=event.event_id, error=str(exc))
                    if not future.done():
                        future.set_exception(exc)
                else:
                    if not future.done():
                        future.set_result(report)
            finally:
                self._queue.task_done()
        _logger.info("dispatcher_stopped")

    async def dispatch(self, event: PushEvent) -> DispatchReport:
        """Resolve *event* against the index and roll affected workloads."""
        report = DispatchReport(event_id=event.event_id)
        log = _logger.bind(event_id=event.event_id, source=event.source)

        for image in event.images:
            image_name, tag = parse_image_reference(image.resource_url)
            if not tag:
                log.warning("invalid_image_reference", resource_url=image.resource_url)
                report.unparseable += 1
                continue

            keys = await self._index.lookup(image_name)
            if keys is None:
                log.debug("no_workloads_for_image", image=image_name)
                continue

            for key in keys:
                if key.image_tag == tag:
                    log.info(
                        "image_already_applied",
                        resource=str(key.owner),
                        container=key.container_name,
                        tag=tag,
                    )
                    report.skipped += 1
                    continue
                if await self._roll(key, image.resource_url, tag):
                    report.updated += 1
                else:
                    report.failed += 1

        push_events_total.inc()
        log.info(
            "push_event_dispatched",
            images=len(event.images),
            updated=report.updated,
            skipped=report.skipped,
            failed=report.failed,
        )
        return report

    async def _roll(self, key: ResourceKey, new_image: str, new_tag: str) -> bool:
        """Point one container slot at *new_image*.  Returns success."""
        log = _logger.bind(resource=str(key.owner), container=key.container_name, image=new_image)
        kind = key.resource_kind.value
        try:
            resource = await asyncio.wait_for(
                self._client.get(key.resource_kind, key.namespace, key.resource_name),
                timeout=self._timeout,
            )
            if not set_container_image(resource, key.container_name, new_image):
                log.warning("container_not_found")
                image_updates_total.labels(kind=kind, result="missing").inc()
                return False
            await asyncio.wait_for(
                self._client.update(key.resource_kind, key.namespace, resource),
                timeout=self._timeout,
            )
        except TimeoutError:
            log.warning("image_update_timeout", timeout=self._timeout)
            image_updates_total.labels(kind=kind, result="timeout").inc()
            return False
        except Exception as exc:
            log.warning("image_update_failed", error=str(exc))
            image_updates_total.labels(kind=kind, result="error").inc()
            return False

        # Write-through; the listener reports the same tag once the rollout lands
        await self._index.replace_tag(key.image_name, key, new_tag)
        image_updates_total.labels(kind=kind, result="updated").inc()
        log.info("image_updated", old_tag=key.image_tag, new_tag=new_tag)
        return True

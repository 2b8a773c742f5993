"""Shared fixtures for image-reloader integration tests.

Provides an in-memory cluster (FakeClusterClient) and a scripted informer
(StaticInformer) so the whole watch → index → dispatch pipeline can be
exercised without a real Kubernetes API server.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Any

import pytest

from imagereloader.collector.informer import ResourceEventHandler
from imagereloader.dispatcher.cluster import ClusterClient
from imagereloader.models.events import PushedImage, PushEvent
from imagereloader.models.resources import ResourceKind
from imagereloader.service import WatcherService

# ---------------------------------------------------------------------------
# Object factories
# ---------------------------------------------------------------------------


def make_workload(
    name: str = "web",
    namespace: str = "default",
    containers: dict[str, str] | None = None,
    resource_version: str = "1",
) -> dict[str, Any]:
    """Build a Deployment/StatefulSet in wire shape with the given containers."""
    if containers is None:
        containers = {"web": "nginx:1.14.2"}
    return {
        "metadata": {
            "name": name,
            "namespace": namespace,
            "resourceVersion": resource_version,
            "labels": {"app": name},
        },
        "spec": {
            "replicas": 2,
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": {
                    "containers": [
                        {"name": c, "image": image, "ports": [{"containerPort": 80}]}
                        for c, image in containers.items()
                    ],
                },
            },
        },
    }


def make_push(*resource_urls: str) -> PushEvent:
    """Build a PushEvent for the given image references."""
    images = []
    for url in resource_urls:
        tag = url.rpartition(":")[2] if "@" not in url else ""
        images.append(PushedImage(resource_url=url, tag=tag, digest="sha256:0123abcd"))
    return PushEvent(images=images, source="harbor:library/test")


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeClusterClient(ClusterClient):
    """In-memory workload store recording every get/update."""

    def __init__(self) -> None:
        self.objects: dict[tuple[ResourceKind, str, str], dict[str, Any]] = {}
        self.gets: list[tuple[ResourceKind, str, str]] = []
        self.updates: list[tuple[ResourceKind, str, dict[str, Any]]] = []
        self.fail_get: set[str] = set()
        self.fail_update: set[str] = set()
        self.gate: asyncio.Event | None = None

    def add(self, kind: ResourceKind, obj: dict[str, Any]) -> None:
        meta = obj["metadata"]
        self.objects[(kind, meta["namespace"], meta["name"])] = copy.deepcopy(obj)

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> dict[str, Any]:
        self.gets.append((kind, namespace, name))
        if self.gate is not None:
            await self.gate.wait()
        if name in self.fail_get:
            raise RuntimeError(f"get {name} failed")
        try:
            return copy.deepcopy(self.objects[(kind, namespace, name)])
        except KeyError:
            raise RuntimeError(f"{kind} {namespace}/{name} not found") from None

    async def update(self, kind: ResourceKind, namespace: str, resource: dict[str, Any]) -> None:
        name = resource["metadata"]["name"]
        if name in self.fail_update:
            raise RuntimeError(f"update {name} failed")
        self.updates.append((kind, namespace, copy.deepcopy(resource)))
        self.objects[(kind, namespace, name)] = copy.deepcopy(resource)

    def image_of(self, kind: ResourceKind, namespace: str, name: str, container: str) -> str:
        pod_spec = self.objects[(kind, namespace, name)]["spec"]["template"]["spec"]
        return next(c["image"] for c in pod_spec["containers"] if c["name"] == container)


class StaticInformer:
    """Informer stand-in: delivers a fixed initial list, then scripted changes."""

    def __init__(self, kind: ResourceKind, handler: ResourceEventHandler, initial: list[dict[str, Any]]) -> None:
        self.kind = kind
        self.handler = handler
        self._initial = initial
        self._synced = asyncio.Event()
        self._stopped = asyncio.Event()

    @property
    def has_synced(self) -> bool:
        return self._synced.is_set()

    async def wait_for_sync(self) -> None:
        await self._synced.wait()

    async def run(self) -> None:
        for obj in self._initial:
            await self.handler.on_add(self.kind, obj)
        self._synced.set()
        await self._stopped.wait()

    def stop(self) -> None:
        self._stopped.set()

    async def emit_update(self, obj: dict[str, Any]) -> None:
        await self.handler.on_update(self.kind, obj, obj)

    async def emit_delete(self, obj: dict[str, Any]) -> None:
        await self.handler.on_delete(self.kind, obj)


# ---------------------------------------------------------------------------
# Service fixture
# ---------------------------------------------------------------------------


class Cluster:
    """Bundle of the fake client and the informers created for a service."""

    def __init__(self) -> None:
        self.client = FakeClusterClient()
        self.initial: dict[ResourceKind, list[dict[str, Any]]] = {kind: [] for kind in ResourceKind}
        self.informers: dict[ResourceKind, StaticInformer] = {}

    def seed(self, kind: ResourceKind, obj: dict[str, Any]) -> None:
        self.client.add(kind, obj)
        self.initial[kind].append(obj)

    def informer_factory(self, kind: ResourceKind, handler: ResourceEventHandler) -> StaticInformer:
        informer = StaticInformer(kind, handler, self.initial[kind])
        self.informers[kind] = informer
        return informer

    def build_service(self, **kwargs: Any) -> WatcherService:
        return WatcherService(client=self.client, informer_factory=self.informer_factory, **kwargs)  # type: ignore[arg-type]


@pytest.fixture
def cluster() -> Cluster:
    return Cluster()

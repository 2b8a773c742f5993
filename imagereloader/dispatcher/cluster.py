"""Cluster client used by the dispatcher to roll workloads.

Resources travel as plain dicts in Kubernetes wire shape (camelCase keys),
the same shape the informer delivers, so the dispatcher can edit a
container image without knowing about generated model classes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from kubernetes_asyncio import client as k8s_client

from imagereloader.models.resources import ResourceKind


class ClusterClient(ABC):
    """Read and replace watched workloads.  Either call may raise."""

    @abstractmethod
    async def get(self, kind: ResourceKind, namespace: str, name: str) -> dict[str, Any]:
        """Return the current resource."""

    @abstractmethod
    async def update(self, kind: ResourceKind, namespace: str, resource: dict[str, Any]) -> None:
        """Persist *resource*, replacing the stored object."""


class KubernetesWorkloadClient(ClusterClient):
    """ClusterClient backed by kubernetes-asyncio ``AppsV1Api``.

    ``update`` is a full replace that carries the resourceVersion from
    ``get``; a concurrent modification surfaces as a 409 ApiException.
    """

    def __init__(self, apps_api: k8s_client.AppsV1Api) -> None:
        self._apps = apps_api

    async def get(self, kind: ResourceKind, namespace: str, name: str) -> dict[str, Any]:
        if kind == ResourceKind.DEPLOYMENT:
            obj = await self._apps.read_namespaced_deployment(name=name, namespace=namespace)
        elif kind == ResourceKind.STATEFUL_SET:
            obj = await self._apps.read_namespaced_stateful_set(name=name, namespace=namespace)
        else:
            raise ValueError(f"Unsupported resource kind: {kind}")
        return self._apps.api_client.sanitize_for_serialization(obj)

    async def update(self, kind: ResourceKind, namespace: str, resource: dict[str, Any]) -> None:
        name = resource["metadata"]["name"]
        if kind == ResourceKind.DEPLOYMENT:
            await self._apps.replace_namespaced_deployment(name=name, namespace=namespace, body=resource)
        elif kind == ResourceKind.STATEFUL_SET:
            await self._apps.replace_namespaced_stateful_set(name=name, namespace=namespace, body=resource)
        else:
            raise ValueError(f"Unsupported resource kind: {kind}")


def set_container_image(resource: dict[str, Any], container_name: str, image: str) -> bool:
    """Point *container_name* in *resource*'s pod template at *image*.

    Returns False when the container is not present.
    """
    spec = resource.get("spec") or {}
    pod_spec = (spec.get("template") or {}).get("spec") or {}
    for container in pod_spec.get("containers") or []:
        if container.get("name") == container_name:
            container["image"] = image
            return True
    return False

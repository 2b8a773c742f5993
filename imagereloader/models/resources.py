"""Workload and index key data structures."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ResourceKind(StrEnum):
    """Workload kinds watched for image references."""

    DEPLOYMENT = "Deployment"
    STATEFUL_SET = "StatefulSet"


@dataclass(frozen=True)
class ResourceRef:
    """Identity of one watched workload."""

    kind: ResourceKind
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"


@dataclass(frozen=True)
class ResourceKey:
    """One container slot inside one workload, as last observed.

    Immutable: a tag change produces a new key that replaces the old one
    in the index.
    """

    namespace: str
    resource_name: str
    resource_kind: ResourceKind
    container_name: str
    image_name: str
    image_tag: str

    @property
    def owner(self) -> ResourceRef:
        return ResourceRef(kind=self.resource_kind, namespace=self.namespace, name=self.resource_name)

    @property
    def identity(self) -> tuple[str, str, str, str]:
        """(kind, namespace, resource name, container name) of the slot."""
        return (self.resource_kind, self.namespace, self.resource_name, self.container_name)

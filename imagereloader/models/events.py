"""Registry push event data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4


@dataclass(frozen=True)
class PushedImage:
    """One artifact reported by a registry push notification.

    ``resource_url`` is a full image reference (``name:tag`` or
    ``name@digest``) and is what gets written into container specs.
    """

    resource_url: str
    digest: str = ""
    tag: str = ""


@dataclass(frozen=True)
class PushEvent:
    """Canonical push event.

    Built by the webhook receiver, owned by the dispatcher once enqueued.
    """

    images: list[PushedImage]
    source: str = "harbor"
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    event_id: str = field(default_factory=lambda: str(uuid4()))


@dataclass
class DispatchReport:
    """Outcome of dispatching one push event."""

    event_id: str
    updated: int = 0
    skipped: int = 0
    failed: int = 0
    unparseable: int = 0

"""Pydantic request/response models for the image-reloader REST API."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from imagereloader.models.events import PushedImage, PushEvent

PUSH_ARTIFACT = "PUSH_ARTIFACT"

# 9999-12-31T23:59:59Z, the largest instant datetime can represent
_MAX_TIMESTAMP = 253402300799


class HarborResource(BaseModel):
    """One pushed artifact in a Harbor webhook."""

    digest: str = ""
    tag: str = ""
    resource_url: str = Field(min_length=1)


class HarborRepository(BaseModel):
    date_created: int | None = None
    name: str = ""
    namespace: str = ""
    repo_full_name: str = ""
    repo_type: str = ""


class HarborEventData(BaseModel):
    resources: list[HarborResource]
    repository: HarborRepository = Field(default_factory=HarborRepository)


class HarborWebhook(BaseModel):
    """Harbor webhook payload (``PUSH_ARTIFACT`` and other event types)."""

    type: str = Field(min_length=1)
    occur_at: int | None = Field(default=None, ge=0, le=_MAX_TIMESTAMP)
    operator: str = ""
    event_data: HarborEventData

    def to_push_event(self) -> PushEvent:
        timestamp = datetime.fromtimestamp(self.occur_at, tz=UTC) if self.occur_at else datetime.now(tz=UTC)
        repo = self.event_data.repository.repo_full_name
        return PushEvent(
            images=[
                PushedImage(resource_url=r.resource_url, digest=r.digest, tag=r.tag)
                for r in self.event_data.resources
            ],
            source=f"harbor:{repo}" if repo else "harbor",
            timestamp=timestamp,
        )


class WebhookResponse(BaseModel):
    status: str
    event_id: str = ""
    updated: int = 0
    skipped: int = 0
    failed: int = 0


class HealthResponse(BaseModel):
    status: str
    version: str
    indexed_images: int = 0
    pending_events: int = 0


class ErrorResponse(BaseModel):
    error: str
    detail: str = ""

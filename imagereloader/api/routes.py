"""Route handlers for the webhook receiver and health endpoint."""

from __future__ import annotations

import hmac

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from imagereloader.api.schemas import PUSH_ARTIFACT, HarborWebhook, HealthResponse, WebhookResponse
from imagereloader.dispatcher.dispatcher import DispatcherClosedError
from imagereloader.service import ServiceNotReadyError

_log = structlog.get_logger(component="api.routes")

webhook_router = APIRouter()
api_router = APIRouter()


def _require_auth(request: Request, authorization: str | None = Header(default=None)) -> None:
    """Compare the Authorization header with the configured shared secret."""
    secret: str = request.app.state.webhook_secret
    if not secret:
        return
    if authorization is None or not hmac.compare_digest(authorization, secret):
        _log.warning("webhook_unauthorized", client=request.client.host if request.client else "")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing authorization header.")


@webhook_router.post("/webhook", response_model=WebhookResponse, dependencies=[Depends(_require_auth)])
async def receive_webhook(payload: HarborWebhook, request: Request) -> WebhookResponse:
    """Dispatch a registry push and respond once affected workloads are rolled."""
    if payload.type != PUSH_ARTIFACT:
        _log.debug("webhook_ignored", type=payload.type)
        return WebhookResponse(status="ignored")

    watcher = request.app.state.watcher
    event = payload.to_push_event()
    try:
        report = await watcher.submit(event)
    except (ServiceNotReadyError, DispatcherClosedError) as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc

    return WebhookResponse(
        status="event received",
        event_id=report.event_id,
        updated=report.updated,
        skipped=report.skipped,
        failed=report.failed,
    )


@api_router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Report sync readiness; 503 until the index has been populated."""
    from imagereloader import __version__

    watcher = request.app.state.watcher
    if not watcher.ready:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Initial sync in progress.")
    return HealthResponse(
        status="ok",
        version=__version__,
        indexed_images=len(watcher.index),
        pending_events=watcher.dispatcher.pending,
    )

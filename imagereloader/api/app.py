"""FastAPI application factory for image-reloader.

Usage::

    from imagereloader.api.app import create_app

    app = create_app(watcher=watcher_service, webhook_secret="Bearer s3cret")

The factory is used by both the production bootstrap
(``imagereloader.app``) and unit tests.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException

from imagereloader.api.routes import api_router, webhook_router
from imagereloader.api.schemas import ErrorResponse

_log = structlog.get_logger(component="api.app")

_API_PREFIX = "/api/v1"

_STATUS_ERROR_CODES = {
    401: "UNAUTHORIZED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    503: "NOT_READY",
}


def create_app(watcher: Any, webhook_secret: str = "") -> FastAPI:
    """Create and configure the image-reloader FastAPI application.

    Args:
        watcher:         WatcherService that push events are submitted to.
        webhook_secret:  Expected ``Authorization`` header value for
                         ``POST /webhook``.  Empty disables the check.

    Returns:
        Configured FastAPI application, ready to be served by uvicorn.
    """
    from imagereloader import __version__

    app = FastAPI(
        title="image-reloader",
        summary="Roll Kubernetes workloads when a registry reports a new image",
        version=__version__,
        docs_url=f"{_API_PREFIX}/docs",
        redoc_url=None,
        openapi_url=f"{_API_PREFIX}/openapi.json",
    )

    app.state.watcher = watcher
    app.state.webhook_secret = webhook_secret

    # Harbor posts to a fixed path, so the webhook lives outside the prefix
    app.include_router(webhook_router)
    app.include_router(api_router, prefix=_API_PREFIX)
    app.mount("/metrics", make_asgi_app())

    # -----------------------------------------------------------------------
    # Exception handlers
    # -----------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Malformed webhooks are rejected before they reach the dispatcher."""
        errors = exc.errors()
        detail = ""
        if errors:
            locs = errors[0].get("loc", ())
            field = ".".join(str(part) for part in locs[1:]) if len(locs) > 1 else ""
            detail = f"{field}: {errors[0].get('msg', '')}" if field else str(errors[0].get("msg", ""))

        _log.info("webhook_rejected", detail=detail)
        return JSONResponse(
            status_code=400,
            content=ErrorResponse(error="INVALID_PAYLOAD", detail=detail).model_dump(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        _request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=_STATUS_ERROR_CODES.get(exc.status_code, "HTTP_ERROR"),
                detail=str(exc.detail),
            ).model_dump(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all for unhandled exceptions; never expose stack traces."""
        _log.error(
            "unhandled_exception",
            path=str(request.url.path),
            method=request.method,
            error=str(exc),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="INTERNAL_ERROR",
                detail="An unexpected error occurred.",
            ).model_dump(),
        )

    return app

"""REST API layer for image-reloader.

Exposes:
    create_app -- FastAPI application factory.
    build_app  -- Alias for create_app (used by imagereloader.app bootstrap).
"""

from imagereloader.api.app import create_app

build_app = create_app

__all__ = ["build_app", "create_app"]

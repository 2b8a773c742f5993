"""Structured logging configuration using structlog.

Two output formats are supported: ``json`` (default, one object per line on
stderr) and ``console`` for local runs against a kubeconfig.  Standard
library loggers used by uvicorn and kubernetes-asyncio are routed through
the same renderer so that every line on stderr shares one shape.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

_LIBRARY_LOGGERS = ("uvicorn", "uvicorn.error", "kubernetes_asyncio", "aiohttp")


def _shared_processors() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
    ]


def setup_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog and the stdlib root handler."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer: Any = structlog.dev.ConsoleRenderer() if fmt == "console" else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*_shared_processors(), renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_shared_processors(),
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)
    # Library chatter stays at warning unless we are debugging
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(log_level if log_level == logging.DEBUG else logging.WARNING)


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]

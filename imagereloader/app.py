"""Application bootstrap for image-reloader.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → K8s client → watcher service (informers,
initial sync, dispatcher) → REST

Shutdown is graceful: components are stopped in reverse startup order and
each stop error is caught and logged independently, so a failure in one
teardown does not prevent the rest from shutting down cleanly.
"""

from __future__ import annotations

import asyncio
import os
import signal
from typing import TYPE_CHECKING

from imagereloader.config import load_config
from imagereloader.models.config import ImageReloaderConfig
from imagereloader.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class ImageReloaderApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.
    """

    def __init__(self) -> None:
        self.config: ImageReloaderConfig | None = None

        self._api_client: object | None = None
        self._watcher: object | None = None
        self._rest_server: object | None = None

        # Background tasks that must be cancelled on shutdown
        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        self.config = load_config()

        setup_logging(self.config.log.level, self.config.log.format)
        self._log = get_logger("app")
        self._log.info("image-reloader starting", version=_version())

        await self._start_k8s_client()
        await self._start_watcher()
        await self._start_rest()

        self._running = True
        self._log.info("image-reloader started", port=self.config.api.port)

    async def _start_k8s_client(self) -> None:
        """Configure kubernetes-asyncio from in-cluster config or kubeconfig."""
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            try:
                k8s_config.load_incluster_config()
                self._log.info("k8s client configured from in-cluster service account")
            except k8s_config.ConfigException:
                # Honours KUBECONFIG, falling back to ~/.kube/config
                await k8s_config.load_kube_config()
                self._log.info("k8s client configured from kubeconfig")

            self._api_client = k8s_client.ApiClient()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    async def _start_watcher(self) -> None:
        """Build the watcher service and block until the index is synced."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting watcher service")
        try:
            from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

            from imagereloader.collector.informer import build_informer
            from imagereloader.dispatcher.cluster import KubernetesWorkloadClient
            from imagereloader.service import WatcherService

            apps_v1 = k8s_client.AppsV1Api(self._api_client)
            cluster = self.config.cluster

            watcher = WatcherService(
                client=KubernetesWorkloadClient(apps_v1),
                informer_factory=lambda kind, handler: build_informer(
                    kind,
                    handler,
                    apps_v1,
                    namespace=cluster.namespace,
                    resync_seconds=cluster.resync_seconds,
                ),
                sync_timeout=cluster.sync_timeout_seconds,
                update_timeout=cluster.update_timeout_seconds,
                queue_size=self.config.dispatcher.queue_size,
            )
            # Assigned before start() so a failed sync still gets stopped
            self._watcher = watcher
            await watcher.start()
            self._log.info(
                "watcher service started",
                namespace=cluster.namespace or "<all>",
                images=len(watcher.index),
            )
        except Exception as exc:
            raise _ComponentError("watcher", exc) from exc

    async def _start_rest(self) -> None:
        """Start the uvicorn server hosting the webhook receiver."""
        assert self._log is not None
        assert self.config is not None
        assert self._watcher is not None
        self._log.debug("starting rest api")
        try:
            import uvicorn  # type: ignore[import-untyped]

            from imagereloader.api import build_app

            secret_ref = self.config.webhook.auth_secret_ref
            webhook_secret = os.environ.get(secret_ref, "") if secret_ref else ""
            if secret_ref and not webhook_secret:
                self._log.warning("webhook auth secret ref is empty; authentication disabled", ref=secret_ref)

            fastapi_app = build_app(watcher=self._watcher, webhook_secret=webhook_secret)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            task = asyncio.create_task(server.serve(), name="rest-server")
            self._background_tasks.append(task)
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Gracefully stop all components in reverse startup order."""
        if not self._running and self._log is None:
            return

        log = self._log or get_logger("app")
        log.info("image-reloader shutting down")

        self._running = False

        # Stop accepting webhooks before draining the dispatcher
        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]

        for task in reversed(self._background_tasks):
            if not task.done():
                task.cancel()
        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._rest_server = None

        await self._stop_component("watcher", self._watcher)
        self._watcher = None
        await self._stop_k8s_client()

        log.info("image-reloader stopped")

    async def _stop_component(self, name: str, component: object | None) -> None:
        """Call stop() on a component if it has that method, catching all errors."""
        if component is None:
            return
        log = self._log or get_logger("app")
        stop_fn = getattr(component, "stop", None)
        if stop_fn is None:
            return
        try:
            result = stop_fn()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=_SHUTDOWN_GRACE_SECONDS)
        except TimeoutError:
            log.warning("component stop timed out", component=name, timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("component stop raised an error", component=name, error=str(exc))

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._api_client is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._api_client.close()  # type: ignore[attr-defined]
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._api_client = None


def _version() -> str:
    from imagereloader import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested.

    Returns only after the graceful stop, dispatcher drain included, has
    finished.
    """
    app = ImageReloaderApp()
    loop = asyncio.get_running_loop()

    shutdown_requested = asyncio.Event()
    signals = (signal.SIGTERM, signal.SIGINT)
    for sig in signals:
        loop.add_signal_handler(sig, shutdown_requested.set)

    try:
        await app.start()
        await shutdown_requested.wait()
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        raise SystemExit(1) from exc
    finally:
        await app.stop()
        for sig in signals:
            loop.remove_signal_handler(sig)


def run() -> None:
    """Console-script entrypoint (``image-reloader``)."""
    asyncio.run(main())

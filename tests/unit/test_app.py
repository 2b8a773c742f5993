"""Tests for the application entrypoint's shutdown handling."""

from __future__ import annotations

import asyncio
import os
import signal

import pytest

from imagereloader import app as app_module
from imagereloader.app import ImageReloaderApp, _ComponentError, main
from imagereloader.observability.logging import get_logger


class _SlowWatcher:
    """Watcher stand-in whose stop takes a while, like a dispatcher drain."""

    def __init__(self, record: list[str], delay: float) -> None:
        self._record = record
        self._delay = delay

    async def stop(self) -> None:
        await asyncio.sleep(self._delay)
        self._record.append("drained")


class TestMainShutdown:
    async def test_sigterm_waits_for_watcher_drain(self, monkeypatch: pytest.MonkeyPatch) -> None:
        done: list[str] = []

        async def fake_start(self: ImageReloaderApp) -> None:
            self._log = get_logger("app")
            self._watcher = _SlowWatcher(done, delay=0.3)
            self._running = True

        monkeypatch.setattr(ImageReloaderApp, "start", fake_start)
        asyncio.get_running_loop().call_later(0.05, os.kill, os.getpid(), signal.SIGTERM)

        await asyncio.wait_for(main(), timeout=5.0)

        assert done == ["drained"]

    async def test_startup_failure_exits_non_zero_after_stopping(self, monkeypatch: pytest.MonkeyPatch) -> None:
        done: list[str] = []

        async def failing_start(self: ImageReloaderApp) -> None:
            self._log = get_logger("app")
            self._watcher = _SlowWatcher(done, delay=0.0)
            raise _ComponentError("watcher", TimeoutError("initial sync timed out"))

        monkeypatch.setattr(ImageReloaderApp, "start", failing_start)

        with pytest.raises(SystemExit) as exc_info:
            await main()

        assert exc_info.value.code == 1
        assert done == ["drained"]

    async def test_signal_handlers_are_removed_on_exit(self, monkeypatch: pytest.MonkeyPatch) -> None:
        async def fake_start(self: ImageReloaderApp) -> None:
            self._log = get_logger("app")
            self._running = True

        monkeypatch.setattr(app_module.ImageReloaderApp, "start", fake_start)
        loop = asyncio.get_running_loop()
        loop.call_later(0.05, os.kill, os.getpid(), signal.SIGTERM)

        await asyncio.wait_for(main(), timeout=5.0)

        assert loop.remove_signal_handler(signal.SIGTERM) is False

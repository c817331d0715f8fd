"""Signal-driven graceful shutdown for the relay.

Usage:
    ```python
    async with GracefulShutdown() as shutdown:
        app = RelayApp(settings)
        shutdown.register_cleanup(app.stop)
        await app.start()
        await shutdown.wait()
    ```
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Callable
from contextlib import suppress
from types import FrameType
from typing import Any

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGTERM, signal.SIGINT)


class GracefulShutdown:
    """Turns SIGTERM/SIGINT into an awaitable shutdown request.

    The first signal sets the shutdown event; a second one exits the
    process immediately. Registered cleanup callbacks (sync or async) run
    when the context manager exits.
    """

    def __init__(self) -> None:
        self._event: asyncio.Event | None = None
        self._requested = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._original_handlers: dict[signal.Signals, Any] = {}
        self._cleanup_callbacks: list[Callable[[], Any]] = []

    @property
    def is_shutdown_requested(self) -> bool:
        """Whether shutdown has been requested."""
        return self._requested

    def register_cleanup(self, callback: Callable[[], Any]) -> None:
        """Register a callable (sync or async) to run on exit."""
        self._cleanup_callbacks.append(callback)

    def request_shutdown(self) -> None:
        """Request shutdown from application code."""
        if self._requested:
            return
        self._requested = True
        logger.info("Shutdown requested")
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        """Block until shutdown is requested."""
        if self._event is None:
            self._event = asyncio.Event()
        if self._requested:
            self._event.set()
        await self._event.wait()

    def install_signal_handlers(self) -> None:
        """Trap SIGTERM and SIGINT."""
        self._loop = asyncio.get_running_loop()
        if self._event is None:
            self._event = asyncio.Event()

        for sig in SHUTDOWN_SIGNALS:
            try:
                if sys.platform == "win32":
                    self._original_handlers[sig] = signal.signal(sig, self._handle_signal_sync)
                else:
                    self._loop.add_signal_handler(sig, self._handle_signal, sig)
            except (ValueError, OSError, NotImplementedError) as e:
                logger.warning("Could not install handler for %s: %s", sig.name, e)

    def remove_signal_handlers(self) -> None:
        """Restore the default signal handling."""
        if sys.platform == "win32":
            for sig, original in self._original_handlers.items():
                with suppress(ValueError, OSError):
                    signal.signal(sig, original)
            self._original_handlers.clear()
        elif self._loop is not None:
            for sig in SHUTDOWN_SIGNALS:
                with suppress(ValueError, OSError, NotImplementedError):
                    self._loop.remove_signal_handler(sig)

    def _handle_signal(self, sig: signal.Signals) -> None:
        if self._requested:
            logger.warning("Received %s again - forcing exit!", sig.name)
            sys.exit(128 + sig.value)
        logger.info("Received %s - shutting down...", sig.name)
        self.request_shutdown()

    def _handle_signal_sync(self, sig: int, _frame: FrameType | None) -> None:
        self._handle_signal(signal.Signals(sig))

    async def run_cleanup_callbacks(self) -> None:
        """Run registered callbacks, logging failures."""
        for callback in self._cleanup_callbacks:
            try:
                result = callback()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("Cleanup callback failed: %s", e)

    async def __aenter__(self) -> GracefulShutdown:
        self.install_signal_handlers()
        return self

    async def __aexit__(self, *_args: Any) -> None:
        self.remove_signal_handlers()
        await self.run_cleanup_callbacks()

"""Debounced change detection for the address file.

The file is polled for changes to its modification time, size or inode.
Each raw change cancels and rearms a single-shot timer; the change handler
only runs once the file has been quiet for the debounce period.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 0.5
DEFAULT_DEBOUNCE_SECONDS = 1.0

ChangeCallback = Callable[[], Awaitable[None]]
FileSignature = tuple[int, int, int]


class FileChangeDetector:
    """Watches one file and raises a debounced "changed" signal.

    The handler never runs concurrently with itself: a signal that fires
    while the handler is still running schedules exactly one more run.

    Example:
        ```python
        detector = FileChangeDetector("swap_address.txt", producer.on_change)
        await detector.start()
        ...
        await detector.stop()
        ```
    """

    def __init__(
        self,
        path: Path | str,
        on_change: ChangeCallback,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        """Initialize the detector.

        Args:
            path: File to watch.
            on_change: Coroutine function called after each quiet period.
            poll_interval: Seconds between file checks.
            debounce: Quiet period that must follow the last raw change.
        """
        self.path = Path(path)
        self._on_change = on_change
        self._poll_interval = poll_interval
        self._debounce = debounce

        self._signature: FileSignature | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._handler_task: asyncio.Task[None] | None = None
        self._rerun = False

        self.raw_events = 0
        self.signals_fired = 0

    @property
    def is_running(self) -> bool:
        """Whether the polling loop is active."""
        return self._poll_task is not None and not self._poll_task.done()

    @property
    def is_armed(self) -> bool:
        """Whether a debounced signal is pending."""
        return self._timer is not None

    async def start(self) -> None:
        """Record the file's current state and start polling it."""
        if self.is_running:
            logger.warning("Change detector for %s already running", self.path)
            return

        self._signature = self._stat_signature()
        self._poll_task = asyncio.create_task(self._poll_loop(), name="address-file-watch")
        logger.info("Watching %s for changes", self.path)

    async def stop(self) -> None:
        """Stop polling, drop any pending signal and wait for a running handler."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None

        self._rerun = False
        if self._handler_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._handler_task
            self._handler_task = None

    def notify_raw_event(self) -> None:
        """Register one raw change and (re)start the quiet-period timer."""
        self.raw_events += 1
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().call_later(self._debounce, self._fire)

    def _fire(self) -> None:
        """Timer callback: run the handler, or queue one more run if busy."""
        self._timer = None
        self.signals_fired += 1

        if self._handler_task is not None and not self._handler_task.done():
            self._rerun = True
            return

        self._handler_task = asyncio.get_running_loop().create_task(
            self._run_handler(), name="address-file-change"
        )

    async def _run_handler(self) -> None:
        """Invoke the change handler, containing its failures."""
        while True:
            self._rerun = False
            try:
                await self._on_change()
            except Exception:
                logger.exception("Change handler failed for %s", self.path)
            if not self._rerun:
                return

    def _stat_signature(self) -> FileSignature | None:
        """Identify the current file version, or None if it cannot be stat'ed."""
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Cannot stat %s: %s", self.path, e)
            return None
        return (stat.st_mtime_ns, stat.st_size, stat.st_ino)

    async def _poll_loop(self) -> None:
        """Compare the file's signature every poll interval."""
        while True:
            await asyncio.sleep(self._poll_interval)
            signature = self._stat_signature()
            if signature != self._signature:
                self._signature = signature
                logger.debug("File %s changed on disk", self.path)
                self.notify_raw_event()

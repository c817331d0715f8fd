"""Rate-limited outbound message queue.

All sends to the chat go through a single dispatch loop that keeps at most
one message in flight, spaces consecutive sends by a minimum interval and
pauses globally when the server reports a rate limit.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

from wallet_relay.delivery.errors import RateLimitedError
from wallet_relay.delivery.models import PendingMessage, SendOptions

logger = logging.getLogger(__name__)

DEFAULT_MIN_INTERVAL_SECONDS = 1.0
DEFAULT_MIN_BACKOFF_SECONDS = 1.0
DEFAULT_DEAD_LETTER_SIZE = 100

# Log delivery progress every N messages while a backlog remains
PROGRESS_LOG_EVERY = 50

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class MessageSender(Protocol):
    """Protocol for the primitive that performs one network send."""

    async def send_message(self, destination: str, body: str, options: SendOptions) -> object:
        """Send one message. Raises RateLimitedError when throttled."""
        ...


@dataclass
class QueueStats:
    """Counters for the delivery queue."""

    enqueued: int = 0
    delivered: int = 0
    rate_limited: int = 0
    abandoned: int = 0


class DeliveryQueue:
    """Ordered single-consumer queue of outbound messages.

    Messages are sent in FIFO order. A message rejected with a rate-limit
    error goes back to the front of the queue and the whole queue waits
    until the server-specified delay has passed. Any other failure abandons
    the message: it is logged, kept in the bounded ``abandoned`` record and
    the queue moves on.

    ``enqueue`` is fire-and-forget and must be called from the event loop
    that owns the queue.

    Example:
        ```python
        queue = DeliveryQueue(telegram_client, min_interval=1.0)
        queue.enqueue(PendingMessage(destination="123", body="hello"))
        await queue.join()
        ```
    """

    def __init__(
        self,
        sender: MessageSender,
        *,
        min_interval: float = DEFAULT_MIN_INTERVAL_SECONDS,
        min_backoff: float = DEFAULT_MIN_BACKOFF_SECONDS,
        dead_letter_size: int = DEFAULT_DEAD_LETTER_SIZE,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the queue.

        Args:
            sender: Delivery primitive used for every send.
            min_interval: Minimum seconds between two consecutive sends.
            min_backoff: Lower bound applied to server retry-after hints.
            dead_letter_size: Number of abandoned messages kept for inspection.
            clock: Monotonic time source.
            sleep: Coroutine used for every wait.
        """
        self._sender = sender
        self._min_interval = min_interval
        self._min_backoff = min_backoff
        self._clock = clock
        self._sleep = sleep

        self._pending: deque[PendingMessage] = deque()
        self._in_flight: PendingMessage | None = None
        self._resume_at = float("-inf")
        self._next_send_at = float("-inf")
        self._task: asyncio.Task[None] | None = None
        self._stats = QueueStats()

        self.abandoned: deque[PendingMessage] = deque(maxlen=dead_letter_size)

    @property
    def pending_count(self) -> int:
        """Number of messages waiting to be sent (excluding the one in flight)."""
        return len(self._pending)

    @property
    def in_flight(self) -> PendingMessage | None:
        """Message currently being sent, if any."""
        return self._in_flight

    @property
    def resume_at(self) -> float:
        """Clock value before which no send is attempted."""
        return self._resume_at

    @property
    def is_running(self) -> bool:
        """Whether the dispatch loop is active."""
        return self._task is not None and not self._task.done()

    @property
    def stats(self) -> QueueStats:
        """Delivery counters."""
        return self._stats

    def enqueue(self, message: PendingMessage) -> None:
        """Append a message and wake the dispatch loop if it is idle."""
        self._pending.append(message)
        self._stats.enqueued += 1
        self._wake()

    def enqueue_many(self, messages: list[PendingMessage]) -> None:
        """Append several messages in order."""
        for message in messages:
            self._pending.append(message)
            self._stats.enqueued += 1
        if messages:
            self._wake()

    def extend_backoff(self, retry_after: float) -> float:
        """Push the resume time to ``now + retry_after`` if that is later.

        The resume time never moves backward, so overlapping rate-limit
        signals leave the furthest deadline in effect.

        Returns:
            The resume time now in effect.
        """
        candidate = self._clock() + max(retry_after, self._min_backoff)
        if candidate > self._resume_at:
            self._resume_at = candidate
        return self._resume_at

    async def join(self) -> None:
        """Wait until the queue is empty and the dispatch loop is idle."""
        while self._task is not None and not self._task.done():
            await asyncio.wait({self._task})

    async def stop(self, *, drain_timeout: float = 0.0) -> None:
        """Stop the dispatch loop.

        Args:
            drain_timeout: Seconds to let pending messages flush before
                cancelling. Unsent messages stay in the queue.
        """
        if drain_timeout > 0 and self.is_running:
            try:
                await asyncio.wait_for(self.join(), timeout=drain_timeout)
            except TimeoutError:
                logger.warning(
                    "Delivery queue did not drain within %.1fs (%d pending)",
                    drain_timeout,
                    len(self._pending),
                )

        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        if self._pending:
            logger.warning("Delivery queue stopped with %d unsent messages", len(self._pending))

    def _wake(self) -> None:
        """Start the dispatch loop unless one is already running."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._dispatch_loop(), name="delivery-queue"
        )

    async def _dispatch_loop(self) -> None:
        """Send queued messages one at a time until the queue is empty."""
        while self._pending:
            wait = max(self._resume_at, self._next_send_at) - self._clock()
            if wait > 0:
                await self._sleep(wait)
                continue

            await self._attempt(self._pending.popleft())

    async def _attempt(self, message: PendingMessage) -> None:
        """Send one message and classify the outcome."""
        self._in_flight = message
        try:
            await self._sender.send_message(message.destination, message.body, message.options)
        except asyncio.CancelledError:
            self._pending.appendleft(message)
            raise
        except RateLimitedError as e:
            self._pending.appendleft(message)
            self._stats.rate_limited += 1
            resume_at = self.extend_backoff(e.retry_after)
            logger.warning(
                "Rate limited sending to %s (retry after %ss), pausing queue for %.1fs, "
                "%d pending",
                message.destination,
                e.retry_after,
                resume_at - self._clock(),
                len(self._pending),
            )
            return
        except Exception as e:
            self.abandoned.append(message)
            self._stats.abandoned += 1
            logger.error(
                "Abandoning message to %s after delivery error: %s | %s",
                message.destination,
                e,
                message.preview(),
            )
        else:
            self._stats.delivered += 1
            logger.debug("Delivered message to %s: %s", message.destination, message.preview())
            if self._pending and self._stats.delivered % PROGRESS_LOG_EVERY == 0:
                logger.info(
                    "Progress: %d messages delivered, %d pending",
                    self._stats.delivered,
                    len(self._pending),
                )
        finally:
            self._in_flight = None

        self._next_send_at = self._clock() + self._min_interval

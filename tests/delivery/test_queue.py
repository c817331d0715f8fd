"""Tests for the rate-limited delivery queue."""

from __future__ import annotations

import asyncio
import logging

import pytest

from wallet_relay.delivery.errors import RateLimitedError, TelegramAPIError
from wallet_relay.delivery.models import PendingMessage, SendOptions
from wallet_relay.delivery.queue import DeliveryQueue

# ============================================================================
# Fixtures
# ============================================================================


class FakeClock:
    """Virtual monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class RecordingSender:
    """Sender that records (time, body) and raises scripted errors."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.calls: list[tuple[float, str]] = []
        self.failures: dict[str, list[Exception]] = {}

    def fail(self, body: str, *errors: Exception) -> None:
        self.failures.setdefault(body, []).extend(errors)

    async def send_message(self, destination: str, body: str, options: SendOptions) -> None:
        self.calls.append((self.clock.now, body))
        await asyncio.sleep(0)
        pending = self.failures.get(body)
        if pending:
            raise pending.pop(0)

    @property
    def bodies(self) -> list[str]:
        return [body for _, body in self.calls]


def message(body: str) -> PendingMessage:
    return PendingMessage(destination="chat-1", body=body)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sender(clock: FakeClock) -> RecordingSender:
    return RecordingSender(clock)


@pytest.fixture
def queue(sender: RecordingSender, clock: FakeClock) -> DeliveryQueue:
    return DeliveryQueue(sender, min_interval=1.0, min_backoff=1.0, clock=clock, sleep=clock.sleep)


# ============================================================================
# Ordering and spacing
# ============================================================================


class TestOrdering:
    """Messages go out in FIFO order."""

    async def test_fifo_without_failures(
        self, queue: DeliveryQueue, sender: RecordingSender
    ) -> None:
        for body in ["a", "b", "c", "d"]:
            queue.enqueue(message(body))

        await queue.join()

        assert sender.bodies == ["a", "b", "c", "d"]
        assert queue.stats.delivered == 4
        assert queue.pending_count == 0

    async def test_enqueue_while_running_appends_to_back(
        self, queue: DeliveryQueue, sender: RecordingSender
    ) -> None:
        queue.enqueue_many([message("a"), message("b")])
        await asyncio.sleep(0)
        queue.enqueue(message("c"))

        await queue.join()

        assert sender.bodies == ["a", "b", "c"]

    async def test_enqueue_many_empty_does_not_start_loop(self, queue: DeliveryQueue) -> None:
        queue.enqueue_many([])
        assert queue.is_running is False


class TestSpacing:
    """Consecutive sends respect the minimum interval."""

    async def test_successive_sends_are_spaced(
        self, queue: DeliveryQueue, sender: RecordingSender
    ) -> None:
        queue.enqueue_many([message("a"), message("b"), message("c")])

        await queue.join()

        times = [t for t, _ in sender.calls]
        assert times == [0.0, 1.0, 2.0]
        assert all(later - earlier >= 1.0 for earlier, later in zip(times, times[1:]))

    async def test_spacing_holds_across_idle_periods(
        self, queue: DeliveryQueue, sender: RecordingSender
    ) -> None:
        queue.enqueue(message("a"))
        await queue.join()
        assert queue.is_running is False

        queue.enqueue(message("b"))
        await queue.join()

        assert [t for t, _ in sender.calls] == [0.0, 1.0]

    async def test_zero_interval_sends_back_to_back(
        self, sender: RecordingSender, clock: FakeClock
    ) -> None:
        queue = DeliveryQueue(sender, min_interval=0.0, clock=clock, sleep=clock.sleep)
        queue.enqueue_many([message("a"), message("b")])

        await queue.join()

        assert [t for t, _ in sender.calls] == [0.0, 0.0]


# ============================================================================
# Rate limiting
# ============================================================================


class TestRateLimit:
    """Rate-limited messages are retried first after the backoff window."""

    async def test_rate_limited_message_retried_before_later_ones(
        self, queue: DeliveryQueue, sender: RecordingSender
    ) -> None:
        sender.fail("A", RateLimitedError(5))
        queue.enqueue_many([message("A"), message("B")])

        await queue.join()

        assert sender.calls == [(0.0, "A"), (5.0, "A"), (6.0, "B")]
        assert queue.stats.rate_limited == 1
        assert queue.stats.delivered == 2

    async def test_no_send_attempt_inside_backoff_window(
        self, queue: DeliveryQueue, sender: RecordingSender
    ) -> None:
        sender.fail("A", RateLimitedError(5))
        queue.enqueue_many([message("A"), message("B"), message("C")])

        await queue.join()

        attempt_times = [t for t, _ in sender.calls]
        assert not [t for t in attempt_times if 0.0 < t < 5.0]

    async def test_retry_after_has_a_floor(
        self, queue: DeliveryQueue, sender: RecordingSender
    ) -> None:
        sender.fail("A", RateLimitedError(0))
        queue.enqueue(message("A"))

        await queue.join()

        assert sender.calls == [(0.0, "A"), (1.0, "A")]

    async def test_existing_larger_backoff_wins(
        self, queue: DeliveryQueue, sender: RecordingSender, clock: FakeClock
    ) -> None:
        original_send = sender.send_message

        async def send_and_extend(destination: str, body: str, options: SendOptions) -> None:
            if not sender.calls:
                # Another caller hit a longer limit while this send was in flight
                queue.extend_backoff(30)
            await original_send(destination, body, options)

        sender.send_message = send_and_extend  # type: ignore[method-assign]
        sender.fail("A", RateLimitedError(5))
        queue.enqueue(message("A"))

        await queue.join()

        assert sender.calls == [(0.0, "A"), (30.0, "A")]

    async def test_repeated_rate_limits_keep_message_at_front(
        self, queue: DeliveryQueue, sender: RecordingSender
    ) -> None:
        sender.fail("A", RateLimitedError(2), RateLimitedError(3))
        queue.enqueue_many([message("A"), message("B")])

        await queue.join()

        assert sender.bodies == ["A", "A", "A", "B"]
        assert [t for t, _ in sender.calls] == [0.0, 2.0, 5.0, 6.0]

    async def test_rate_limit_is_logged(
        self,
        queue: DeliveryQueue,
        sender: RecordingSender,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        sender.fail("A", RateLimitedError(5))
        queue.enqueue(message("A"))

        with caplog.at_level(logging.WARNING):
            await queue.join()

        assert "Rate limited" in caplog.text


class TestBackoffState:
    """The resume time only ever moves forward."""

    def test_overlapping_signals_keep_the_furthest_deadline(
        self, sender: RecordingSender
    ) -> None:
        clock = FakeClock(start=100.0)
        queue = DeliveryQueue(sender, clock=clock, sleep=clock.sleep)

        assert queue.extend_backoff(2) == 102.0
        assert queue.extend_backoff(10) == 110.0
        assert queue.extend_backoff(3) == 110.0
        assert queue.resume_at == 110.0

    def test_min_backoff_applies(self, sender: RecordingSender, clock: FakeClock) -> None:
        queue = DeliveryQueue(sender, min_backoff=1.0, clock=clock, sleep=clock.sleep)

        assert queue.extend_backoff(0.2) == 1.0


# ============================================================================
# Non-retryable failures
# ============================================================================


class TestNonRetryable:
    """Other failures abandon the message and the queue moves on."""

    async def test_failed_message_is_not_retried(
        self, queue: DeliveryQueue, sender: RecordingSender
    ) -> None:
        sender.fail("A", TelegramAPIError("sendMessage", 400, "Bad Request"))
        queue.enqueue_many([message("A"), message("B")])

        await queue.join()

        assert sender.calls == [(0.0, "A"), (1.0, "B")]
        assert queue.stats.abandoned == 1
        assert queue.stats.delivered == 1
        assert [m.body for m in queue.abandoned] == ["A"]

    async def test_unexpected_exception_is_contained(
        self, queue: DeliveryQueue, sender: RecordingSender
    ) -> None:
        sender.fail("A", RuntimeError("connection reset"))
        queue.enqueue_many([message("A"), message("B")])

        await queue.join()

        assert sender.bodies == ["A", "B"]

    async def test_abandoned_message_is_logged_with_content(
        self,
        queue: DeliveryQueue,
        sender: RecordingSender,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        sender.fail("0xdeadbeef", TelegramAPIError("sendMessage", 400, "can't parse entities"))
        queue.enqueue(message("0xdeadbeef"))

        with caplog.at_level(logging.ERROR):
            await queue.join()

        assert "0xdeadbeef" in caplog.text
        assert "can't parse entities" in caplog.text

    async def test_dead_letter_record_is_bounded(
        self, sender: RecordingSender, clock: FakeClock
    ) -> None:
        queue = DeliveryQueue(
            sender, min_interval=0.0, dead_letter_size=2, clock=clock, sleep=clock.sleep
        )
        for body in ["a", "b", "c"]:
            sender.fail(body, RuntimeError("boom"))
            queue.enqueue(message(body))

        await queue.join()

        assert [m.body for m in queue.abandoned] == ["b", "c"]
        assert queue.stats.abandoned == 3


# ============================================================================
# Dispatch loop lifecycle
# ============================================================================


class TestDispatchLoop:
    """A single dispatch loop, never more than one send in flight."""

    async def test_at_most_one_message_in_flight(self, clock: FakeClock) -> None:
        in_flight = 0
        max_in_flight = 0

        class SlowSender:
            async def send_message(self, destination: str, body: str, options: SendOptions) -> None:
                nonlocal in_flight, max_in_flight
                in_flight += 1
                max_in_flight = max(max_in_flight, in_flight)
                for _ in range(3):
                    await asyncio.sleep(0)
                in_flight -= 1

        queue = DeliveryQueue(SlowSender(), min_interval=0.0, clock=clock, sleep=clock.sleep)
        for i in range(5):
            queue.enqueue(message(str(i)))
            await asyncio.sleep(0)

        await queue.join()

        assert max_in_flight == 1

    async def test_enqueue_reuses_running_loop(self, queue: DeliveryQueue) -> None:
        queue.enqueue(message("a"))
        task = queue._task
        queue.enqueue(message("b"))

        assert queue._task is task
        await queue.join()

    async def test_loop_goes_idle_when_empty(self, queue: DeliveryQueue) -> None:
        queue.enqueue(message("a"))
        assert queue.is_running is True

        await queue.join()

        assert queue.is_running is False
        assert queue.in_flight is None

    async def test_stop_keeps_in_flight_message_queued(self, clock: FakeClock) -> None:
        started = asyncio.Event()

        class HangingSender:
            async def send_message(self, destination: str, body: str, options: SendOptions) -> None:
                started.set()
                await asyncio.Event().wait()

        queue = DeliveryQueue(HangingSender(), clock=clock, sleep=clock.sleep)
        queue.enqueue_many([message("a"), message("b")])
        await started.wait()
        assert queue.in_flight is not None

        await queue.stop()

        assert queue.is_running is False
        assert queue.pending_count == 2

    async def test_stop_drains_within_timeout(
        self, queue: DeliveryQueue, sender: RecordingSender
    ) -> None:
        queue.enqueue_many([message("a"), message("b")])

        await queue.stop(drain_timeout=1.0)

        assert sender.bodies == ["a", "b"]
        assert queue.pending_count == 0

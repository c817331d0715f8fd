"""Turns address file changes into queued notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wallet_relay.delivery.formatter import AddressKind, MessageFormatter
    from wallet_relay.delivery.queue import DeliveryQueue
    from wallet_relay.monitor.addresses import AddressBook
    from wallet_relay.monitor.notified import NotifiedSet

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_THRESHOLD = 50


@dataclass
class CheckResult:
    """Outcome of one change check.

    Attributes:
        total: Addresses currently listed.
        new_addresses: Addresses announced by this check, in file order.
        summarized: True if they were announced as one summary message.
        messages_enqueued: Number of messages handed to the queue.
    """

    total: int
    new_addresses: list[str] = field(default_factory=list)
    summarized: bool = False
    messages_enqueued: int = 0


class NotificationProducer:
    """Diffs the address list and enqueues notifications for new entries.

    An address is new when it is listed now but was neither listed at the
    previous check nor announced before (the persisted notified-set). Up to
    ``summary_threshold`` new addresses are announced one message each; a
    larger batch is announced as a single summary.
    """

    def __init__(
        self,
        address_book: AddressBook,
        notified: NotifiedSet,
        queue: DeliveryQueue,
        formatter: MessageFormatter,
        *,
        summary_threshold: int = DEFAULT_SUMMARY_THRESHOLD,
    ) -> None:
        self._book = address_book
        self._notified = notified
        self._queue = queue
        self._formatter = formatter
        self.summary_threshold = summary_threshold

    async def on_change(self) -> None:
        """Debounced change-signal handler."""
        logger.info("Address file changed: %s", self._book.path)
        self.check()

    def check(self, kind: AddressKind = "new") -> CheckResult:
        """Read the list, announce new addresses and record them as notified.

        A list that cannot be read changes nothing; the known set is kept
        for the next check.
        """
        current = self._book.read()
        if current is None:
            return CheckResult(total=len(self._book.known))

        new = [
            address
            for address in current
            if address not in self._book.known and address not in self._notified
        ]
        result = CheckResult(total=len(current), new_addresses=new)

        if new:
            if len(new) > self.summary_threshold:
                messages = [self._formatter.summary(new, kind)]
                result.summarized = True
            else:
                messages = [self._formatter.address(address, kind) for address in new]
            self._queue.enqueue_many(messages)
            result.messages_enqueued = len(messages)
            logger.info(
                "Found %d %s addresses, enqueued %d messages",
                len(new),
                kind,
                len(messages),
            )

        self._book.known = set(current)

        if new:
            self._notified.add_all(new)
            self._notified.save()
            logger.info("Now monitoring %d addresses", len(current))

        return result

    def announce_startup(self, *, announce_existing: bool = True) -> CheckResult:
        """Send the startup notice and optionally announce unannounced addresses.

        Args:
            announce_existing: Announce listed addresses missing from the
                notified-set. When False they are taken as known silently.
        """
        current = self._book.read()
        count = len(current) if current is not None else 0
        logger.info("Monitoring %d addresses in %s", count, self._book.path)
        self._queue.enqueue(self._formatter.startup(count))

        if current is None:
            return CheckResult(total=0)

        if announce_existing:
            self._book.known = set()
            return self.check("existing")

        self._book.known = set(current)
        return CheckResult(total=len(current))

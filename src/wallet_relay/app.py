"""Application wiring.

RelayApp owns every long-lived component and the state they share (the
known-address set, the notified-set and the delivery queue), and starts
and stops them in order.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from wallet_relay.bot.commands import CommandHandler
from wallet_relay.bot.poller import UpdatePoller
from wallet_relay.delivery.formatter import MessageFormatter
from wallet_relay.delivery.queue import DeliveryQueue, MessageSender
from wallet_relay.delivery.telegram import DryRunSender, TelegramClient
from wallet_relay.monitor.addresses import AddressBook
from wallet_relay.monitor.notified import NotifiedSet
from wallet_relay.monitor.producer import NotificationProducer
from wallet_relay.monitor.watcher import FileChangeDetector

if TYPE_CHECKING:
    from wallet_relay.config import Settings

logger = logging.getLogger(__name__)

# Seconds given to pending messages to flush on shutdown
DEFAULT_DRAIN_TIMEOUT = 5.0


class RelayApp:
    """The running relay: file watcher, producer, delivery queue and bot commands.

    Data flows from the change detector through the producer into the
    delivery queue, which alone talks to the chat.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        dry_run: bool = False,
        announce_existing: bool | None = None,
        client: TelegramClient | None = None,
    ) -> None:
        """Build all components from settings.

        Args:
            settings: Application settings.
            dry_run: Log outbound messages instead of sending them.
            announce_existing: Override ``settings.announce_existing``.
            client: Bot API client; built from settings when omitted.
        """
        telegram = settings.telegram
        watch = settings.watch
        delivery = settings.delivery

        self.dry_run = dry_run
        self.announce_existing = (
            settings.announce_existing if announce_existing is None else announce_existing
        )

        self.client = client or TelegramClient(
            telegram.bot_token.get_secret_value(),
            api_url=telegram.api_url,
            timeout=telegram.timeout,
        )
        sender: MessageSender = DryRunSender() if dry_run else self.client
        self.queue = DeliveryQueue(
            sender,
            min_interval=delivery.min_interval,
            min_backoff=delivery.min_backoff,
        )
        self.formatter = MessageFormatter(
            telegram.chat_id,
            watch.addresses_file,
            summary_preview_count=delivery.summary_preview_count,
        )
        self.address_book = AddressBook(watch.addresses_file)
        self.notified = NotifiedSet.load(watch.notified_file)
        self.producer = NotificationProducer(
            self.address_book,
            self.notified,
            self.queue,
            self.formatter,
            summary_threshold=delivery.summary_threshold,
        )
        self.commands = CommandHandler(
            self.client,
            self.queue,
            self.formatter,
            self.address_book,
            self.notified,
            destination=telegram.chat_id,
        )
        self.detector = FileChangeDetector(
            watch.addresses_file,
            self.producer.on_change,
            poll_interval=watch.poll_interval,
            debounce=watch.debounce,
        )
        self.poller = UpdatePoller(
            self.client,
            self.commands.handle_update,
            poll_timeout=telegram.poll_timeout,
        )
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether start() completed and stop() has not been called."""
        return self._running

    async def start(self) -> None:
        """Announce startup, then start watching the file and polling commands."""
        if self._running:
            logger.warning("Relay already running")
            return

        if self.dry_run:
            logger.info("Dry run: outbound messages will only be logged")

        result = self.producer.announce_startup(announce_existing=self.announce_existing)
        if result.new_addresses:
            logger.info("Announcing %d existing addresses", len(result.new_addresses))

        await self.detector.start()
        await self.poller.start()
        self._running = True
        logger.info("Relay started")

    async def stop(self, *, drain_timeout: float = DEFAULT_DRAIN_TIMEOUT) -> None:
        """Stop polling and watching, then let the queue drain briefly."""
        if not self._running:
            return
        self._running = False

        await self.poller.stop()
        await self.detector.stop()
        await self.queue.stop(drain_timeout=drain_timeout)

        stats = self.queue.stats
        logger.info(
            "Relay stopped: %d delivered, %d rate limited, %d abandoned",
            stats.delivered,
            stats.rate_limited,
            stats.abandoned,
        )

"""Handlers for inbound chat commands and button presses."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from wallet_relay.delivery.errors import DeliveryError, RateLimitedError
from wallet_relay.delivery.formatter import parse_remove_callback
from wallet_relay.monitor.addresses import AddressFileError

if TYPE_CHECKING:
    from wallet_relay.delivery.formatter import MessageFormatter
    from wallet_relay.delivery.queue import DeliveryQueue
    from wallet_relay.delivery.telegram import TelegramClient
    from wallet_relay.monitor.addresses import AddressBook
    from wallet_relay.monitor.notified import NotifiedSet

logger = logging.getLogger(__name__)

CALLBACK_REMOVED = "Address {address} removed."
CALLBACK_NOT_FOUND = "Address not found or already removed."
CALLBACK_FAILED = "Failed to remove address."
CALLBACK_UNKNOWN = "Unknown action."


def parse_command(text: str) -> tuple[str, str] | None:
    """Split ``/cmd@bot argument`` into ``("/cmd", "argument")``."""
    text = text.strip()
    if not text.startswith("/"):
        return None
    head, _, argument = text.partition(" ")
    command = head.split("@", 1)[0].lower()
    return command, argument.strip()


class CommandHandler:
    """Answers /start, /remove and remove-button presses.

    Text replies go through the delivery queue like every other message;
    callback answers and message deletions are separate Bot API calls made
    directly. Failures are reported back to the user, never raised.
    """

    def __init__(
        self,
        client: TelegramClient,
        queue: DeliveryQueue,
        formatter: MessageFormatter,
        address_book: AddressBook,
        notified: NotifiedSet,
        *,
        destination: str,
    ) -> None:
        """Initialize the handler.

        Args:
            client: Bot API client for callback answers and deletions.
            queue: Delivery queue for text replies.
            formatter: Builds reply messages.
            address_book: Watched address file and known set.
            notified: Persisted notified-set.
            destination: The relay's chat; /remove is only accepted there.
        """
        self._client = client
        self._queue = queue
        self._formatter = formatter
        self._book = address_book
        self._notified = notified
        self._destination = destination

    async def handle_update(self, update: dict[str, Any]) -> None:
        """Route one getUpdates entry."""
        if "callback_query" in update:
            await self.handle_callback(update["callback_query"])
        elif "message" in update:
            await self.handle_message(update["message"])

    async def handle_message(self, message: dict[str, Any]) -> None:
        """Handle a text message; anything but a known command is ignored."""
        parsed = parse_command(message.get("text") or "")
        if parsed is None:
            return
        command, argument = parsed
        chat_id = str(message.get("chat", {}).get("id", ""))

        if command == "/start":
            self._queue.enqueue(self._formatter.info(chat_id, len(self._book.known)))
        elif command == "/remove":
            if chat_id != self._destination:
                logger.warning("Ignoring /remove from unexpected chat %s", chat_id)
                return
            self._handle_remove_command(chat_id, argument)

    def _handle_remove_command(self, chat_id: str, address: str) -> None:
        if not address:
            self._queue.enqueue(self._formatter.remove_usage(chat_id))
            return

        try:
            removed = self.remove_address(address)
        except AddressFileError as e:
            logger.error("Removal of %s failed: %s", address, e)
            self._queue.enqueue(self._formatter.removal_failed(chat_id, address))
            return

        if removed:
            self._queue.enqueue(self._formatter.removed(chat_id, address))
        else:
            self._queue.enqueue(self._formatter.not_found(chat_id, address))

    def remove_address(self, address: str) -> bool:
        """Remove an address from the list, the known set and the notified-set.

        Returns:
            True if the address was listed.

        Raises:
            AddressFileError: If the address file cannot be updated.
        """
        removed = self._book.remove(address)
        if removed and self._notified.discard(address):
            self._notified.save()
        return removed

    async def handle_callback(self, query: dict[str, Any]) -> None:
        """Handle a remove-button press."""
        query_id = str(query.get("id", ""))
        address = parse_remove_callback(query.get("data"))
        if address is None:
            await self._answer(query_id, CALLBACK_UNKNOWN)
            return

        message = query.get("message") or {}
        chat_id = message.get("chat", {}).get("id")
        if str(chat_id) != self._destination:
            logger.warning("Ignoring remove button from unexpected chat %s", chat_id)
            await self._answer(query_id, CALLBACK_UNKNOWN)
            return

        try:
            removed = self.remove_address(address)
        except AddressFileError as e:
            logger.error("Removal of %s failed: %s", address, e)
            await self._answer(query_id, CALLBACK_FAILED)
            return

        if not removed:
            await self._answer(query_id, CALLBACK_NOT_FOUND)
            return

        message_id = message.get("message_id")
        if message_id is not None:
            try:
                await self._client.delete_message(chat_id, message_id)
            except (DeliveryError, httpx.HTTPError) as e:
                logger.warning("Could not delete notification %s: %s", message_id, e)

        await self._answer(query_id, CALLBACK_REMOVED.format(address=address))

    async def _answer(self, query_id: str, text: str) -> None:
        """Answer a callback query, feeding rate limits into the shared backoff."""
        try:
            await self._client.answer_callback_query(query_id, text)
        except RateLimitedError as e:
            self._queue.extend_backoff(e.retry_after)
            logger.warning("Rate limited answering callback %s: %s", query_id, e)
        except (DeliveryError, httpx.HTTPError) as e:
            logger.warning("Could not answer callback %s: %s", query_id, e)

"""Message formatter for address notifications.

Builds Telegram (legacy Markdown) text and inline buttons for every message
the relay sends: new and existing address notices, batch summaries, startup
and info notices, and replies to removal requests.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Literal

from wallet_relay.delivery.models import InlineButton, ParseMode, PendingMessage, SendOptions

PARSE_MODE: ParseMode = "Markdown"

REMOVE_CALLBACK_PREFIX = "remove:"
REMOVE_BUTTON_TEXT = "❌ Remove Address"

# Bot API limit on callback_data, in bytes
MAX_CALLBACK_DATA_BYTES = 64

AddressKind = Literal["new", "existing"]


def code(text: str) -> str:
    """Render text as inline code. Backticks cannot be escaped inside code spans."""
    return f"`{text.replace('`', '')}`"


def remove_callback_data(address: str) -> str | None:
    """Callback payload for the remove button, or None if the address is too long."""
    data = f"{REMOVE_CALLBACK_PREFIX}{address}"
    if len(data.encode("utf-8")) > MAX_CALLBACK_DATA_BYTES:
        return None
    return data


def parse_remove_callback(data: str | None) -> str | None:
    """Return the address carried by a remove-button payload, if any."""
    if not data or not data.startswith(REMOVE_CALLBACK_PREFIX):
        return None
    address = data[len(REMOVE_CALLBACK_PREFIX) :].strip()
    return address or None


class MessageFormatter:
    """Builds PendingMessages for the relay's destination chat."""

    def __init__(
        self,
        destination: str,
        addresses_file: Path | str,
        *,
        summary_preview_count: int = 20,
    ) -> None:
        """Initialize the formatter.

        Args:
            destination: Chat the notifications are addressed to.
            addresses_file: Watched file, named in startup and info notices.
            summary_preview_count: Addresses listed in a summary message.
        """
        self.destination = destination
        self.addresses_file = str(addresses_file)
        self.summary_preview_count = summary_preview_count

    def _message(
        self,
        body: str,
        *,
        destination: str | None = None,
        buttons: tuple[tuple[InlineButton, ...], ...] = (),
    ) -> PendingMessage:
        return PendingMessage(
            destination=destination or self.destination,
            body=body,
            options=SendOptions(parse_mode=PARSE_MODE, buttons=buttons),
        )

    def address(self, address: str, kind: AddressKind = "new") -> PendingMessage:
        """Notice for a single address, with a remove button when possible."""
        if kind == "new":
            body = f"🆕 New wallet address added:\n{code(address)}"
        else:
            body = f"📋 *Existing address:*\n{code(address)}"

        buttons: tuple[tuple[InlineButton, ...], ...] = ()
        data = remove_callback_data(address)
        if data is not None:
            buttons = ((InlineButton(REMOVE_BUTTON_TEXT, data),),)
        return self._message(body, buttons=buttons)

    def summary(self, addresses: Sequence[str], kind: AddressKind = "new") -> PendingMessage:
        """One message covering a large batch: first addresses listed, rest counted."""
        total = len(addresses)
        shown = addresses[: self.summary_preview_count]
        if kind == "new":
            heading = f"🆕 *{total} new wallet addresses added*"
        else:
            heading = f"📋 *{total} existing wallet addresses*"
        lines = [heading, ""]
        lines.extend(code(address) for address in shown)
        remainder = total - len(shown)
        if remainder > 0:
            lines.append("")
            lines.append(f"…and {remainder} more")
        return self._message("\n".join(lines))

    def startup(self, count: int) -> PendingMessage:
        """Notice sent when the relay starts."""
        if count:
            body = f"🤖 Bot started! Currently monitoring {count} wallet addresses."
        else:
            body = f"🤖 Bot started! No addresses found in {code(self.addresses_file)}."
        return self._message(body)

    def info(self, destination: str, count: int) -> PendingMessage:
        """Reply to /start."""
        body = (
            f"🤖 Hi! I monitor {code(self.addresses_file)} and notify about new wallet "
            f"addresses.\n\nCurrently monitoring {count} addresses.\n\n"
            "Use /remove <address> to stop tracking an address."
        )
        return self._message(body, destination=destination)

    def removed(self, destination: str, address: str) -> PendingMessage:
        """Reply confirming a text-command removal."""
        return self._message(f"✅ Address removed:\n{code(address)}", destination=destination)

    def not_found(self, destination: str, address: str) -> PendingMessage:
        """Reply when the address to remove is not listed."""
        return self._message(
            f"⚠️ Address not found or already removed:\n{code(address)}",
            destination=destination,
        )

    def removal_failed(self, destination: str, address: str) -> PendingMessage:
        """Reply when removal could not be completed."""
        return self._message(
            f"❌ Failed to remove address:\n{code(address)}", destination=destination
        )

    def remove_usage(self, destination: str) -> PendingMessage:
        """Reply to /remove without an argument."""
        return self._message("Usage: /remove <address>", destination=destination)

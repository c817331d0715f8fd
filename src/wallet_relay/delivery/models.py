"""Data models for the delivery module."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

ParseMode = Literal["Markdown", "MarkdownV2", "HTML"]


@dataclass(frozen=True)
class InlineButton:
    """A labeled action attached below a message.

    Attributes:
        text: Button label shown to the user.
        callback_data: Opaque payload echoed back when the button is pressed.
    """

    text: str
    callback_data: str

    def to_dict(self) -> dict[str, str]:
        """Serialize to the Bot API ``InlineKeyboardButton`` shape."""
        return {"text": self.text, "callback_data": self.callback_data}


@dataclass(frozen=True)
class SendOptions:
    """Rendering options for an outbound message.

    Attributes:
        parse_mode: Structured-text rendering mode, or None for plain text.
        buttons: Rows of inline buttons attached to the message.
        disable_web_page_preview: Suppress link previews.
    """

    parse_mode: ParseMode | None = None
    buttons: tuple[tuple[InlineButton, ...], ...] = ()
    disable_web_page_preview: bool = True

    def to_payload(self) -> dict[str, object]:
        """Build the ``sendMessage`` fields contributed by these options."""
        payload: dict[str, object] = {
            "disable_web_page_preview": self.disable_web_page_preview,
        }
        if self.parse_mode:
            payload["parse_mode"] = self.parse_mode
        if self.buttons:
            payload["reply_markup"] = {
                "inline_keyboard": [[button.to_dict() for button in row] for row in self.buttons]
            }
        return payload


@dataclass(frozen=True)
class PendingMessage:
    """One unit of outbound work.

    Immutable once created; the queue only ever moves it around.

    Attributes:
        destination: Chat handle the message is addressed to.
        body: Message text.
        options: Rendering options.
        enqueued_at: Creation time, for diagnostics only.
    """

    destination: str
    body: str
    options: SendOptions = field(default_factory=SendOptions)
    enqueued_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def preview(self, limit: int = 80) -> str:
        """Short single-line rendering of the body for log lines."""
        text = " ".join(self.body.split())
        return text if len(text) <= limit else text[: limit - 3] + "..."

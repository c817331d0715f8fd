"""Telegram Bot API client."""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from wallet_relay.delivery.errors import RateLimitedError, TelegramAPIError
from wallet_relay.delivery.models import SendOptions

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"

# Used when a 429 carries no usable retry-after hint
DEFAULT_RETRY_AFTER_SECONDS = 5.0

_RETRY_AFTER_RE = re.compile(r"retry after (\d+(?:\.\d+)?)", re.IGNORECASE)


def parse_retry_after(result: dict[str, Any]) -> float:
    """Extract the retry-after delay from a Bot API error response.

    Prefers ``parameters.retry_after`` and falls back to the
    "retry after N" text of the description.
    """
    parameters = result.get("parameters")
    if isinstance(parameters, dict):
        value = parameters.get("retry_after")
        if isinstance(value, (int, float)) and value >= 0:
            return float(value)

    match = _RETRY_AFTER_RE.search(str(result.get("description", "")))
    if match:
        return float(match.group(1))

    return DEFAULT_RETRY_AFTER_SECONDS


class TelegramClient:
    """Minimal async Bot API client.

    Each call performs exactly one HTTP request. A 429 response raises
    RateLimitedError; any other API rejection raises TelegramAPIError and
    transport failures propagate as ``httpx.HTTPError``. Retrying is left
    to the caller.
    """

    def __init__(
        self,
        bot_token: str,
        *,
        api_url: str = TELEGRAM_API_BASE,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the client.

        Args:
            bot_token: Telegram bot token.
            api_url: Bot API base URL.
            timeout: HTTP request timeout in seconds.
        """
        self.timeout = timeout
        self._base_url = f"{api_url.rstrip('/')}/bot{bot_token}"

    async def _call(
        self,
        method: str,
        payload: dict[str, Any],
        *,
        timeout: float | None = None,
    ) -> Any:
        """Invoke a Bot API method and return its ``result`` field."""
        async with httpx.AsyncClient(timeout=timeout or self.timeout) as client:
            response = await client.post(f"{self._base_url}/{method}", json=payload)

        try:
            result = response.json()
        except ValueError as e:
            raise TelegramAPIError(
                method, response.status_code, f"Invalid JSON response: {e}"
            ) from e

        if result.get("ok"):
            return result.get("result")

        error_code = result.get("error_code", response.status_code)
        description = result.get("description", "Unknown error")

        if error_code == 429:
            raise RateLimitedError(
                parse_retry_after(result),
                f"Telegram {method} rate limited: {description}",
            )

        raise TelegramAPIError(method, error_code, description)

    async def send_message(self, destination: str, body: str, options: SendOptions) -> Any:
        """Send a text message to a chat."""
        payload: dict[str, Any] = {"chat_id": destination, "text": body}
        payload.update(options.to_payload())
        return await self._call("sendMessage", payload)

    async def answer_callback_query(self, callback_query_id: str, text: str) -> None:
        """Acknowledge an inline button press with a short notice."""
        await self._call(
            "answerCallbackQuery",
            {"callback_query_id": callback_query_id, "text": text},
        )

    async def delete_message(self, chat_id: str | int, message_id: int) -> None:
        """Delete a message from a chat."""
        await self._call("deleteMessage", {"chat_id": chat_id, "message_id": message_id})

    async def get_updates(self, offset: int | None, poll_timeout: int) -> list[dict[str, Any]]:
        """Long-poll for incoming messages and button presses."""
        payload: dict[str, Any] = {
            "timeout": poll_timeout,
            "allowed_updates": ["message", "callback_query"],
        }
        if offset is not None:
            payload["offset"] = offset
        updates = await self._call("getUpdates", payload, timeout=self.timeout + poll_timeout)
        return list(updates or [])


class DryRunSender:
    """Sender that logs messages instead of delivering them."""

    async def send_message(self, destination: str, body: str, options: SendOptions) -> None:
        """Log the message that would have been sent."""
        logger.info("[dry-run] message to %s (%s): %s", destination, options.parse_mode, body)

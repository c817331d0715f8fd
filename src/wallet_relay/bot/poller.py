"""Long-polling loop for inbound Telegram updates."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import httpx

from wallet_relay.delivery.errors import DeliveryError, RateLimitedError

if TYPE_CHECKING:
    from wallet_relay.delivery.telegram import TelegramClient

logger = logging.getLogger(__name__)

DEFAULT_POLL_TIMEOUT_SECONDS = 30
DEFAULT_ERROR_DELAY_SECONDS = 5.0

UpdateHandler = Callable[[dict[str, Any]], Awaitable[None]]


class UpdatePoller:
    """Fetches updates with getUpdates and hands each one to a handler.

    Polling errors are logged and retried after a delay; handler errors are
    logged and the update is still acknowledged.
    """

    def __init__(
        self,
        client: TelegramClient,
        handler: UpdateHandler,
        *,
        poll_timeout: int = DEFAULT_POLL_TIMEOUT_SECONDS,
        error_delay: float = DEFAULT_ERROR_DELAY_SECONDS,
    ) -> None:
        self._client = client
        self._handler = handler
        self._poll_timeout = poll_timeout
        self._error_delay = error_delay

        self._offset: int | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def offset(self) -> int | None:
        """Next update ID to request."""
        return self._offset

    @property
    def is_running(self) -> bool:
        """Whether the polling loop is active."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start polling in the background."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._poll_loop(), name="telegram-updates")
        logger.info("Listening for bot commands")

    async def stop(self) -> None:
        """Stop polling."""
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    async def poll_once(self) -> int:
        """Fetch and handle one batch of updates.

        Returns:
            Number of updates handled.
        """
        updates = await self._client.get_updates(self._offset, self._poll_timeout)
        for update in updates:
            update_id = update.get("update_id")
            if isinstance(update_id, int):
                self._offset = update_id + 1
            try:
                await self._handler(update)
            except Exception:
                logger.exception("Error handling update %s", update_id)
        return len(updates)

    async def _poll_loop(self) -> None:
        while True:
            try:
                await self.poll_once()
            except RateLimitedError as e:
                logger.warning("Polling rate limited, retry after %ss", e.retry_after)
                await asyncio.sleep(e.retry_after)
            except (DeliveryError, httpx.HTTPError) as e:
                logger.error("Polling error: %s", e)
                await asyncio.sleep(self._error_delay)

"""Delivery layer - rate-limited message delivery to Telegram."""

from wallet_relay.delivery.errors import DeliveryError, RateLimitedError, TelegramAPIError
from wallet_relay.delivery.formatter import MessageFormatter
from wallet_relay.delivery.models import InlineButton, PendingMessage, SendOptions
from wallet_relay.delivery.queue import DeliveryQueue, MessageSender, QueueStats
from wallet_relay.delivery.telegram import DryRunSender, TelegramClient

__all__ = [
    "DeliveryError",
    "DeliveryQueue",
    "DryRunSender",
    "InlineButton",
    "MessageFormatter",
    "MessageSender",
    "PendingMessage",
    "QueueStats",
    "RateLimitedError",
    "SendOptions",
    "TelegramAPIError",
    "TelegramClient",
]

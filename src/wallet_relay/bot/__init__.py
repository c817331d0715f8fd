"""Bot layer - inbound commands and update polling."""

from wallet_relay.bot.commands import CommandHandler, parse_command
from wallet_relay.bot.poller import UpdatePoller

__all__ = [
    "CommandHandler",
    "UpdatePoller",
    "parse_command",
]

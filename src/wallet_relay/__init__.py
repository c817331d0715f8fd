"""Wallet Relay - forward newly listed wallet addresses to a Telegram chat."""

__version__ = "0.1.0"

"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Wallet Relay application, loading and validating environment variables
(and an optional ``.env`` file) at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    extra="ignore",
)


class TelegramSettings(BaseSettings):
    """Telegram Bot API settings.

    The token and destination chat are required: the relay has nothing to
    do without them, so a missing value aborts startup.
    """

    model_config = _ENV_FILE_CONFIG

    bot_token: SecretStr = Field(
        validation_alias=AliasChoices("TELEGRAM_BOT_TOKEN", "BOT_TOKEN"),
        description="Telegram bot token",
    )
    chat_id: str = Field(
        validation_alias=AliasChoices("TELEGRAM_CHAT_ID", "CHAT_ID"),
        description="Destination chat ID for address notifications",
    )
    api_url: str = Field(
        default="https://api.telegram.org",
        alias="TELEGRAM_API_URL",
        description="Bot API base URL",
    )
    timeout: float = Field(
        default=10.0,
        alias="TELEGRAM_TIMEOUT",
        description="HTTP request timeout in seconds",
        gt=0,
    )
    poll_timeout: int = Field(
        default=30,
        alias="TELEGRAM_POLL_TIMEOUT",
        description="Long-poll timeout for getUpdates in seconds",
        ge=0,
    )

    @field_validator("chat_id")
    @classmethod
    def validate_chat_id(cls, v: str) -> str:
        """Reject blank chat IDs."""
        v = v.strip()
        if not v:
            raise ValueError("TELEGRAM_CHAT_ID must not be empty")
        return v

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate Bot API URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("TELEGRAM_API_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")


class WatchSettings(BaseSettings):
    """Address list and notified-set file settings."""

    model_config = _ENV_FILE_CONFIG

    addresses_file: Path = Field(
        default=Path("swap_address.txt"),
        alias="ADDRESSES_FILE",
        description="Newline-delimited list of watched wallet addresses",
    )
    notified_file: Path = Field(
        default=Path("notified_addresses.json"),
        alias="NOTIFIED_FILE",
        description="JSON array of addresses that were already announced",
    )
    poll_interval: float = Field(
        default=0.5,
        alias="WATCH_POLL_INTERVAL",
        description="Seconds between address file checks",
        gt=0,
    )
    debounce: float = Field(
        default=1.0,
        alias="WATCH_DEBOUNCE",
        description="Quiet period before a burst of changes is handled",
        ge=0,
    )


class DeliverySettings(BaseSettings):
    """Outbound message queue settings."""

    model_config = _ENV_FILE_CONFIG

    min_interval: float = Field(
        default=1.0,
        alias="DELIVERY_MIN_INTERVAL",
        description="Minimum seconds between two consecutive sends",
        ge=0,
    )
    min_backoff: float = Field(
        default=1.0,
        alias="DELIVERY_MIN_BACKOFF",
        description="Lower bound applied to server retry-after hints",
        ge=0,
    )
    summary_threshold: int = Field(
        default=50,
        alias="SUMMARY_THRESHOLD",
        description="Send one summary instead of individual messages above this count",
        ge=1,
    )
    summary_preview_count: int = Field(
        default=20,
        alias="SUMMARY_PREVIEW_COUNT",
        description="Number of addresses listed in a summary message",
        ge=1,
    )


class Settings(BaseSettings):
    """Main application settings.

    Example:
        ```python
        from wallet_relay.config import get_settings

        settings = get_settings()
        print(settings.watch.addresses_file)
        print(settings.log_level)
        ```
    """

    model_config = _ENV_FILE_CONFIG

    telegram: TelegramSettings = Field(default_factory=TelegramSettings)  # type: ignore[arg-type]
    watch: WatchSettings = Field(default_factory=WatchSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Log outbound messages instead of sending them",
    )
    announce_existing: bool = Field(
        default=True,
        alias="ANNOUNCE_EXISTING",
        description="Announce listed addresses that were never notified at startup",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str]:
        """Get a summary of settings with secrets redacted."""
        return {
            "bot_token": self._redact_token(self.telegram.bot_token.get_secret_value()),
            "chat_id": self.telegram.chat_id,
            "api_url": self.telegram.api_url,
            "addresses_file": str(self.watch.addresses_file),
            "notified_file": str(self.watch.notified_file),
            "min_interval": str(self.delivery.min_interval),
            "summary_threshold": str(self.delivery.summary_threshold),
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
            "announce_existing": str(self.announce_existing),
        }

    @staticmethod
    def _redact_token(token: str) -> str:
        """Keep the bot ID part of a ``<id>:<secret>`` token, mask the rest."""
        if ":" in token:
            return f"{token.split(':', 1)[0]}:***"
        return "***"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()

"""Delivery error taxonomy."""

from __future__ import annotations


class DeliveryError(Exception):
    """Base exception for message delivery failures."""


class RateLimitedError(DeliveryError):
    """The server asked the caller to wait before sending again.

    Attributes:
        retry_after: Seconds the server asked us to wait.
    """

    def __init__(self, retry_after: float, message: str | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message or f"Rate limited, retry after {retry_after}s")


class TelegramAPIError(DeliveryError):
    """The Bot API rejected a request.

    Attributes:
        method: Bot API method that failed.
        error_code: Numeric error code reported by the API.
        description: Human-readable reason reported by the API.
    """

    def __init__(self, method: str, error_code: int, description: str) -> None:
        self.method = method
        self.error_code = error_code
        self.description = description
        super().__init__(f"Telegram {method} failed: {error_code} - {description}")

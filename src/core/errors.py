"""Exception hierarchy shared by the core and its adapters."""

from __future__ import annotations

from typing import Optional


class SirenscopeError(Exception):
    """Base class for all sirenscope errors."""


class ConfigError(SirenscopeError):
    """Configuration is missing or invalid. Fatal at startup."""


class KeywordPatternError(ConfigError):
    """A configured keyword could not be compiled into a matcher."""

    def __init__(self, keyword: str, reason: str) -> None:
        super().__init__(f"Invalid keyword pattern {keyword!r}: {reason}")
        self.keyword = keyword


class AlertFeedError(SirenscopeError):
    """The alert feed could not be queried (transport or non-2xx)."""


class AlertFeedAuthError(AlertFeedError):
    """The alert feed rejected the credential (HTTP 401)."""


class AlertFeedRateLimited(AlertFeedError):
    """The alert feed asked us to slow down (HTTP 429)."""

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class NotificationError(SirenscopeError):
    """A notification could not be delivered."""

"""Core configuration dataclasses.

We keep config parsing outside the core (see settings.py), but these
dataclasses define the shape the core expects so adapters and the app layer
can build components safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

MIN_MESSAGES_PER_CHANNEL = 3
MAX_MESSAGES_PER_CHANNEL = 10


@dataclass(frozen=True)
class PollerConfig:
    """Channel polling settings."""

    channels: Tuple[str, ...]
    keywords: Tuple[str, ...]
    messages_per_channel: int = MIN_MESSAGES_PER_CHANNEL
    delay_seconds: float = 2.0
    jitter_seconds: float = 4.0

    def fetch_limit(self) -> int:
        """Messages to request per channel, clamped to the supported range."""

        return max(MIN_MESSAGES_PER_CHANNEL, min(MAX_MESSAGES_PER_CHANNEL, self.messages_per_channel))


@dataclass(frozen=True)
class ScheduleConfig:
    """Intervals and hard timeouts for the periodic jobs, in seconds."""

    poll_interval: float = 180.0
    poll_timeout: Optional[float] = 150.0
    alert_interval: float = 30.0
    alert_timeout: Optional[float] = 20.0
    flush_interval: float = 300.0


@dataclass(frozen=True)
class AlertConfig:
    """Alert feed settings. The token is a secret and comes from the env."""

    enabled: bool = True
    endpoint: str = "https://api.alerts.in.ua/v1/iot/active_air_raid_alerts"
    region_id: str = ""
    token: str = field(default="", repr=False)
    request_timeout: float = 10.0
    rate_limit_backoff: float = 60.0


@dataclass(frozen=True)
class DedupConfig:
    """Deduplication settings for the poller."""

    capacity: int = 1000


@dataclass(frozen=True)
class JournalConfig:
    """Operator log digest settings."""

    capacity: int = 500
    level: str = "INFO"


@dataclass(frozen=True)
class NotificationConfig:
    """Notification settings consumed by notifier adapters and the publisher."""

    target_channel: str
    log_channel: Optional[str] = None
    method: str = "bot"
    mode: str = "digest"
    timezone: str = "Europe/Kyiv"
    snippet_chars: int = 400

"""Core domain models.

These types are shared across the core and adapters to avoid tight coupling
to any integration-specific types (Telethon messages, HTTP responses).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class Message:
    """A message fetched from a watched channel."""

    id: int
    channel_id: str
    text: Optional[str]
    timestamp: float
    permalink: Optional[str] = None

    @property
    def key(self) -> str:
        return build_message_key(self.channel_id, self.id)


@dataclass(frozen=True)
class MatchEvent:
    """A message that matched at least one keyword during a poll cycle."""

    message_key: str
    link: str
    channel: str
    timestamp: float
    matched_keywords: Tuple[str, ...]
    snippet: str = ""


class AlertState(str, Enum):
    """Classified reading of the air-raid alert feed.

    UNKNOWN is not a real state: it marks a failed or unrecognised reading
    and is never stored as the last confirmed state.
    """

    ACTIVE = "active"
    PARTIAL = "partial"
    NONE = "none"
    UNKNOWN = "unknown"

    @property
    def is_alert(self) -> bool:
        return self in (AlertState.ACTIVE, AlertState.PARTIAL)


class ParserState(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"


class Transition(str, Enum):
    """Outcome of feeding an alert reading or a start/stop call to the controller."""

    START = "start"
    STOP = "stop"
    NOOP = "noop"


def build_message_key(channel_id: str, message_id: int) -> str:
    """Return the dedup key for a message: ``<channel>:<id>``."""

    return f"{channel_id}:{message_id}"


def build_permalink(channel_id: str, message_id: int) -> str:
    """Return the public t.me link for a message in a public channel."""

    return f"https://t.me/{channel_id}/{message_id}"

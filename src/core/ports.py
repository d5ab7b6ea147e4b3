"""Ports (interfaces) used by the core.

Ports define the minimal contracts for the message source, the alert feed,
notification delivery and scheduling so that the core can be reused with
different backends and exercised with fakes in tests.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, List, Optional, Protocol

from core.models import MatchEvent, Message

Job = Callable[[], Awaitable[None]]


class MessageSourcePort(Protocol):
    """Read access to public channels."""

    async def resolve_channel(self, identifier: str) -> Any:
        ...

    async def fetch_recent(self, handle: Any, limit: int) -> List[Message]:
        """Return up to ``limit`` most recent messages, newest first."""
        ...


class AlertFeedPort(Protocol):
    """Raw access to the air-raid alert status feed."""

    async def fetch_status(self) -> str:
        """Return the raw status token; raise AlertFeedError on failure."""
        ...


class NotifierPort(Protocol):
    """Outbound delivery of HTML-formatted text to a chat."""

    async def send(self, target_id: str, markup_text: str) -> None:
        ...


class SchedulerPort(Protocol):
    """Runs jobs on fixed intervals."""

    def every(
        self,
        interval: float,
        job: Job,
        *,
        name: str,
        timeout: Optional[float] = None,
        run_immediately: bool = False,
    ) -> Any:
        ...

    def cancel(self, handle: Any) -> None:
        ...


class AnnouncerPort(Protocol):
    """Delivers parser state change notices to the target channel."""

    async def alert_started(self, reason: str) -> None:
        ...

    async def alert_cleared(self, reason: str) -> None:
        ...


class MatchPublisherPort(Protocol):
    """Delivers the matches of one poll cycle."""

    async def publish(self, events: List[MatchEvent]) -> None:
        ...

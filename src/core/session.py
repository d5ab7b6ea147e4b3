"""Process-wide mutable state, wrapped in one explicit session object.

Every component receives the session it works on instead of reaching for
module-level globals, so tests can build a fresh one per case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import math
import time
from typing import Any, Optional

from core.dedup import DedupeCache
from core.journal import LogAggregator
from core.models import AlertState, ParserState


@dataclass
class PollWindow:
    """Timestamp boundary below which messages are ignored."""

    last_checked_time: int

    @classmethod
    def starting_now(cls, now: Optional[float] = None) -> "PollWindow":
        return cls(last_checked_time=math.floor(time.time() if now is None else now))

    def admits(self, timestamp: float, boundary: Optional[int] = None) -> bool:
        """True when ``timestamp`` is not older than ``boundary`` (default: the window)."""

        limit = self.last_checked_time if boundary is None else boundary
        return math.floor(timestamp) >= limit

    def advance(self, now: float) -> None:
        self.last_checked_time = math.floor(now)


@dataclass
class WatchSession:
    """All mutable state of a running watcher."""

    dedupe: DedupeCache
    window: PollWindow
    journal: LogAggregator
    # UNKNOWN until the first confirmed reading arrives.
    alert_state: AlertState = AlertState.UNKNOWN
    parser_state: ParserState = ParserState.STOPPED
    poll_handle: Optional[Any] = None
    cycles_completed: int = field(default=0)

    @classmethod
    def create(
        cls,
        dedupe_capacity: int = 1000,
        journal_capacity: int = 500,
        now: Optional[float] = None,
    ) -> "WatchSession":
        return cls(
            dedupe=DedupeCache(dedupe_capacity),
            window=PollWindow.starting_now(now),
            journal=LogAggregator(journal_capacity),
        )

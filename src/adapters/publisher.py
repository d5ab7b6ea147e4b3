"""Delivery of poll results and parser state notices to the target channel."""

from __future__ import annotations

from datetime import tzinfo
import logging
from typing import List, Optional

from adapters.notification_formatting import (
    format_alert_cleared,
    format_alert_started,
    format_digest,
    format_match,
)
from core.models import MatchEvent
from core.ports import NotifierPort

LOGGER = logging.getLogger(__name__)

DELIVERY_MODES = ("digest", "per_match")


class MatchPublisher:
    """MatchPublisherPort and AnnouncerPort over a single notifier.

    Delivery is fire-and-forget: a failed send is logged and never retried.
    """

    def __init__(
        self,
        notifier: NotifierPort,
        target_id: str,
        *,
        mode: str = "digest",
        tz: Optional[tzinfo] = None,
        snippet_chars: int = 400,
    ) -> None:
        if mode not in DELIVERY_MODES:
            raise ValueError(f"Unsupported delivery mode: {mode}")
        self._notifier = notifier
        self._target_id = target_id
        self._mode = mode
        self._tz = tz
        self._snippet_chars = snippet_chars

    async def publish(self, events: List[MatchEvent]) -> None:
        if not events:
            LOGGER.info("No new matches found")
            return
        if self._mode == "digest":
            if await self._deliver(format_digest(events, self._tz)):
                LOGGER.info("Digest with %s matches sent", len(events))
            return
        delivered = 0
        for event in events:
            if await self._deliver(format_match(event, self._tz, self._snippet_chars)):
                delivered += 1
        LOGGER.info("Sent %s of %s match notifications", delivered, len(events))

    async def alert_started(self, reason: str) -> None:
        await self._deliver(format_alert_started(reason))

    async def alert_cleared(self, reason: str) -> None:
        await self._deliver(format_alert_cleared(reason))

    async def _deliver(self, text: str) -> bool:
        try:
            await self._notifier.send(self._target_id, text)
        except Exception:
            LOGGER.exception("Failed to deliver notification to %s", self._target_id)
            return False
        return True

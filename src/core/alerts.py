"""Air-raid alert monitor (core domain)."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from core.errors import AlertFeedAuthError, AlertFeedError, AlertFeedRateLimited
from core.models import AlertState
from core.ports import AlertFeedPort
from core.session import WatchSession

LOGGER = logging.getLogger(__name__)

_STATUS_TOKENS = {
    "A": AlertState.ACTIVE,
    "P": AlertState.PARTIAL,
    "N": AlertState.NONE,
}


def classify_status(raw: Optional[str]) -> AlertState:
    """Map the feed's raw status token to an AlertState.

    The feed answers with a one-letter token, sometimes JSON-quoted ("A").
    Anything unrecognised is UNKNOWN.
    """

    if raw is None:
        return AlertState.UNKNOWN
    token = raw.strip().strip('"').strip().upper()
    return _STATUS_TOKENS.get(token, AlertState.UNKNOWN)


class AlertMonitor:
    """Polls the alert feed and keeps the last confirmed state on the session."""

    def __init__(
        self,
        feed: AlertFeedPort,
        session: WatchSession,
        *,
        rate_limit_backoff: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._feed = feed
        self._session = session
        self._rate_limit_backoff = rate_limit_backoff
        self._clock = clock
        self._in_flight = False
        self._backoff_until: Optional[float] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def last_confirmed(self) -> AlertState:
        return self._session.alert_state

    async def poll(self) -> AlertState:
        """Fetch and classify the current status.

        Returns UNKNOWN without touching the network when a poll is already in
        flight or while backing off after a rate limit. UNKNOWN never replaces
        the last confirmed state.
        """

        if self._in_flight:
            LOGGER.warning("Alert check already in flight, ignoring tick")
            return AlertState.UNKNOWN

        if self._backoff_until is not None:
            if self._clock() < self._backoff_until:
                LOGGER.debug("Alert feed rate limit backoff in effect")
                return AlertState.UNKNOWN
            self._backoff_until = None

        self._in_flight = True
        try:
            state = await self._fetch()
        finally:
            self._in_flight = False

        if state is AlertState.UNKNOWN:
            return state

        previous = self._session.alert_state
        if state is not previous:
            LOGGER.info("Alert state changed: %s -> %s", previous.name, state.name)
        self._session.alert_state = state
        return state

    async def _fetch(self) -> AlertState:
        try:
            raw = await self._feed.fetch_status()
        except AlertFeedAuthError as exc:
            LOGGER.error("Alert feed rejected the API token, operator action required: %s", exc)
            return AlertState.UNKNOWN
        except AlertFeedRateLimited as exc:
            delay = exc.retry_after if exc.retry_after is not None else self._rate_limit_backoff
            self._backoff_until = self._clock() + delay
            LOGGER.warning("Alert feed rate limited, backing off for %ss", delay)
            return AlertState.UNKNOWN
        except AlertFeedError as exc:
            LOGGER.warning("Alert feed request failed: %s", exc)
            return AlertState.UNKNOWN

        state = classify_status(raw)
        if state is AlertState.UNKNOWN:
            LOGGER.warning("Unrecognized alert feed payload: %r", raw)
        return state

"""Channel polling and match engine (core domain).

One cycle walks every configured channel in a random order, strictly one
channel at a time, and turns new keyword mentions into MatchEvents. The
cycle order is:
1) Shuffle the channel list
2) Skip a channel equal to the one right before it
3) Fetch the most recent messages and drop empty, too old, or seen ones
4) Match keywords, emit an event and record the key immediately
5) Sleep a jittered delay before the next channel
6) Advance the window once the whole pass is done
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable, List, Optional, Sequence

from core.config import PollerConfig
from core.matcher import Matcher, match_keywords
from core.models import MatchEvent, Message, build_permalink
from core.ports import MessageSourcePort
from core.session import WatchSession

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ChannelPoller:
    """Fetches recent channel messages and yields keyword matches."""

    def __init__(
        self,
        source: MessageSourcePort,
        matchers: Sequence[Matcher],
        config: PollerConfig,
        *,
        rng: Optional[random.Random] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._source = source
        self._matchers = list(matchers)
        self._config = config
        self._rng = rng or random.Random()
        self._sleep = sleep
        self._clock = clock

    def _cycle_order(self) -> List[str]:
        channels = list(self._config.channels)
        self._rng.shuffle(channels)
        return channels

    def _delay(self) -> float:
        return self._config.delay_seconds + self._rng.uniform(0, self._config.jitter_seconds)

    async def run_cycle(self, session: WatchSession) -> List[MatchEvent]:
        """Run one pass over all channels and return the new matches."""

        # Messages are judged against the window as it was when the cycle began.
        boundary = session.window.last_checked_time
        events: List[MatchEvent] = []
        failed = 0
        checked = 0
        previous: Optional[str] = None

        order = self._cycle_order()
        for index, channel in enumerate(order):
            if channel == previous:
                LOGGER.debug("Skipping repeated channel %s", channel)
                continue
            previous = channel

            try:
                events.extend(await self._poll_channel(session, channel, boundary))
                checked += 1
            except Exception:
                failed += 1
                LOGGER.exception("Failed to poll channel @%s", channel)

            if index < len(order) - 1:
                await self._sleep(self._delay())

        session.window.advance(self._clock())
        session.cycles_completed += 1
        LOGGER.info(
            "Poll cycle complete: channels=%s, failed=%s, matches=%s",
            checked,
            failed,
            len(events),
        )
        return events

    async def _poll_channel(self, session: WatchSession, channel: str, boundary: int) -> List[MatchEvent]:
        handle = await self._source.resolve_channel(channel)
        messages = await self._source.fetch_recent(handle, self._config.fetch_limit())

        events: List[MatchEvent] = []
        for message in messages:
            event = self._evaluate(session, channel, message, boundary)
            if event is None:
                continue
            # Record right away so a repeat later in this same cycle is dropped too.
            session.dedupe.record(event.message_key)
            events.append(event)
        LOGGER.debug("Checked @%s: %s messages, %s matches", channel, len(messages), len(events))
        return events

    def _evaluate(
        self,
        session: WatchSession,
        channel: str,
        message: Message,
        boundary: int,
    ) -> Optional[MatchEvent]:
        if not message.text:
            return None
        if not session.window.admits(message.timestamp, boundary):
            return None
        key = message.key
        if session.dedupe.seen(key):
            return None

        matched = match_keywords(message.text, self._matchers)
        if not matched:
            return None

        LOGGER.info("Match in @%s message %s: %s", channel, message.id, ", ".join(matched))
        return MatchEvent(
            message_key=key,
            link=message.permalink or build_permalink(message.channel_id, message.id),
            channel=channel,
            timestamp=message.timestamp,
            matched_keywords=tuple(matched),
            snippet=message.text,
        )

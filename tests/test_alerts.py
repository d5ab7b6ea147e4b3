from __future__ import annotations

import asyncio
from typing import Union

from core.alerts import AlertMonitor, classify_status
from core.errors import AlertFeedAuthError, AlertFeedError, AlertFeedRateLimited
from core.models import AlertState
from core.session import WatchSession


class FakeFeed:
    def __init__(self, *results: Union[str, Exception]) -> None:
        self.results = list(results)
        self.calls = 0

    async def fetch_status(self) -> str:
        self.calls += 1
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_classify_status_tokens() -> None:
    assert classify_status("A") is AlertState.ACTIVE
    assert classify_status('"P"') is AlertState.PARTIAL
    assert classify_status(' "n"\n') is AlertState.NONE
    assert classify_status("X") is AlertState.UNKNOWN
    assert classify_status("") is AlertState.UNKNOWN
    assert classify_status("<html>error</html>") is AlertState.UNKNOWN
    assert classify_status(None) is AlertState.UNKNOWN


def test_confirmed_readings_update_the_session() -> None:
    session = WatchSession.create()
    monitor = AlertMonitor(FakeFeed('"A"', '"N"'), session)

    assert asyncio.run(monitor.poll()) is AlertState.ACTIVE
    assert session.alert_state is AlertState.ACTIVE
    assert asyncio.run(monitor.poll()) is AlertState.NONE
    assert monitor.last_confirmed is AlertState.NONE


def test_unknown_never_overwrites_the_last_confirmed_state() -> None:
    session = WatchSession.create()
    feed = FakeFeed(
        "A",
        "garbage",
        AlertFeedError("HTTP 502"),
        AlertFeedAuthError("401"),
    )
    monitor = AlertMonitor(feed, session)

    assert asyncio.run(monitor.poll()) is AlertState.ACTIVE
    for _ in range(3):
        assert asyncio.run(monitor.poll()) is AlertState.UNKNOWN
        assert session.alert_state is AlertState.ACTIVE


def test_overlapping_poll_is_a_no_op() -> None:
    session = WatchSession.create()

    class SlowFeed:
        calls = 0
        release: asyncio.Event

        async def fetch_status(self) -> str:
            SlowFeed.calls += 1
            await SlowFeed.release.wait()
            return "P"

    monitor = AlertMonitor(SlowFeed(), session)

    async def scenario() -> tuple[AlertState, AlertState]:
        SlowFeed.release = release = asyncio.Event()
        first = asyncio.ensure_future(monitor.poll())
        await asyncio.sleep(0)
        assert monitor.in_flight
        second = await monitor.poll()
        release.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert first is AlertState.PARTIAL
    assert second is AlertState.UNKNOWN
    assert SlowFeed.calls == 1
    assert not monitor.in_flight


def test_rate_limit_backs_off_without_network_calls() -> None:
    session = WatchSession.create()
    clock = FakeClock(100.0)
    feed = FakeFeed(AlertFeedRateLimited("429", retry_after=30.0), "A")
    monitor = AlertMonitor(feed, session, clock=clock)

    assert asyncio.run(monitor.poll()) is AlertState.UNKNOWN
    clock.now = 120.0
    assert asyncio.run(monitor.poll()) is AlertState.UNKNOWN
    assert feed.calls == 1

    clock.now = 131.0
    assert asyncio.run(monitor.poll()) is AlertState.ACTIVE
    assert feed.calls == 2


def test_rate_limit_without_retry_after_uses_default_backoff() -> None:
    session = WatchSession.create()
    clock = FakeClock(0.0)
    feed = FakeFeed(AlertFeedRateLimited("429"), "N")
    monitor = AlertMonitor(feed, session, rate_limit_backoff=60.0, clock=clock)

    asyncio.run(monitor.poll())
    clock.now = 59.0
    assert asyncio.run(monitor.poll()) is AlertState.UNKNOWN
    clock.now = 60.0
    assert asyncio.run(monitor.poll()) is AlertState.NONE

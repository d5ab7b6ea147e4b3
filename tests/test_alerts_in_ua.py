from __future__ import annotations

import asyncio

import httpx
import pytest

from adapters.alerts_in_ua import AlertsInUaFeed
from core.errors import AlertFeedAuthError, AlertFeedError, AlertFeedRateLimited

ENDPOINT = "https://api.alerts.in.ua/v1/iot/active_air_raid_alerts"


def _fetch(handler) -> str:
    async def scenario() -> str:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            feed = AlertsInUaFeed(client, ENDPOINT + "/", "25", "secret-token")
            return await feed.fetch_status()

    return asyncio.run(scenario())


def test_success_returns_raw_token_and_sends_bearer() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text='"A"')

    assert _fetch(handler) == '"A"'
    assert str(seen[0].url) == f"{ENDPOINT}/25.json"
    assert seen[0].headers["Authorization"] == "Bearer secret-token"


def test_401_maps_to_auth_error() -> None:
    with pytest.raises(AlertFeedAuthError):
        _fetch(lambda request: httpx.Response(401, text="Unauthorized"))


def test_429_maps_to_rate_limited_with_retry_after() -> None:
    with pytest.raises(AlertFeedRateLimited) as excinfo:
        _fetch(lambda request: httpx.Response(429, headers={"Retry-After": "30"}))
    assert excinfo.value.retry_after == 30.0


def test_429_without_retry_after() -> None:
    with pytest.raises(AlertFeedRateLimited) as excinfo:
        _fetch(lambda request: httpx.Response(429))
    assert excinfo.value.retry_after is None


def test_other_status_maps_to_feed_error() -> None:
    with pytest.raises(AlertFeedError) as excinfo:
        _fetch(lambda request: httpx.Response(503))
    assert not isinstance(excinfo.value, (AlertFeedAuthError, AlertFeedRateLimited))
    assert "503" in str(excinfo.value)


def test_transport_error_maps_to_feed_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(AlertFeedError):
        _fetch(handler)

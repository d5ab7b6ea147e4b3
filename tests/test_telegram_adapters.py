from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Optional

import httpx
import pytest
from telethon.tl.types import PeerChannel

from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_notifier import TelegramClientNotifier
from adapters.telegram_source import TelegramMessageSource, to_message
from core.errors import NotificationError


class DummyEntity:
    def __init__(self, username: Optional[str]) -> None:
        self.username = username


class DummyMessage:
    def __init__(self, message_id: int, text: str, channel_id: int = 123) -> None:
        self.id = message_id
        self.raw_text = text
        self.peer_id = PeerChannel(channel_id=channel_id)
        self.date = datetime(2024, 1, 1, 12, 0, 30, tzinfo=timezone.utc)


class DummyClient:
    def __init__(self) -> None:
        self.entity_calls: list[str] = []
        self.sent: list[tuple] = []

    async def get_entity(self, identifier: str) -> DummyEntity:
        self.entity_calls.append(identifier)
        return DummyEntity(username=identifier)

    async def get_messages(self, entity: DummyEntity, limit: int) -> list[DummyMessage]:
        return [DummyMessage(12, "newest"), DummyMessage(11, "")][:limit]

    async def send_message(self, entity, message, parse_mode=None, link_preview=True) -> None:
        self.sent.append((entity, message, parse_mode))


def test_to_message_prefers_username_permalink() -> None:
    message = to_message("news", DummyEntity("News_UA"), DummyMessage(10, "hello"))

    assert message.key == "news:10"
    assert message.permalink == "https://t.me/News_UA/10"
    assert message.timestamp == datetime(2024, 1, 1, 12, 0, 30, tzinfo=timezone.utc).timestamp()
    assert message.text == "hello"


def test_to_message_falls_back_to_private_link_and_none_text() -> None:
    message = to_message("news", DummyEntity(None), DummyMessage(10, "", channel_id=555))

    assert message.permalink == "https://t.me/c/555/10"
    assert message.text is None


def test_source_resolves_each_channel_once() -> None:
    client = DummyClient()
    source = TelegramMessageSource(client)

    async def scenario():
        first = await source.resolve_channel("news")
        second = await source.resolve_channel("news")
        return first, second, await source.fetch_recent(first, 3)

    first, second, messages = asyncio.run(scenario())

    assert first is second
    assert client.entity_calls == ["news"]
    assert [message.key for message in messages] == ["news:12", "news:11"]


def test_client_notifier_converts_numeric_targets() -> None:
    client = DummyClient()
    notifier = TelegramClientNotifier(client)

    async def scenario() -> None:
        await notifier.send("-100123", "<b>hi</b>")
        await notifier.send("@ops", "<b>hi</b>")

    asyncio.run(scenario())

    assert client.sent[0] == (-100123, "<b>hi</b>", "html")
    assert client.sent[1][0] == "@ops"


def _bot_send(handler, text: str = "<b>hello</b>") -> None:
    async def scenario() -> None:
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await TelegramBotNotifier(client, "123:abc").send("@target", text)

    asyncio.run(scenario())


def test_bot_notifier_posts_html_message() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"ok": True, "result": {}})

    _bot_send(handler)

    assert str(requests[0].url) == "https://api.telegram.org/bot123:abc/sendMessage"
    payload = json.loads(requests[0].content)
    assert payload["chat_id"] == "@target"
    assert payload["text"] == "<b>hello</b>"
    assert payload["parse_mode"] == "HTML"


def test_bot_notifier_raises_on_api_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"ok": False, "description": "Bad Request: chat not found"})

    with pytest.raises(NotificationError) as excinfo:
        _bot_send(handler)
    assert "chat not found" in str(excinfo.value)


def test_bot_notifier_raises_on_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(NotificationError):
        _bot_send(handler)

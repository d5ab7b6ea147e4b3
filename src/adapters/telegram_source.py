"""Telethon-backed message source adapter.

This keeps Telethon-specific details out of the core poller: entities are
resolved (and cached) here and Telethon messages are mapped to core Messages.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from telethon import TelegramClient
from telethon.tl.custom import Message as TelethonMessage
from telethon.tl.types import PeerChannel

from core.models import Message, build_permalink

LOGGER = logging.getLogger(__name__)


def _build_permalink(channel_id: str, entity: Any, message: TelethonMessage) -> Optional[str]:
    # Prefer public usernames for permalinks when available.
    username = getattr(entity, "username", None)
    if isinstance(username, str) and username:
        return build_permalink(username, message.id)
    peer_id = getattr(message, "peer_id", None)
    if isinstance(peer_id, PeerChannel):
        return f"https://t.me/c/{peer_id.channel_id}/{message.id}"
    return build_permalink(channel_id, message.id)


def to_message(channel_id: str, entity: Any, message: TelethonMessage) -> Message:
    """Map a Telethon Message to the core Message."""

    date = getattr(message, "date", None)
    timestamp = date.timestamp() if date is not None else 0.0
    return Message(
        id=message.id,
        channel_id=channel_id,
        text=message.raw_text or None,
        timestamp=timestamp,
        permalink=_build_permalink(channel_id, entity, message),
    )


class ChannelHandle:
    """Resolved channel: the configured identifier plus its Telethon entity."""

    __slots__ = ("identifier", "entity")

    def __init__(self, identifier: str, entity: Any) -> None:
        self.identifier = identifier
        self.entity = entity


class TelegramMessageSource:
    """MessageSourcePort implementation using a logged-in Telethon client."""

    def __init__(self, client: TelegramClient) -> None:
        self._client = client
        self._cache: Dict[str, ChannelHandle] = {}

    async def resolve_channel(self, identifier: str) -> ChannelHandle:
        # get_entity on a username costs a ResolveUsername call, which Telegram
        # rate limits hard, so every channel is resolved once per process.
        handle = self._cache.get(identifier)
        if handle is not None:
            return handle
        entity = await self._client.get_entity(identifier)
        handle = ChannelHandle(identifier, entity)
        self._cache[identifier] = handle
        LOGGER.debug("Resolved channel @%s", identifier)
        return handle

    async def fetch_recent(self, handle: ChannelHandle, limit: int) -> List[Message]:
        messages = await self._client.get_messages(handle.entity, limit=limit)
        return [to_message(handle.identifier, handle.entity, message) for message in messages]

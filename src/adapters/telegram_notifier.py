"""Telegram user-client notification adapter.

Sends through the same logged-in Telethon session that reads the channels,
for setups without a bot.
"""

from __future__ import annotations

from typing import Union

from telethon import TelegramClient


def _peer(target_id: str) -> Union[int, str]:
    # Telethon treats digit strings as phone numbers, numeric chat ids must be ints.
    if target_id.lstrip("-").isdigit():
        return int(target_id)
    return target_id


class TelegramClientNotifier:
    """Notifier adapter that posts as the logged-in user."""

    def __init__(self, client: TelegramClient) -> None:
        self._client = client

    async def send(self, target_id: str, markup_text: str) -> None:
        await self._client.send_message(_peer(target_id), markup_text, parse_mode="html", link_preview=True)

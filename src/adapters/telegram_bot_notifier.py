"""Telegram Bot API notification adapter.

Uses the Bot API for delivery so notifications can be routed via a bot that
is an admin of the target channel.
"""

from __future__ import annotations

import httpx

from core.errors import NotificationError


class TelegramBotNotifier:
    """Notifier adapter that sends messages via the Telegram Bot API."""

    def __init__(self, client: httpx.AsyncClient, bot_token: str) -> None:
        self._client = client
        self._bot_token = bot_token

    def _endpoint(self) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._bot_token}/sendMessage"

    async def send(self, target_id: str, markup_text: str) -> None:
        """Send an HTML message via the Bot API."""

        payload = {
            "chat_id": target_id,
            "text": markup_text,
            "parse_mode": "HTML",
            "disable_web_page_preview": False,
        }
        try:
            response = await self._client.post(self._endpoint(), json=payload)
        except httpx.HTTPError as exc:
            raise NotificationError(f"Bot API transport error: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.is_success or not body.get("ok", False):
            description = body.get("description") or response.text
            raise NotificationError(f"Bot API error {response.status_code}: {description}")

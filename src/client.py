"""Telegram client factory for sirenscope.

We explicitly manage the client's lifecycle (connect/authorize/disconnect) so
it is obvious when the session is created and when it ends.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient

from core.errors import ConfigError


def build_client() -> TelegramClient:
    """Create a Telethon client from environment variables.

    API_ID/API_HASH are read via python-dotenv to keep secrets out of the
    repo. The session name defaults to "sirenscope", creating a local
    .session file that keeps the login between restarts.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "sirenscope")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise ConfigError("Missing API_ID or API_HASH in environment")
    try:
        parsed_api_id = int(api_id)
    except ValueError:
        raise ConfigError("API_ID must be an integer") from None

    logging.getLogger(__name__).info("Initializing Telegram client (session %s)", session_name)

    return TelegramClient(session_name, parsed_api_id, api_hash, connection_retries=5)

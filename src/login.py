"""Interactive authorization of the Telethon session.

Only the ``login`` CLI command prompts. ``run`` refuses to start with an
unauthorized session instead of blocking on input inside the scheduler.
"""

from __future__ import annotations

from getpass import getpass
import logging
import os

import qrcode
from telethon import TelegramClient, errors

LOGGER = logging.getLogger(__name__)

LOGIN_METHODS = ("qr", "phone")


def _print_qr(url: str) -> None:
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    qr.print_ascii(invert=True)


def _two_factor_password() -> str:
    return os.getenv("TWO_FA_PASSWORD") or getpass("2FA password: ")


async def _login_with_qr(client: TelegramClient) -> None:
    qr_login = await client.qr_login()
    print("Scan this code in Telegram: Settings > Devices > Link Desktop Device")
    _print_qr(qr_login.url)
    try:
        await qr_login.wait(timeout=120)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=_two_factor_password())


async def _login_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    code = input("Login code: ").strip()
    try:
        await client.sign_in(phone=phone, code=code)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=_two_factor_password())


async def authorize(client: TelegramClient, method: str = "qr") -> None:
    """Log the session in unless it already is."""

    if await client.is_user_authorized():
        LOGGER.info("Session is already authorized")
        return
    if method not in LOGIN_METHODS:
        raise ValueError(f"Unsupported login method: {method}")
    if method == "phone":
        await _login_with_phone(client)
    else:
        await _login_with_qr(client)
    me = await client.get_me()
    LOGGER.info("Logged in as %s", getattr(me, "username", None) or getattr(me, "first_name", "?"))

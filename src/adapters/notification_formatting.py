"""Shared notification formatting helpers.

Keeping formatting here prevents drift between the digest and per-match
modes and keeps messages consistent regardless of delivery adapter. Every
body is Telegram HTML.
"""

from __future__ import annotations

from datetime import datetime, timezone, tzinfo
import html
from typing import Iterable, Optional

from core.models import MatchEvent

DATE_FORMAT = "%d.%m.%Y, %H:%M:%S"


def format_timestamp(timestamp: float, tz: Optional[tzinfo] = None) -> str:
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.astimezone(tz or timezone.utc).strftime(DATE_FORMAT)


def _link(event: MatchEvent) -> str:
    href = html.escape(event.link, quote=True)
    channel = html.escape(event.channel)
    return f"<a href=\"{href}\">Message @{channel}</a>"


def format_digest(events: Iterable[MatchEvent], tz: Optional[tzinfo] = None) -> str:
    """One message listing every match of a cycle."""

    lines = ["🔔 <b>New mentions:</b>", ""]
    for event in events:
        lines.append(f"🔗 {_link(event)} — <i>{format_timestamp(event.timestamp, tz)}</i>")
    return "\n".join(lines)


def format_match(event: MatchEvent, tz: Optional[tzinfo] = None, snippet_chars: int = 400) -> str:
    """One message for a single match, with keywords and an excerpt."""

    keywords = html.escape(", ".join(event.matched_keywords))
    excerpt = html.escape(event.snippet[:snippet_chars].strip())
    parts = [
        f"🔔 <b>Mention:</b> {keywords}",
        f"🔗 {_link(event)} — <i>{format_timestamp(event.timestamp, tz)}</i>",
    ]
    if excerpt:
        parts.extend(["", excerpt])
    return "\n".join(parts)


def format_alert_started(reason: str) -> str:
    return f"🚨 <b>Air raid alert.</b> Channel monitoring started ({html.escape(reason)})."


def format_alert_cleared(reason: str) -> str:
    return f"✅ <b>All clear.</b> Channel monitoring stopped ({html.escape(reason)})."

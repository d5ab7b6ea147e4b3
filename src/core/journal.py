"""Operator log digest (core domain).

Components log through the standard ``logging`` module. JournalHandler
mirrors those records into a LogAggregator, and a periodic job drains the
buffer into a single digest message for the operator channel.
"""

from __future__ import annotations

from collections import deque
import html
import logging
import time
from typing import Callable, Deque, List, Optional

from core.ports import NotifierPort

LOGGER = logging.getLogger(__name__)

DEFAULT_CAPACITY = 500
# Telegram rejects messages longer than 4096 characters.
MAX_DIGEST_CHARS = 4096
_PRE_OPEN = "<pre>"
_PRE_CLOSE = "</pre>"


class LogAggregator:
    """Bounded buffer of timestamped, human-readable event lines."""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"Journal capacity must be positive, got {capacity}")
        self._lines: Deque[str] = deque(maxlen=capacity)
        self._clock = clock

    @property
    def capacity(self) -> int:
        return self._lines.maxlen or 0

    def record(self, message: str, is_error: bool = False) -> None:
        stamp = time.strftime("%H:%M:%S", time.localtime(self._clock()))
        prefix = "ERROR " if is_error else ""
        # The deque drops the oldest line once capacity is reached.
        self._lines.append(f"[{stamp}] {prefix}{message}")

    def drain(self) -> List[str]:
        lines = list(self._lines)
        self._lines.clear()
        return lines

    def __len__(self) -> int:
        return len(self._lines)

    async def flush(self, sink: NotifierPort, target_id: str) -> int:
        """Send everything buffered as one or more preformatted digests.

        Returns the number of messages sent. Nothing is sent for an empty
        buffer. A failed send is logged and its lines are dropped.
        """

        lines = self.drain()
        if not lines:
            return 0

        sent = 0
        for chunk in split_digest(lines):
            try:
                await sink.send(target_id, chunk)
            except Exception:
                # Logged without the journal so a broken sink cannot refill it.
                LOGGER.error("Failed to deliver log digest", exc_info=True, extra={"journal": False})
                continue
            sent += 1
        return sent


def split_digest(lines: List[str], max_chars: int = MAX_DIGEST_CHARS) -> List[str]:
    """Pack escaped lines into ``<pre>`` blocks that fit one Telegram message."""

    budget = max_chars - len(_PRE_OPEN) - len(_PRE_CLOSE)
    chunks: List[str] = []
    current: List[str] = []
    size = 0
    for raw in lines:
        line = html.escape(raw)
        if len(line) > budget:
            line = line[: budget - 1] + "…"
        extra = len(line) + (1 if current else 0)
        if current and size + extra > budget:
            chunks.append(_PRE_OPEN + "\n".join(current) + _PRE_CLOSE)
            current, size = [], 0
            extra = len(line)
        current.append(line)
        size += extra
    if current:
        chunks.append(_PRE_OPEN + "\n".join(current) + _PRE_CLOSE)
    return chunks


class JournalHandler(logging.Handler):
    """Logging handler that mirrors records into a LogAggregator.

    Records logged with ``extra={"journal": False}`` are skipped.
    """

    def __init__(
        self,
        journal: LogAggregator,
        level: int = logging.INFO,
        formatter: Optional[logging.Formatter] = None,
    ) -> None:
        super().__init__(level=level)
        self._journal = journal
        self.setFormatter(formatter or logging.Formatter("%(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(record, "journal", True) is False:
            return
        try:
            message = self.format(record)
        except Exception:
            self.handleError(record)
            return
        self._journal.record(message, is_error=record.levelno >= logging.ERROR)


def attach_journal(
    journal: LogAggregator,
    level: int = logging.INFO,
    logger: Optional[logging.Logger] = None,
    formatter: Optional[logging.Formatter] = None,
) -> JournalHandler:
    """Attach a JournalHandler to ``logger`` (root by default) and return it.

    The logger is lowered to ``level`` when needed; console and file handlers
    keep their own levels.
    """

    target = logger or logging.getLogger()
    handler = JournalHandler(journal, level=level, formatter=formatter)
    target.addHandler(handler)
    if target.getEffectiveLevel() > level:
        target.setLevel(level)
    return handler

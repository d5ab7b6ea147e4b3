from __future__ import annotations

import logging
from types import SimpleNamespace

import app
from core.config import JournalConfig
from core.journal import LogAggregator


def test_operator_journal_sees_info_with_console_logging_disabled(monkeypatch) -> None:
    monkeypatch.setenv("BOT_API", "123456:bot-secret-token")
    config = SimpleNamespace(journal=JournalConfig(level="INFO"), logging={"enabled": False})
    journal = LogAggregator()
    root = logging.getLogger()
    previous_level = root.level
    root.setLevel(logging.WARNING)
    handler = app._attach_operator_journal(journal, config)
    try:
        logging.getLogger("core.controller").info("Parser started: alert ACTIVE")
        logging.getLogger("core.poller").info("Bot 123456:bot-secret-token sent the digest")
    finally:
        root.removeHandler(handler)
        root.setLevel(previous_level)

    lines = journal.drain()

    assert len(lines) == 2
    assert lines[0].endswith("Parser started: alert ACTIVE")
    assert "bot-secret-token" not in lines[1]
    assert lines[1].endswith("Bot *** sent the digest")

"""Application entry point for the sirenscope watcher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from art import tprint
from dotenv import load_dotenv

import settings as settings_module
from adapters.alerts_in_ua import AlertsInUaFeed
from adapters.publisher import MatchPublisher
from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_notifier import TelegramClientNotifier
from adapters.telegram_source import TelegramMessageSource
from client import build_client
from core.alerts import AlertMonitor, classify_status
from core.errors import ConfigError, SirenscopeError
from core.journal import JournalHandler, LogAggregator, attach_journal
from core.matcher import build_matchers
from core.poller import ChannelPoller
from core.scheduler import AsyncioScheduler
from core.session import WatchSession
from core.watcher import Watcher
from login import LOGIN_METHODS, authorize

NAME = "SIRENSCOPE"
FONT = "tarty-1"

DEFAULT_REDACT = ["API_HASH", "BOT_API", "ALERTS_API_TOKEN"]

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: dict) -> list[str]:
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", DEFAULT_REDACT):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: dict) -> None:
    config = config or {}
    if not config.get("enabled", True):
        return

    load_dotenv()
    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/sirenscope.log")
        if not os.path.isabs(path):
            path = os.path.join(settings_module.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers)
    _quiet_libraries(level)


def _quiet_libraries(level: int) -> None:
    # Telethon is chatty at INFO (reconnects, DC switches).
    for name in ("telethon", "httpx"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def _attach_operator_journal(journal: LogAggregator, config: settings_module.Settings) -> JournalHandler:
    """Mirror log records into the digest journal, with the same secrets redacted."""

    level = getattr(logging, config.journal.level, logging.INFO)
    formatter = _RedactingFormatter(_collect_redaction_values(config.logging), fmt="%(message)s")
    handler = attach_journal(journal, level=level, formatter=formatter)
    _quiet_libraries(level)
    return handler


def _timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except ZoneInfoNotFoundError:
        raise ConfigError(f"Unknown timezone: {name}") from None


def _build_watcher(
    config: settings_module.Settings,
    client,
    http: httpx.AsyncClient,
    scheduler: AsyncioScheduler,
) -> Watcher:
    # Keyword patterns are compiled once here; a bad pattern stops startup.
    matchers = build_matchers(config.poller.keywords)
    LOGGER.info("%s keywords compiled, %s channels configured", len(matchers), len(config.poller.channels))

    session = WatchSession.create(
        dedupe_capacity=config.dedup.capacity,
        journal_capacity=config.journal.capacity,
    )
    _attach_operator_journal(session.journal, config)

    # Select the notification adapter based on configuration to keep the core
    # independent from delivery details.
    if config.notifications.method == "bot":
        notifier = TelegramBotNotifier(http, config.bot_token)
    else:
        notifier = TelegramClientNotifier(client)
    LOGGER.info("Selected notification method - %s", config.notifications.method)

    publisher = MatchPublisher(
        notifier,
        config.notifications.target_channel,
        mode=config.notifications.mode,
        tz=_timezone(config.notifications.timezone),
        snippet_chars=config.notifications.snippet_chars,
    )

    monitor = None
    if config.alerts.enabled:
        feed = AlertsInUaFeed(http, config.alerts.endpoint, config.alerts.region_id, config.alerts.token)
        monitor = AlertMonitor(feed, session, rate_limit_backoff=config.alerts.rate_limit_backoff)
        LOGGER.info("Alert gating enabled for region %s", config.alerts.region_id)
    else:
        LOGGER.info("Alert gating disabled, channels are polled continuously")

    poller = ChannelPoller(TelegramMessageSource(client), matchers, config.poller)
    return Watcher(
        session,
        scheduler,
        poller,
        publisher,
        config.schedule,
        monitor=monitor,
        announcer=publisher,
        log_sink=notifier,
        log_channel=config.notifications.log_channel,
    )


async def _serve(config: settings_module.Settings) -> int:
    client = build_client()
    await client.connect()
    try:
        if not await client.is_user_authorized():
            raise ConfigError("Telegram session is not authorized, run `sirenscope login` first")

        stop_event = asyncio.Event()
        faults: list[str] = []

        def _on_fault(job_name: str, error: BaseException) -> None:
            # State may be half-updated after an unexpected error; stop serving.
            faults.append(job_name)
            stop_event.set()

        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, stop_event.set)
            except (NotImplementedError, RuntimeError):
                pass

        async with httpx.AsyncClient(timeout=config.alerts.request_timeout) as http:
            scheduler = AsyncioScheduler(on_fault=_on_fault)
            watcher = _build_watcher(config, client, http, scheduler)
            await watcher.start()
            LOGGER.info("Watcher started. Waiting for alerts...")
            try:
                await stop_event.wait()
            finally:
                if faults:
                    LOGGER.critical("Unhandled fault in job %s, shutting down", faults[0])
                else:
                    LOGGER.info("Shutting down")
                await watcher.stop()
                await scheduler.shutdown()
        return 1 if faults else 0
    finally:
        await client.disconnect()


def _run() -> None:
    _print_banner()
    _configure_logging(settings_module.load_logging_config())
    LOGGER.info("Starting sirenscope")
    try:
        config = settings_module.load_settings()
        exit_code = asyncio.run(_serve(config))
    except ConfigError as exc:
        LOGGER.error("Startup failed: %s", exc)
        raise SystemExit(2) from None
    raise SystemExit(exit_code)


def _login(method: str) -> None:
    _print_banner()
    _configure_logging(settings_module.load_logging_config())
    client = build_client()

    async def _run_login() -> None:
        await client.connect()
        try:
            await authorize(client, method)
        finally:
            await client.disconnect()

    asyncio.run(_run_login())


def _alert_status() -> None:
    _configure_logging(settings_module.load_logging_config())
    try:
        config = settings_module.load_settings()
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        raise SystemExit(2) from None
    if not config.alerts.enabled:
        print("Alert gating is disabled in config.json")
        return

    async def _query() -> str:
        async with httpx.AsyncClient(timeout=config.alerts.request_timeout) as http:
            feed = AlertsInUaFeed(http, config.alerts.endpoint, config.alerts.region_id, config.alerts.token)
            return await feed.fetch_status()

    try:
        raw = asyncio.run(_query())
    except SirenscopeError as exc:
        print(f"Alert feed error: {exc}", file=sys.stderr)
        raise SystemExit(1) from None
    print(f"Region {config.alerts.region_id}: {classify_status(raw).name} (raw {raw.strip()!r})")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="sirenscope")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the watcher")
    login_parser = subparsers.add_parser("login", help="Authorize the Telegram session")
    login_parser.add_argument("--method", choices=LOGIN_METHODS, default="qr")
    subparsers.add_parser("alert-status", help="Query the alert feed once and print the state")

    args = parser.parse_args(argv)
    if args.command == "login":
        _login(args.method)
        return
    if args.command == "alert-status":
        _alert_status()
        return
    _run()


if __name__ == "__main__":
    main()

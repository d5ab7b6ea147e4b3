"""Configuration loading for sirenscope.

All user-editable settings (keywords, channels, intervals, notifications)
live in a single JSON file for quick edits without touching Python. Secrets
(API credentials, tokens) come from the environment, with python-dotenv
reading a local .env file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
import os
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from core.config import (
    AlertConfig,
    DedupConfig,
    JournalConfig,
    NotificationConfig,
    PollerConfig,
    ScheduleConfig,
)
from core.errors import ConfigError
from core.matcher import normalize_keywords

LOGGER = logging.getLogger(__name__)

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits next to the project root unless SIRENSCOPE_CONFIG points elsewhere.
DEFAULT_CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

NOTIFICATION_METHODS = ("bot", "client")
DELIVERY_MODES = ("digest", "per_match")


@dataclass(frozen=True)
class Settings:
    """Everything the app needs to build the watcher."""

    poller: PollerConfig
    schedule: ScheduleConfig
    alerts: AlertConfig
    dedup: DedupConfig
    journal: JournalConfig
    notifications: NotificationConfig
    logging: dict = field(default_factory=dict)
    bot_token: str = field(default="", repr=False)


def _load_json_config(path: str) -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(path):
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Config file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _section(config: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be an object")
    return value


def _number(section: Mapping[str, Any], key: str, default: float, *, where: str, allow_zero: bool = False) -> float:
    raw = section.get(key, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ConfigError(f"{where}.{key} must be a number, got {raw!r}") from None
    if value < 0 or (value == 0 and not allow_zero):
        raise ConfigError(f"{where}.{key} must be positive, got {raw!r}")
    return value


def _optional_timeout(section: Mapping[str, Any], key: str, default: float, *, where: str) -> Optional[float]:
    # An explicit null disables the timeout.
    if key in section and section[key] is None:
        return None
    return _number(section, key, default, where=where)


def _normalize_channels(raw_channels: Any) -> tuple[str, ...]:
    """Strip '@', lowercase, and drop duplicates while keeping order."""

    if isinstance(raw_channels, str):
        raw_channels = raw_channels.split(",")
    if not isinstance(raw_channels, list):
        raise ConfigError("'channels' must be a list of channel usernames")

    channels: list[str] = []
    for entry in raw_channels:
        channel = str(entry or "").strip().lstrip("@").lower()
        if not channel:
            continue
        if channel in channels:
            LOGGER.warning("Channel @%s is listed more than once, keeping the first entry", channel)
            continue
        channels.append(channel)
    return tuple(channels)


def _normalize_keyword_list(raw_keywords: Any) -> tuple[str, ...]:
    if isinstance(raw_keywords, str):
        raw_keywords = raw_keywords.split(",")
    if not isinstance(raw_keywords, list):
        raise ConfigError("'keywords' must be a list of strings")
    return tuple(normalize_keywords(str(keyword) for keyword in raw_keywords))


def build_settings(config: Mapping[str, Any], env: Mapping[str, str]) -> Settings:
    """Validate a parsed config plus environment into Settings.

    Raises ConfigError for anything missing or malformed, so the scheduler is
    never started with a half-valid configuration.
    """

    keywords = _normalize_keyword_list(config.get("keywords", []))
    if not keywords:
        raise ConfigError("At least one keyword is required")
    channels = _normalize_channels(config.get("channels", []))
    if not channels:
        raise ConfigError("At least one channel is required")

    polling = _section(config, "polling")
    poller = PollerConfig(
        channels=channels,
        keywords=keywords,
        messages_per_channel=int(_number(polling, "messages_per_channel", 3, where="polling")),
        delay_seconds=_number(polling, "delay_seconds", 2.0, where="polling", allow_zero=True),
        jitter_seconds=_number(polling, "jitter_seconds", 4.0, where="polling", allow_zero=True),
    )

    alerts_cfg = _section(config, "alerts")
    journal_cfg = _section(config, "journal")
    schedule = ScheduleConfig(
        poll_interval=_number(polling, "interval_seconds", 180.0, where="polling"),
        poll_timeout=_optional_timeout(polling, "timeout_seconds", 150.0, where="polling"),
        alert_interval=_number(alerts_cfg, "interval_seconds", 30.0, where="alerts"),
        alert_timeout=_optional_timeout(alerts_cfg, "timeout_seconds", 20.0, where="alerts"),
        flush_interval=_number(journal_cfg, "flush_interval_seconds", 300.0, where="journal"),
    )

    alerts_enabled = bool(alerts_cfg.get("enabled", True))
    region_id = str(alerts_cfg.get("region_id") or "").strip()
    token = env.get("ALERTS_API_TOKEN", "")
    if alerts_enabled:
        if not region_id:
            raise ConfigError("alerts.region_id is required when alert gating is enabled")
        if not token:
            raise ConfigError("ALERTS_API_TOKEN is required when alert gating is enabled")
    alerts = AlertConfig(
        enabled=alerts_enabled,
        endpoint=str(alerts_cfg.get("endpoint") or AlertConfig.endpoint),
        region_id=region_id,
        token=token,
        request_timeout=_number(alerts_cfg, "request_timeout_seconds", 10.0, where="alerts"),
        rate_limit_backoff=_number(alerts_cfg, "rate_limit_backoff_seconds", 60.0, where="alerts"),
    )

    dedup_cfg = _section(config, "dedup")
    dedup = DedupConfig(capacity=int(_number(dedup_cfg, "capacity", 1000, where="dedup")))
    journal = JournalConfig(
        capacity=int(_number(journal_cfg, "capacity", 500, where="journal")),
        level=str(journal_cfg.get("level", "INFO")).upper(),
    )

    notifications_cfg = _section(config, "notifications")
    target = str(notifications_cfg.get("target_channel") or env.get("TARGET_CHANNEL", "")).strip()
    if not target:
        raise ConfigError("notifications.target_channel (or TARGET_CHANNEL) is required")
    log_channel = str(notifications_cfg.get("log_channel") or env.get("LOG_CHANNEL", "")).strip() or None
    method = str(notifications_cfg.get("method", "bot"))
    if method not in NOTIFICATION_METHODS:
        raise ConfigError("notifications.method must be 'bot' or 'client'")
    mode = str(notifications_cfg.get("mode", "digest"))
    if mode not in DELIVERY_MODES:
        raise ConfigError("notifications.mode must be 'digest' or 'per_match'")
    bot_token = env.get("BOT_API", "")
    if method == "bot" and not bot_token:
        raise ConfigError("BOT_API is required when notifications.method=bot")
    notifications = NotificationConfig(
        target_channel=target,
        log_channel=log_channel,
        method=method,
        mode=mode,
        timezone=str(notifications_cfg.get("timezone", "Europe/Kyiv")),
        snippet_chars=int(_number(notifications_cfg, "snippet_chars", 400, where="notifications")),
    )

    return Settings(
        poller=poller,
        schedule=schedule,
        alerts=alerts,
        dedup=dedup,
        journal=journal,
        notifications=notifications,
        logging=dict(_section(config, "logging")),
        bot_token=bot_token,
    )


def load_settings(path: Optional[str] = None) -> Settings:
    """Read .env and config.json and return validated Settings."""

    load_dotenv()
    config_path = path or os.getenv("SIRENSCOPE_CONFIG") or DEFAULT_CONFIG_PATH
    return build_settings(_load_json_config(config_path), os.environ)


def load_logging_config(path: Optional[str] = None) -> dict:
    """Return only the logging section, tolerating a missing config file."""

    config_path = path or os.getenv("SIRENSCOPE_CONFIG") or DEFAULT_CONFIG_PATH
    try:
        return dict(_section(_load_json_config(config_path), "logging"))
    except ConfigError:
        return {}

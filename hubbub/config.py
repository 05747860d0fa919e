"""Configuration loading from a JSON file and HUBBUB_* environment variables.

Values present in the config file win; environment variables only fill the
fields the file leaves unset, and defaults fill whatever remains.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from hubbub.collector.timezone import resolve_zone
from hubbub.models.config import (
    DEFAULT_QUIET_WINDOW_MINUTES,
    DEFAULT_SELF,
    DEFAULT_SLACK_TITLE,
    DEFAULT_SLACK_USER,
    DEFAULT_TIMEZONE,
    APIConfig,
    HubbubConfig,
    NotificationConfig,
)


class ConfigError(ValueError):
    """Raised when the configuration cannot be loaded or is incomplete."""


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"HUBBUB_{key}", default)


def _pick(file_value: Any, env_key: str, default: str = "") -> str:
    if file_value not in (None, ""):
        return str(file_value)
    return _env(env_key, default) or default


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes", "t")


def _parse_minutes(value: Any) -> int:
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        return DEFAULT_QUIET_WINDOW_MINUTES
    return minutes if minutes > 0 else DEFAULT_QUIET_WINDOW_MINUTES


def _parse_port(value: Any) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid API port: {value!r}") from exc
    if port != 0 and not 1 <= port <= 65535:
        raise ConfigError(f"Invalid API port: {port}. Must be 0 (disabled) or 1-65535")
    return port


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ConfigError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def read_config_file(path: str | Path) -> dict[str, Any]:
    """Read the JSON config file at *path*. An empty file yields ``{}``."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to open config file {path}: {exc}") from exc
    if not content.strip():
        return {}
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Error parsing config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def load_config(path: str | Path | None = None, env_only: bool = False) -> HubbubConfig:
    """Build a HubbubConfig from *path* (unless *env_only*) and the environment.

    Raises:
        ConfigError: if the file cannot be read, a value is invalid, or no
            namespace is configured.
    """
    raw: dict[str, Any] = {}
    if path is not None and not env_only:
        raw = read_config_file(path)
    notif: dict[str, Any] = raw.get("notifications") or {}

    if "debug" in raw:
        debug = _parse_bool(raw["debug"])
    else:
        debug = _parse_bool(_env("DEBUG", "false"))

    timezone = _pick(raw.get("timezone"), "TIMEZONE", DEFAULT_TIMEZONE)
    log_level = _pick(raw.get("logLevel"), "LOG_LEVEL", "debug" if debug else "info")

    config = HubbubConfig(
        namespace=_pick(raw.get("namespace"), "NAMESPACE"),
        debug=debug,
        self_name=_pick(raw.get("self"), "SELF", DEFAULT_SELF),
        quiet_window_minutes=_parse_minutes(_pick(raw.get("time"), "TIMECHECK", str(DEFAULT_QUIET_WINDOW_MINUTES))),
        timezone=timezone,
        tz=resolve_zone(timezone),
        log_level=_validate_log_level(log_level),
        notifications=NotificationConfig(
            type=_pick(notif.get("type"), "NOTIFICATION_TYPE").lower(),
            slack_webhook=_pick(notif.get("slackWebhook"), "WEBHOOK"),
            slack_channel=_pick(notif.get("slackChannel"), "CHANNEL"),
            slack_title=_pick(notif.get("slackTitle"), "TITLE", DEFAULT_SLACK_TITLE),
            slack_user=_pick(notif.get("slackUser"), "USER", DEFAULT_SLACK_USER),
            slack_icon=_pick(notif.get("slackIcon"), "ICON"),
            instrumentation_key=_pick(notif.get("instrumentationKey"), "INSTRUMENTATION_KEY"),
            custom_event_title=_pick(notif.get("customEventTitle"), "EVENT_TITLE"),
            endpoint=_pick(notif.get("endpoint"), "NOTIFICATION_ENDPOINT"),
        ),
        api=APIConfig(
            port=_parse_port(_pick(raw.get("apiPort"), "API_PORT", "8080")),
        ),
    )

    # A watch without a namespace would cover the whole cluster; require it.
    if not config.namespace:
        raise ConfigError("Please ensure the config has a namespace specified")

    return config

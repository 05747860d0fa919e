"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import tzinfo

DEFAULT_TIMEZONE = "America/New_York"
DEFAULT_QUIET_WINDOW_MINUTES = 3
DEFAULT_SELF = "Hubbub"
DEFAULT_SLACK_USER = "Hubbub"
DEFAULT_SLACK_TITLE = "There has been a pod error in production!"
DEFAULT_EVENT_TITLE = "Hubbub pod failure"


@dataclass
class NotificationConfig:
    """Notification transport configuration.

    ``type`` selects the transport; the remaining fields are only read by
    the transport they belong to.
    """

    type: str = ""
    slack_webhook: str = ""
    slack_channel: str = ""
    slack_title: str = ""
    slack_user: str = ""
    slack_icon: str = ""
    instrumentation_key: str = ""
    custom_event_title: str = ""
    endpoint: str = ""


@dataclass
class APIConfig:
    """Health and metrics HTTP endpoint configuration. Port 0 disables it."""

    port: int = 8080


@dataclass
class HubbubConfig:
    """Top-level Hubbub configuration."""

    namespace: str = ""
    debug: bool = False
    self_name: str = DEFAULT_SELF
    quiet_window_minutes: int = DEFAULT_QUIET_WINDOW_MINUTES
    timezone: str = DEFAULT_TIMEZONE
    tz: tzinfo | None = None
    log_level: str = "info"
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    api: APIConfig = field(default_factory=APIConfig)

"""Notification system for Hubbub.

Delivers one alert per new failure record through the single transport
selected at startup.

Exports:
    NotificationHandler            -- Abstract base for all transports.
    dispatch                       -- Sends a record through a handler; never raises.
    SlackNotificationHandler       -- Slack incoming webhook.
    AppInsightsNotificationHandler -- Application Insights custom events.
    ConsoleNotificationHandler     -- JSON lines on stdout.
    build_notification_handler     -- Factory used by the application bootstrap.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from hubbub.notifications.appinsights import AppInsightsNotificationHandler
from hubbub.notifications.console import ConsoleNotificationHandler
from hubbub.notifications.manager import NotificationHandler, dispatch
from hubbub.notifications.slack import SlackNotificationHandler

if TYPE_CHECKING:
    from hubbub.models.config import NotificationConfig

_log = structlog.get_logger(component="notifications")

__all__ = [
    "AppInsightsNotificationHandler",
    "ConsoleNotificationHandler",
    "NotificationHandler",
    "SlackNotificationHandler",
    "build_notification_handler",
    "dispatch",
]

_SLACK_TYPES = {"slack", "sl"}
_APPINSIGHTS_TYPES = {"appinsights", "ai", "applicationinsights"}


def build_notification_handler(config: NotificationConfig) -> NotificationHandler:
    """Build the handler named by ``config.type``.

    ``slack``/``sl`` selects Slack, ``appinsights``/``ai``/
    ``applicationinsights`` selects Application Insights, and anything else
    (including an empty type) falls back to the console.

    Raises:
        ValueError: if a required setting of the selected transport is missing.
    """
    handler_type = config.type.strip().lower()

    if handler_type in _SLACK_TYPES:
        handler: NotificationHandler = SlackNotificationHandler(
            webhook_url=config.slack_webhook,
            channel=config.slack_channel,
            title=config.slack_title,
            username=config.slack_user,
            icon_url=config.slack_icon,
        )
    elif handler_type in _APPINSIGHTS_TYPES:
        handler = AppInsightsNotificationHandler(
            instrumentation_key=config.instrumentation_key,
            event_name=config.custom_event_title,
            endpoint=config.endpoint,
        )
    else:
        handler = ConsoleNotificationHandler()

    _log.info("notification_handler_enabled", channel=handler.channel_name)
    return handler

"""Notification handler contract and dispatch for Hubbub.

NotificationHandler -- ABC every transport implements. Construction
                       validates the transport settings and raises
                       ValueError when a required one is missing.
dispatch            -- Delivers one failure record through a handler;
                       never raises and never retries. The watcher only
                       advances its last-alert baseline when this returns
                       True.

The text helpers below are shared by every transport so that Slack,
Application Insights and the console describe a failure the same way.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

import structlog

from hubbub.models.failures import FailureRecord
from hubbub.observability.metrics import notifications_total

_log = structlog.get_logger(component="notifications.manager")

_EXIT_CODES: dict[int, str] = {
    139: "Segmentation fault.",
    143: "The container received a SIGTERM.",
    137: "The container received a SIGKILL.",
    127: "Command not found.",
    130: "Container terminated.",
    126: "There was an error regarding permissions or the container could not be invoked.",
    125: "The Docker Run command has failed.",
    1: "Application Error.",
}


def exit_code_description(exit_code: int) -> str:
    """Describe a well-known container exit code, or return ``""``."""
    return _EXIT_CODES.get(exit_code, "")


def failure_reason(record: FailureRecord) -> str:
    """Human-readable failure reason built from ``reason`` and ``message``."""
    if record.reason and record.message:
        return f"Failure reason received : `{record.reason} - {record.message}`"
    if record.message:
        return f"Failure reason received : `{record.message}`"
    if record.reason:
        return f"Failure reason received : `{record.reason}`"
    return "Unable to determine the reason for the failure."


def error_code_text(record: FailureRecord) -> str:
    """Exit code together with its meaning, when known."""
    description = exit_code_description(record.exit_code)
    if description:
        return f"Error code : {record.exit_code} `{description}`"
    return f"Error code : {record.exit_code}"


def format_stamp(value: datetime | None) -> str:
    """Fixed-width ``Jan _2 15:04:05`` stamp; ``""`` when unset."""
    if value is None:
        return ""
    return f"{value:%b} {value.day:>2} {value:%H:%M:%S}"


class NotificationHandler(ABC):
    """Abstract base class for all notification transports.

    ``send`` should not raise -- return ``False`` instead.
    """

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Transport identifier used in metrics and logs."""

    @abstractmethod
    def build_payload(self, record: FailureRecord) -> object:
        """Build the transport-specific alert payload for *record*."""

    @abstractmethod
    async def send(self, record: FailureRecord) -> bool:
        """Deliver an alert for *record*.

        Returns:
            True  -- alert accepted by the transport.
            False -- delivery failed (already logged inside implementation).
        """


async def dispatch(handler: NotificationHandler, record: FailureRecord) -> bool:
    """Deliver *record* through *handler*, recording metrics regardless of outcome."""
    try:
        success = await handler.send(record)
    except Exception as exc:  # noqa: BLE001
        _log.error(
            "notification_handler_unexpected_error",
            channel=handler.channel_name,
            pod=record.pod_name,
            error=str(exc),
        )
        success = False

    label = "true" if success else "false"
    notifications_total.labels(channel=handler.channel_name, success=label).inc()

    if success:
        _log.info(
            "notification_sent",
            channel=handler.channel_name,
            namespace=record.namespace,
            pod=record.pod_name,
            container=record.container_name,
            exit_code=record.exit_code,
        )
    else:
        _log.warning(
            "notification_failed",
            channel=handler.channel_name,
            pod=record.pod_name,
        )
    return success

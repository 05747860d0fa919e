"""Slack incoming-webhook notification transport for Hubbub.

Posts a message with one ``danger``-coloured attachment describing the
failed pod, its container and image, the failure reason, the exit code and
how long the pod ran.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from hubbub.models.failures import FailureRecord
from hubbub.notifications.manager import (
    NotificationHandler,
    error_code_text,
    failure_reason,
    format_stamp,
)

_log = structlog.get_logger(component="notifications.slack")

_ATTACHMENT_COLOR = "danger"


def build_message(record: FailureRecord) -> str:
    """Slack mrkdwn text describing *record*."""
    return (
        f"The pod : *{record.pod_name}* has encountered an error.\n\n"
        f"The container is : *{record.container_name}*\n"
        f"Which is running image : *{record.image}*.\n"
        "The error information is below.\n\n\n"
        f"> {failure_reason(record)}\n"
        f"> {error_code_text(record)}\n"
        f"> The pod ran from : *{format_stamp(record.started_at)} until {format_stamp(record.finished_at)}*"
    )


class SlackNotificationHandler(NotificationHandler):
    """Delivers alerts to a Slack incoming webhook.

    Args:
        webhook_url: Incoming-webhook URL.
        channel:     Channel to post to, e.g. ``#alerts``.
        title:       Attachment title.
        username:    Display name of the posting bot.
        icon_url:    Optional avatar for the posting bot.
        timeout:     HTTP request timeout in seconds. Defaults to 10.
        transport:   Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        webhook_url: str,
        channel: str,
        title: str = "",
        username: str = "",
        icon_url: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not webhook_url or not channel:
            raise ValueError("Missing slack webhook or channel")
        self._webhook_url = webhook_url
        self._channel = channel
        self._title = title
        self._username = username
        self._icon_url = icon_url
        self._timeout = timeout
        self._transport = transport

    @property
    def channel_name(self) -> str:
        return "slack"

    def build_payload(self, record: FailureRecord) -> dict[str, Any]:
        """Build the Slack webhook JSON body for *record*."""
        message = build_message(record)
        payload: dict[str, Any] = {
            "channel": self._channel,
            "username": self._username,
            "attachments": [
                {
                    "fallback": message,
                    "color": _ATTACHMENT_COLOR,
                    "title": self._title,
                    "fields": [{"value": message}],
                }
            ],
        }
        if self._icon_url:
            payload["icon_url"] = self._icon_url
        return payload

    async def send(self, record: FailureRecord) -> bool:
        """POST the alert to the webhook. Returns True on a 2xx response."""
        payload = self.build_payload(record)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._webhook_url, json=payload)
        except httpx.TimeoutException:
            _log.warning("slack_request_timeout", pod=record.pod_name)
            return False
        except httpx.HTTPError as exc:
            _log.warning("slack_http_error", error=str(exc), pod=record.pod_name)
            return False

        if not response.is_success:
            _log.warning(
                "slack_non_2xx_response",
                status_code=response.status_code,
                body=response.text[:200],
                pod=record.pod_name,
            )
            return False
        if response.text.strip().lower() != "ok":
            _log.info("slack_unexpected_response_body", body=response.text[:200])
        return True

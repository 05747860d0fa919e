"""Application Insights notification transport for Hubbub.

Sends each alert as a custom event to the Application Insights ingestion
endpoint. The event carries a flat, string-keyed property map so it can be
queried from ``customEvents`` without parsing.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import httpx
import structlog

from hubbub.models.config import DEFAULT_EVENT_TITLE
from hubbub.models.failures import FailureRecord
from hubbub.notifications.manager import (
    NotificationHandler,
    exit_code_description,
    failure_reason,
    format_stamp,
)

_log = structlog.get_logger(component="notifications.appinsights")

DEFAULT_TRACK_ENDPOINT = "https://dc.services.visualstudio.com/v2/track"


def build_properties(record: FailureRecord) -> dict[str, str]:
    """Flatten *record* into the custom event property map."""
    return {
        "namespace": record.namespace,
        "podName": record.pod_name,
        "containerName": record.container_name,
        "image": record.image,
        "exitCode": str(record.exit_code),
        "exitCodeDescription": exit_code_description(record.exit_code),
        "reason": record.reason,
        "message": record.message,
        "failureReason": failure_reason(record),
        "startedAt": format_stamp(record.started_at),
        "finishedAt": format_stamp(record.finished_at),
    }


class AppInsightsNotificationHandler(NotificationHandler):
    """Delivers alerts as Application Insights custom events.

    Args:
        instrumentation_key: Application Insights instrumentation key.
        event_name:          Custom event name. Defaults to ``Hubbub pod failure``.
        endpoint:            Track endpoint; defaults to the public ingestion URL.
        timeout:             HTTP request timeout in seconds. Defaults to 10.
        transport:           Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        instrumentation_key: str,
        event_name: str = "",
        endpoint: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not instrumentation_key:
            raise ValueError("Missing Application Insights instrumentation key")
        self._ikey = instrumentation_key
        self._event_name = event_name or DEFAULT_EVENT_TITLE
        self._endpoint = endpoint or DEFAULT_TRACK_ENDPOINT
        self._timeout = timeout
        self._transport = transport

    @property
    def channel_name(self) -> str:
        return "appinsights"

    def build_payload(self, record: FailureRecord) -> dict[str, Any]:
        """Build the ``EventData`` telemetry envelope for *record*."""
        return {
            "name": f"Microsoft.ApplicationInsights.{self._ikey.replace('-', '')}.Event",
            "time": datetime.now(tz=UTC).isoformat(),
            "iKey": self._ikey,
            "tags": {"ai.cloud.role": "hubbub"},
            "data": {
                "baseType": "EventData",
                "baseData": {
                    "ver": 2,
                    "name": self._event_name,
                    "properties": build_properties(record),
                },
            },
        }

    async def send(self, record: FailureRecord) -> bool:
        """POST the telemetry envelope. Returns True on a 2xx response."""
        envelope = self.build_payload(record)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._endpoint, json=[envelope])
        except httpx.TimeoutException:
            _log.warning("appinsights_request_timeout", pod=record.pod_name)
            return False
        except httpx.HTTPError as exc:
            _log.warning("appinsights_http_error", error=str(exc), pod=record.pod_name)
            return False

        if response.is_success:
            return True
        _log.warning(
            "appinsights_non_2xx_response",
            status_code=response.status_code,
            body=response.text[:200],
            pod=record.pod_name,
        )
        return False

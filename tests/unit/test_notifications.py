"""Tests for the notification handlers, the handler factory and dispatch()."""

from __future__ import annotations

import io
import json
from datetime import UTC, datetime

import httpx
import pytest

from hubbub.models.config import NotificationConfig
from hubbub.models.failures import FailureRecord
from hubbub.notifications import (
    AppInsightsNotificationHandler,
    ConsoleNotificationHandler,
    NotificationHandler,
    SlackNotificationHandler,
    build_notification_handler,
    dispatch,
)
from hubbub.notifications.manager import (
    error_code_text,
    exit_code_description,
    failure_reason,
    format_stamp,
)
from hubbub.notifications.slack import build_message

_WEBHOOK = "https://hooks.slack.com/services/T000/B000/XXXX"


def _record(**overrides: object) -> FailureRecord:
    fields: dict[str, object] = {
        "namespace": "payments",
        "pod_name": "api-7f",
        "container_name": "worker",
        "image": "registry.local/api:1.4.2",
        "started_at": datetime(2026, 1, 5, 9, 3, 7, tzinfo=UTC),
        "finished_at": datetime(2026, 1, 5, 10, 15, 0, tzinfo=UTC),
        "exit_code": 137,
        "reason": "OOMKilled",
        "message": "",
        "seen_at": datetime(2026, 1, 5, 10, 15, 2, tzinfo=UTC),
    }
    fields.update(overrides)
    return FailureRecord(**fields)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Message helpers
# ---------------------------------------------------------------------------


class TestMessageHelpers:
    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            (139, "Segmentation fault."),
            (137, "The container received a SIGKILL."),
            (1, "Application Error."),
            (130, "Container terminated."),
            (893, ""),
        ],
    )
    def test_exit_code_description(self, code: int, expected: str) -> None:
        assert exit_code_description(code) == expected

    def test_failure_reason_variants(self) -> None:
        assert failure_reason(_record(reason="Error", message="boom")) == "Failure reason received : `Error - boom`"
        assert failure_reason(_record(reason="", message="boom")) == "Failure reason received : `boom`"
        assert failure_reason(_record(reason="Error", message="")) == "Failure reason received : `Error`"
        assert failure_reason(_record(reason="", message="")) == "Unable to determine the reason for the failure."

    def test_error_code_text(self) -> None:
        assert error_code_text(_record(exit_code=137)) == "Error code : 137 `The container received a SIGKILL.`"
        assert error_code_text(_record(exit_code=42)) == "Error code : 42"

    def test_format_stamp_is_fixed_width(self) -> None:
        assert format_stamp(datetime(2026, 1, 5, 9, 3, 7)) == "Jan  5 09:03:07"
        assert format_stamp(datetime(2026, 11, 25, 23, 0, 0)) == "Nov 25 23:00:00"
        assert format_stamp(None) == ""


# ---------------------------------------------------------------------------
# Slack
# ---------------------------------------------------------------------------


class TestSlack:
    def test_requires_webhook_and_channel(self) -> None:
        with pytest.raises(ValueError, match="Missing slack webhook or channel"):
            SlackNotificationHandler(webhook_url="", channel="#alerts")
        with pytest.raises(ValueError, match="Missing slack webhook or channel"):
            SlackNotificationHandler(webhook_url=_WEBHOOK, channel="")

    def test_payload_shape(self) -> None:
        handler = SlackNotificationHandler(
            webhook_url=_WEBHOOK,
            channel="#alerts",
            title="Pod down",
            username="Hubbub",
            icon_url="https://example.com/icon.png",
        )
        payload = handler.build_payload(_record())
        assert payload["channel"] == "#alerts"
        assert payload["username"] == "Hubbub"
        assert payload["icon_url"] == "https://example.com/icon.png"
        [attachment] = payload["attachments"]
        assert attachment["color"] == "danger"
        assert attachment["title"] == "Pod down"
        assert attachment["fallback"] == attachment["fields"][0]["value"]

    def test_message_text(self) -> None:
        message = build_message(_record())
        assert "The pod : *api-7f* has encountered an error." in message
        assert "The container is : *worker*" in message
        assert "Which is running image : *registry.local/api:1.4.2*." in message
        assert "> Failure reason received : `OOMKilled`" in message
        assert "> Error code : 137 `The container received a SIGKILL.`" in message
        assert "The pod ran from : *Jan  5 09:03:07 until Jan  5 10:15:00*" in message

    async def test_send_posts_json(self) -> None:
        captured: list[httpx.Request] = []

        def _respond(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, text="ok")

        handler = SlackNotificationHandler(
            webhook_url=_WEBHOOK, channel="#alerts", transport=httpx.MockTransport(_respond)
        )
        assert await handler.send(_record()) is True
        [request] = captured
        assert str(request.url) == _WEBHOOK
        assert json.loads(request.content)["channel"] == "#alerts"

    async def test_send_non_2xx_returns_false(self) -> None:
        handler = SlackNotificationHandler(
            webhook_url=_WEBHOOK,
            channel="#alerts",
            transport=httpx.MockTransport(lambda request: httpx.Response(404, text="no_service")),
        )
        assert await handler.send(_record()) is False

    async def test_send_connection_error_returns_false(self) -> None:
        def _fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        handler = SlackNotificationHandler(
            webhook_url=_WEBHOOK, channel="#alerts", transport=httpx.MockTransport(_fail)
        )
        assert await handler.send(_record()) is False


# ---------------------------------------------------------------------------
# Application Insights
# ---------------------------------------------------------------------------


class TestAppInsights:
    def test_requires_instrumentation_key(self) -> None:
        with pytest.raises(ValueError, match="instrumentation key"):
            AppInsightsNotificationHandler(instrumentation_key="")

    def test_envelope(self) -> None:
        handler = AppInsightsNotificationHandler(instrumentation_key="0000-1111-2222", event_name="Pod failure")
        envelope = handler.build_payload(_record())
        assert envelope["iKey"] == "0000-1111-2222"
        assert envelope["name"] == "Microsoft.ApplicationInsights.000011112222.Event"
        base = envelope["data"]["baseData"]
        assert envelope["data"]["baseType"] == "EventData"
        assert base["name"] == "Pod failure"
        props = base["properties"]
        assert props["podName"] == "api-7f"
        assert props["exitCode"] == "137"
        assert props["exitCodeDescription"] == "The container received a SIGKILL."
        assert props["startedAt"] == "Jan  5 09:03:07"
        assert all(isinstance(value, str) for value in props.values())

    def test_default_event_name(self) -> None:
        handler = AppInsightsNotificationHandler(instrumentation_key="abc")
        assert handler.build_payload(_record())["data"]["baseData"]["name"] == "Hubbub pod failure"

    async def test_send_posts_to_endpoint(self) -> None:
        captured: list[httpx.Request] = []

        def _respond(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"itemsReceived": 1, "itemsAccepted": 1})

        handler = AppInsightsNotificationHandler(
            instrumentation_key="abc",
            endpoint="https://ingest.example.com/v2/track",
            transport=httpx.MockTransport(_respond),
        )
        assert await handler.send(_record()) is True
        [request] = captured
        assert str(request.url) == "https://ingest.example.com/v2/track"
        body = json.loads(request.content)
        assert isinstance(body, list) and body[0]["iKey"] == "abc"

    async def test_send_rejected_returns_false(self) -> None:
        handler = AppInsightsNotificationHandler(
            instrumentation_key="abc",
            transport=httpx.MockTransport(lambda request: httpx.Response(400, text="bad ikey")),
        )
        assert await handler.send(_record()) is False


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


class TestConsole:
    async def test_writes_one_json_line(self) -> None:
        stream = io.StringIO()
        handler = ConsoleNotificationHandler(stream=stream)
        assert await handler.send(_record()) is True
        line = stream.getvalue()
        assert line.endswith("\n")
        data = json.loads(line)
        assert data["pod_name"] == "api-7f"
        assert data["exit_code"] == 137
        assert data["finished_at"] == "2026-01-05T10:15:00+00:00"


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestBuildNotificationHandler:
    @pytest.mark.parametrize("handler_type", ["slack", "sl", "SLACK"])
    def test_slack(self, handler_type: str) -> None:
        config = NotificationConfig(type=handler_type, slack_webhook=_WEBHOOK, slack_channel="#alerts")
        assert isinstance(build_notification_handler(config), SlackNotificationHandler)

    @pytest.mark.parametrize("handler_type", ["appinsights", "ai", "applicationinsights"])
    def test_appinsights(self, handler_type: str) -> None:
        config = NotificationConfig(type=handler_type, instrumentation_key="abc")
        assert isinstance(build_notification_handler(config), AppInsightsNotificationHandler)

    @pytest.mark.parametrize("handler_type", ["", "stdout", "console", "pager"])
    def test_console_fallback(self, handler_type: str) -> None:
        assert isinstance(build_notification_handler(NotificationConfig(type=handler_type)), ConsoleNotificationHandler)

    def test_slack_missing_channel_raises(self) -> None:
        with pytest.raises(ValueError):
            build_notification_handler(NotificationConfig(type="slack", slack_webhook=_WEBHOOK))


# ---------------------------------------------------------------------------
# dispatch()
# ---------------------------------------------------------------------------


class _ExplodingHandler(NotificationHandler):
    @property
    def channel_name(self) -> str:
        return "exploding"

    def build_payload(self, record: FailureRecord) -> object:
        return {}

    async def send(self, record: FailureRecord) -> bool:
        raise RuntimeError("transport exploded")


class TestDispatch:
    async def test_success(self) -> None:
        assert await dispatch(ConsoleNotificationHandler(stream=io.StringIO()), _record()) is True

    async def test_unexpected_exception_is_contained(self) -> None:
        assert await dispatch(_ExplodingHandler(), _record()) is False

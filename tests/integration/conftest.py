"""Shared fixtures for Hubbub integration tests.

Provides an in-memory pod event source that replays scripted watch streams,
a recording notification handler and raw pod factories, so the full
subscribe -> extract -> dedup -> dispatch pipeline can run without a cluster.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from hubbub.collector.source import WatchEvent
from hubbub.collector.timezone import resolve_zone
from hubbub.models.config import HubbubConfig
from hubbub.models.failures import FailureRecord
from hubbub.notifications.manager import NotificationHandler

_CREATED = datetime(2026, 2, 18, 11, 0, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Pod factories
# ---------------------------------------------------------------------------


def _ts(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


def make_pod(
    name: str = "api-7f",
    namespace: str = "payments",
    container: str = "worker",
    image: str = "registry.local/api:1.4.2",
    exit_code: int | None = 137,
    reason: str = "OOMKilled",
    finished_at: datetime | None = None,
    created_at: datetime = _CREATED,
    deleting: bool = False,
) -> dict[str, Any]:
    """Raw pod object; ``exit_code=None`` gives a running container."""
    if exit_code is None:
        state: dict[str, Any] = {"running": {"startedAt": _ts(created_at)}}
    else:
        state = {
            "terminated": {
                "exitCode": exit_code,
                "reason": reason,
                "finishedAt": _ts(finished_at or created_at + timedelta(minutes=5)),
            }
        }
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "creationTimestamp": _ts(created_at),
    }
    if deleting:
        metadata["deletionTimestamp"] = _ts(created_at + timedelta(hours=1))
    return {
        "kind": "Pod",
        "apiVersion": "v1",
        "metadata": metadata,
        "spec": {"containers": [{"name": container, "image": image}]},
        "status": {
            "phase": "Running",
            "containerStatuses": [{"name": container, "image": image, "state": state}],
        },
    }


def modified(pod: dict[str, Any]) -> WatchEvent:
    return WatchEvent(type="MODIFIED", obj=pod)


# ---------------------------------------------------------------------------
# Fake event source
# ---------------------------------------------------------------------------


class FakeSubscription:
    """Replays a fixed list of events, then reports the stream as closed."""

    def __init__(self, events: list[WatchEvent]) -> None:
        self._events = list(events)
        self.closed = False

    async def next_event(self) -> WatchEvent | None:
        await asyncio.sleep(0)
        if not self._events:
            return None
        return self._events.pop(0)

    async def close(self) -> None:
        self.closed = True


class FakePodEventSource:
    """Hands out one scripted stream per subscribe() call.

    Items in *streams* are event lists or exceptions (raised from
    subscribe()). Once the script is exhausted, subscribe() blocks until the
    test cancels the watcher.
    """

    def __init__(self, streams: list[list[WatchEvent] | BaseException]) -> None:
        self._streams = list(streams)
        self.namespaces: list[str] = []
        self.subscriptions: list[FakeSubscription] = []
        self.exhausted = asyncio.Event()

    async def subscribe(self, namespace: str) -> FakeSubscription:
        self.namespaces.append(namespace)
        if not self._streams:
            self.exhausted.set()
            await asyncio.Event().wait()
        item = self._streams.pop(0)
        if isinstance(item, BaseException):
            raise item
        subscription = FakeSubscription(item)
        self.subscriptions.append(subscription)
        return subscription


# ---------------------------------------------------------------------------
# Recording handler
# ---------------------------------------------------------------------------


class RecordingHandler(NotificationHandler):
    """Collects delivered records; ``fail_next`` makes the next N sends fail."""

    def __init__(self, fail_next: int = 0, delay: float = 0.0) -> None:
        self.sent: list[FailureRecord] = []
        self.attempts = 0
        self.fail_next = fail_next
        self.delay = delay

    @property
    def channel_name(self) -> str:
        return "recording"

    def build_payload(self, record: FailureRecord) -> object:
        return record

    async def send(self, record: FailureRecord) -> bool:
        self.attempts += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_next > 0:
            self.fail_next -= 1
            return False
        self.sent.append(record)
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def config() -> HubbubConfig:
    return HubbubConfig(
        namespace="payments",
        self_name="hubbub",
        quiet_window_minutes=5,
        timezone="UTC",
        tz=resolve_zone("UTC"),
    )


@pytest.fixture
def handler() -> RecordingHandler:
    return RecordingHandler()

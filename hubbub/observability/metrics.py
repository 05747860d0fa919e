"""Prometheus counters for the watch pipeline and notification handlers."""

from __future__ import annotations

from prometheus_client import Counter

watch_events_total = Counter(
    "hubbub_watch_events_total",
    "Pod watch events received, by event type.",
    ["type"],
)

watch_resubscriptions_total = Counter(
    "hubbub_watch_resubscriptions_total",
    "Pod watch subscriptions opened after the previous stream closed.",
)

failures_detected_total = Counter(
    "hubbub_failures_detected_total",
    "Failure records judged new by the deduplication engine.",
)

alerts_suppressed_total = Counter(
    "hubbub_alerts_suppressed_total",
    "Failure records suppressed as repeats of the last alert.",
)

notifications_total = Counter(
    "hubbub_notifications_total",
    "Notification delivery attempts, by channel and outcome.",
    ["channel", "success"],
)

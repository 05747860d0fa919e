"""Deduplication of failure records.

A crash-looping container is restarted by Kubernetes every few seconds and
would otherwise raise a fresh alert on each restart. ``is_new`` compares a
candidate record with the last one that was alerted on and suppresses the
repeats, while the quiet window guarantees the suppression never becomes
permanent.

Rules, evaluated in order (first match wins):

1. ``not_a_failure``           -- candidate is missing image, container or finish time.
2. quiet window elapsed        -- candidate seen more than N minutes after the last alert: new.
3. ``identical``               -- every field equal to the last alert.
4. ``pod_name_container_name`` -- same pod and candidate container name equal to the last *pod* name.
5. ``same_pod_same_start``     -- same pod name and start time.
6. ``same_container_exit``     -- same container name and exit code.
7. ``same_pod_exit``           -- same pod name and exit code.
8. otherwise new.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import timedelta

from hubbub.models.failures import FailureRecord
from hubbub.observability.logging import get_logger

_logger = get_logger("collector.dedup")

_Rule = Callable[[FailureRecord, FailureRecord], bool]

# Rule 4 compares the candidate container name with the last *pod* name.
# Kept as observed in production; see DESIGN.md before relying on it.
_SUPPRESSION_RULES: list[tuple[str, _Rule]] = [
    ("identical", lambda c, last: c == last),
    (
        "pod_name_container_name",
        lambda c, last: c.pod_name == last.pod_name and c.container_name == last.pod_name,
    ),
    (
        "same_pod_same_start",
        lambda c, last: c.pod_name == last.pod_name and c.started_at == last.started_at,
    ),
    (
        "same_container_exit",
        lambda c, last: c.container_name == last.container_name and c.exit_code == last.exit_code,
    ),
    (
        "same_pod_exit",
        lambda c, last: c.pod_name == last.pod_name and c.exit_code == last.exit_code,
    ),
]


def quiet_window_elapsed(candidate: FailureRecord, last_emitted: FailureRecord, quiet_window_minutes: int) -> bool:
    """True if *candidate* was seen more than the quiet window after *last_emitted*.

    A baseline that was never seen (the zero record) is infinitely old.
    """
    if candidate.seen_at is None:
        return False
    if last_emitted.seen_at is None:
        return True
    return candidate.seen_at - last_emitted.seen_at > timedelta(minutes=quiet_window_minutes)


def suppression_rule(candidate: FailureRecord, last_emitted: FailureRecord, quiet_window_minutes: int) -> str | None:
    """Return the name of the rule that suppresses *candidate*, or None if it is new."""
    if not candidate.is_failure:
        return "not_a_failure"
    if quiet_window_elapsed(candidate, last_emitted, quiet_window_minutes):
        return None
    for name, matches in _SUPPRESSION_RULES:
        if matches(candidate, last_emitted):
            return name
    return None


def is_new(candidate: FailureRecord, last_emitted: FailureRecord, quiet_window_minutes: int) -> bool:
    """Return True if *candidate* is a distinct failure worth a fresh alert."""
    rule = suppression_rule(candidate, last_emitted, quiet_window_minutes)
    if rule is None:
        return True
    _logger.debug(
        "failure_suppressed",
        dedup_rule=rule,
        pod=candidate.pod_name,
        container=candidate.container_name,
        exit_code=candidate.exit_code,
    )
    return False

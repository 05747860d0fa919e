"""Failure record extraction from raw pod objects.

Works on the camelCase JSON form of a pod as delivered by the watch API
(``raw_object``), so no generated client model is needed.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from hubbub.models.failures import FailureRecord

POD_FAILED = "Failed"
COMPLETED_REASON = "Completed"
UNKNOWN = "Unknown"


def parse_timestamp(value: Any) -> datetime | None:
    """Parse a Kubernetes RFC 3339 timestamp into an aware datetime.

    Returns None for empty or unparseable values.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def extract_failure(pod: dict[str, Any], now: datetime | None = None) -> FailureRecord:
    """Build a FailureRecord from a raw pod object.

    A pod that failed before any container started (no container statuses,
    phase ``Failed``) is reported with exit code -1 and the first declared
    container. Otherwise the first terminated container whose reason is not
    ``Completed`` is reported. When no such container exists the record has
    no ``finished_at`` and is not a failure.
    """
    metadata: dict[str, Any] = pod.get("metadata") or {}
    status: dict[str, Any] = pod.get("status") or {}
    spec: dict[str, Any] = pod.get("spec") or {}

    created = parse_timestamp(metadata.get("creationTimestamp"))
    fields: dict[str, Any] = {
        "namespace": str(metadata.get("namespace") or ""),
        "pod_name": str(metadata.get("name") or ""),
        "started_at": created,
        "message": str(status.get("message") or ""),
        "seen_at": now or datetime.now(tz=UTC),
    }

    container_statuses: list[dict[str, Any]] = status.get("containerStatuses") or []

    if not container_statuses and status.get("phase") == POD_FAILED:
        containers: list[dict[str, Any]] = spec.get("containers") or []
        first = containers[0] if containers else {}
        fields.update(
            finished_at=created,
            exit_code=-1,
            reason=str(status.get("reason") or ""),
            image=str(first.get("image") or UNKNOWN),
            container_name=str(first.get("name") or UNKNOWN),
        )
        return FailureRecord(**fields)

    for container in container_statuses:
        terminated = (container.get("state") or {}).get("terminated")
        if not terminated:
            continue
        if terminated.get("reason") == COMPLETED_REASON:
            continue
        fields.update(
            finished_at=parse_timestamp(terminated.get("finishedAt")),
            image=str(container.get("image") or ""),
            container_name=str(container.get("name") or ""),
            exit_code=int(terminated.get("exitCode") or 0),
            reason=str(terminated.get("reason") or ""),
            message=str(terminated.get("message") or ""),
        )
        break

    return FailureRecord(**fields)

"""Display time-zone handling for failure records.

Time zones are a presentation concern: an unknown zone name falls back to
the default zone instead of failing the pipeline.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import UTC, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from hubbub.models.config import DEFAULT_TIMEZONE
from hubbub.models.failures import FailureRecord
from hubbub.observability.logging import get_logger

_logger = get_logger("collector.timezone")


def resolve_zone(name: str) -> tzinfo:
    """Return the zone named *name*, or the default zone if it cannot be loaded."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError, OSError):
            _logger.warning("invalid_timezone", timezone=name, fallback=DEFAULT_TIMEZONE)
    try:
        return ZoneInfo(DEFAULT_TIMEZONE)
    except ZoneInfoNotFoundError:
        _logger.warning("default_timezone_unavailable", timezone=DEFAULT_TIMEZONE, fallback="UTC")
        return UTC


def normalize(record: FailureRecord, zone: tzinfo) -> FailureRecord:
    """Convert the cluster-reported timestamps of *record* into *zone*.

    ``seen_at`` is left alone; it is only used for elapsed-time arithmetic.
    """
    return replace(
        record,
        started_at=record.started_at.astimezone(zone) if record.started_at else None,
        finished_at=record.finished_at.astimezone(zone) if record.finished_at else None,
    )

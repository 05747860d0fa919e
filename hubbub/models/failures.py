"""Failure record data structure."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class FailureRecord:
    """Normalized snapshot of one pod/container termination.

    Produced by the extractor, consumed by the deduplication engine and the
    notification handlers. Immutable: use ``dataclasses.replace`` to derive
    an adjusted copy.

    ``FailureRecord()`` is the zero record. Empty strings mean "unknown" and
    ``None`` timestamps mean "unset". ``exit_code == -1`` means no container
    status was available when the pod failed.
    """

    namespace: str = ""
    pod_name: str = ""
    container_name: str = ""
    image: str = ""
    started_at: datetime | None = None
    finished_at: datetime | None = None
    exit_code: int = 0
    reason: str = ""
    message: str = ""
    seen_at: datetime | None = None

    @property
    def is_failure(self) -> bool:
        """False when the record does not describe a terminal failure."""
        return bool(self.image) and bool(self.container_name) and self.finished_at is not None

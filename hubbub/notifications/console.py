"""Console notification transport: one JSON object per alert on stdout."""

from __future__ import annotations

import json
import sys
from typing import Any, TextIO

from hubbub.models.failures import FailureRecord
from hubbub.notifications.manager import NotificationHandler, exit_code_description


class ConsoleNotificationHandler(NotificationHandler):
    """Writes alerts to *stream* (stdout by default). Needs no settings."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def channel_name(self) -> str:
        return "console"

    def build_payload(self, record: FailureRecord) -> dict[str, Any]:
        return {
            "namespace": record.namespace,
            "pod_name": record.pod_name,
            "container_name": record.container_name,
            "image": record.image,
            "started_at": record.started_at.isoformat() if record.started_at else "",
            "finished_at": record.finished_at.isoformat() if record.finished_at else "",
            "exit_code": record.exit_code,
            "exit_code_description": exit_code_description(record.exit_code),
            "reason": record.reason,
            "message": record.message,
            "seen_at": record.seen_at.isoformat() if record.seen_at else "",
        }

    async def send(self, record: FailureRecord) -> bool:
        stream = self._stream or sys.stdout
        stream.write(json.dumps(self.build_payload(record)) + "\n")
        stream.flush()
        return True

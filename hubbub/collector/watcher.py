"""Pod failure watch loop.

PodFailureWatcher subscribes to the pods of one namespace and runs every
qualifying update through extract -> normalize -> dedup -> dispatch.

States::

    Subscribing --> Listening --(event)--> Processing --> Listening
         ^              |
         +--(stream end)+

There is no terminal state. A stream that ends (server-side timeout,
dropped connection, 410 Gone) is re-opened immediately, without backoff or
a retry limit. Only a failure to *open* a subscription ends ``run()``; it
raises SubscriptionError.

The last alerted record is owned by the watcher and only touched from the
task running ``run()``, so no locking is needed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, tzinfo
from typing import Any, TypeGuard

from hubbub.collector.dedup import is_new
from hubbub.collector.extractor import extract_failure
from hubbub.collector.source import PodEventSource, WatchEvent
from hubbub.collector.timezone import resolve_zone
from hubbub.collector.timezone import normalize as normalize_timezone
from hubbub.models.config import HubbubConfig
from hubbub.models.failures import FailureRecord
from hubbub.notifications.manager import NotificationHandler, dispatch
from hubbub.observability.logging import get_logger
from hubbub.observability.metrics import (
    alerts_suppressed_total,
    failures_detected_total,
    watch_events_total,
    watch_resubscriptions_total,
)

_logger = get_logger("collector.watcher")

MODIFIED = "MODIFIED"
POD_KIND = "Pod"

_DISPATCH_GRACE_SECONDS = 15


class PodFailureWatcher:
    """Watches one namespace and alerts on new pod/container failures.

    Args:
        source:  Opens pod watch subscriptions.
        handler: Notification transport used for every alert.
        config:  Namespace, self-exclusion, quiet window, display zone, debug.
        clock:   Wall clock used to stamp records; defaults to UTC now.
    """

    def __init__(
        self,
        source: PodEventSource,
        handler: NotificationHandler,
        config: HubbubConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._source = source
        self._handler = handler
        self._namespace = config.namespace
        self._self_name = config.self_name.lower()
        self._quiet_window = config.quiet_window_minutes
        self._zone: tzinfo = config.tz or resolve_zone(config.timezone)
        self._debug = config.debug
        self._clock = clock or (lambda: datetime.now(tz=UTC))

        self._last_emitted = FailureRecord()
        self._subscriptions = 0
        self._task: asyncio.Task[None] | None = None
        self._inflight: asyncio.Future[bool] | None = None

    @property
    def last_emitted(self) -> FailureRecord:
        """The last record an alert was successfully dispatched for."""
        return self._last_emitted

    @property
    def last_alert_at(self) -> datetime | None:
        return self._last_emitted.seen_at

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> asyncio.Task[None]:
        """Run the watch loop as a background task and return it."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="pod-failure-watcher")
        return self._task

    async def stop(self) -> None:
        """Cancel the watch loop, letting an in-flight dispatch finish."""
        inflight = self._inflight
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if inflight is not None and not inflight.done():
            try:
                await asyncio.wait_for(asyncio.shield(inflight), timeout=_DISPATCH_GRACE_SECONDS)
            except TimeoutError:
                _logger.warning("in-flight notification abandoned", timeout=_DISPATCH_GRACE_SECONDS)
        self._task = None

    async def run(self) -> None:
        """Subscribe, listen and re-subscribe until cancelled.

        Raises:
            SubscriptionError: if a subscription cannot be opened.
        """
        _logger.info("starting pod watcher", namespace=self._namespace)
        while True:
            subscription = await self._source.subscribe(self._namespace)
            self._subscriptions += 1
            if self._subscriptions > 1:
                watch_resubscriptions_total.inc()
            self._log_debug("watcher created, listening for pod changes", subscriptions=self._subscriptions)
            try:
                while (event := await subscription.next_event()) is not None:
                    await self.handle_event(event)
            finally:
                await subscription.close()
            self._log_debug("watch stream closed, attempting to recreate the watcher")

    # ------------------------------------------------------------------
    # Event pipeline
    # ------------------------------------------------------------------

    async def handle_event(self, event: WatchEvent) -> bool:
        """Run one watch event through the pipeline.

        Returns True if an alert was dispatched for it.
        """
        watch_events_total.labels(type=event.type or "UNKNOWN").inc()
        pod = event.obj
        if not _is_pod(pod):
            return False

        metadata: dict[str, Any] = pod.get("metadata") or {}
        name = str(metadata.get("name") or "")

        if self._self_name and self._self_name in name.lower():
            self._log_debug("skipping self", pod=name, self_name=self._self_name)
            return False

        # Creation and deletion churn from routine deployments is too noisy.
        if event.type != MODIFIED:
            return False

        if self._debug:
            status: dict[str, Any] = pod.get("status") or {}
            _logger.debug(
                "pod change detected",
                pod=name,
                phase=status.get("phase", ""),
                reason=status.get("reason", ""),
                message=status.get("message", ""),
                container_statuses=status.get("containerStatuses") or [],
            )

        if metadata.get("deletionTimestamp"):
            self._log_debug("skipping pod marked for deletion", pod=name)
            return False

        candidate = normalize_timezone(extract_failure(pod, now=self._clock()), self._zone)
        if not is_new(candidate, self._last_emitted, self._quiet_window):
            if candidate.is_failure:
                alerts_suppressed_total.inc()
            return False

        failures_detected_total.inc()
        if not await self._dispatch(candidate):
            return False
        self._last_emitted = candidate
        return True

    async def _dispatch(self, record: FailureRecord) -> bool:
        self._inflight = asyncio.ensure_future(dispatch(self._handler, record))
        try:
            return await asyncio.shield(self._inflight)
        finally:
            if self._inflight.done():
                self._inflight = None

    def _log_debug(self, event: str, **kw: Any) -> None:
        if self._debug:
            _logger.debug(event, namespace=self._namespace, **kw)


def _is_pod(obj: dict[str, Any] | None) -> TypeGuard[dict[str, Any]]:
    if not obj or not isinstance(obj.get("metadata"), dict):
        return False
    kind = obj.get("kind")
    return kind in (None, "", POD_KIND)

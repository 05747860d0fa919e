"""Application bootstrap for Hubbub.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → notification handler → K8s client
              → pod watcher → health/metrics API

Shutdown stops components in reverse startup order. A notification that is
being delivered when shutdown begins is allowed to finish.
"""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import TYPE_CHECKING

from hubbub.collector.source import SubscriptionError
from hubbub.config import load_config
from hubbub.models.config import HubbubConfig
from hubbub.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from hubbub.collector.watcher import PodFailureWatcher
    from hubbub.notifications import NotificationHandler

_SHUTDOWN_GRACE_SECONDS = 15


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: BaseException) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class HubbubApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.

    Args:
        config_path: JSON config file, or None to rely on the environment.
        env_only:    Ignore *config_path* and read only HUBBUB_* variables.
    """

    def __init__(self, config_path: str | Path | None = None, env_only: bool = False) -> None:
        self._config_path = config_path
        self._env_only = env_only
        self.config: HubbubConfig | None = None

        self._handler: NotificationHandler | None = None
        self._core_v1: object | None = None
        self._watcher: PodFailureWatcher | None = None
        self._watcher_task: asyncio.Task[None] | None = None
        self._rest_server: object | None = None
        self._rest_task: asyncio.Task[None] | None = None

        self._running = False
        self.fatal_error: BaseException | None = None
        self._log: structlog.stdlib.BoundLogger | None = None

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        The caller (main()) re-raises this as a non-zero exit.
        """
        # --- 1. Configuration -------------------------------------------
        try:
            self.config = load_config(self._config_path, env_only=self._env_only)
        except ValueError as exc:
            raise _ComponentError("config", exc) from exc

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log_level)
        self._log = get_logger("app")
        self._log.info(
            "hubbub starting",
            version=_hubbub_version(),
            namespace=self.config.namespace,
            quiet_window_minutes=self.config.quiet_window_minutes,
            timezone=str(self.config.tz),
        )

        # --- 3. Notification handler ------------------------------------
        self._start_notifications()

        # --- 4. Kubernetes client ---------------------------------------
        await self._start_k8s_client()

        # --- 5. Pod watcher ---------------------------------------------
        self._start_watcher()

        # --- 6. Health / metrics API ------------------------------------
        self._start_rest()

        self._running = True
        self._log.info("hubbub started", namespace=self.config.namespace)

    # ------------------------------------------------------------------
    # Component startup helpers
    # ------------------------------------------------------------------

    def _start_notifications(self) -> None:
        """Build the configured notification handler; missing settings are fatal."""
        assert self._log is not None
        assert self.config is not None
        self._log.debug("starting notifications")
        try:
            from hubbub.notifications import build_notification_handler

            self._handler = build_notification_handler(self.config.notifications)
        except ValueError as exc:
            raise _ComponentError("notifications", exc) from exc

    async def _start_k8s_client(self) -> None:
        """Initialise the kubernetes-asyncio client from in-cluster config or kubeconfig."""
        assert self._log is not None
        self._log.debug("starting k8s client")
        try:
            from hubbub.collector.source import load_kube_client

            self._core_v1 = await load_kube_client()
        except Exception as exc:
            raise _ComponentError("k8s_client", exc) from exc

    def _start_watcher(self) -> None:
        """Start the pod watch loop as a background task."""
        assert self._log is not None
        assert self.config is not None
        assert self._handler is not None
        from hubbub.collector.source import KubernetesPodEventSource
        from hubbub.collector.watcher import PodFailureWatcher

        self._watcher = PodFailureWatcher(
            source=KubernetesPodEventSource(self._core_v1),
            handler=self._handler,
            config=self.config,
        )
        self._watcher_task = self._watcher.start()
        self._watcher_task.add_done_callback(self._on_watcher_done)
        self._log.info("pod watcher started", namespace=self.config.namespace)

    def _on_watcher_done(self, task: asyncio.Task[None]) -> None:
        """Treat a watch loop that ended on its own as a fatal error."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            exc = RuntimeError("pod watcher exited unexpectedly")
        self.fatal_error = exc
        self._running = False

    def _start_rest(self) -> None:
        """Start the uvicorn health/metrics server unless the port is 0."""
        assert self._log is not None
        assert self.config is not None
        if self.config.api.port == 0:
            self._log.info("health api disabled (api.port=0)")
            return
        self._log.debug("starting health api")
        try:
            import uvicorn

            from hubbub.api import create_app

            uv_config = uvicorn.Config(
                app=create_app(self._watcher),
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            self._rest_task = asyncio.create_task(server.serve(), name="health-api")
            self._rest_server = server
            self._log.info("health api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Stop all components in reverse startup order."""
        if not self._running and self._log is None:
            # Never started
            return

        log = self._log or get_logger("app")
        log.info("hubbub shutting down")
        self._running = False

        if self._rest_server is not None:
            self._rest_server.should_exit = True  # type: ignore[attr-defined]
        if self._rest_task is not None:
            try:
                await asyncio.wait_for(self._rest_task, timeout=_SHUTDOWN_GRACE_SECONDS)
            except TimeoutError:
                log.warning("component stop timed out", component="rest", timeout=_SHUTDOWN_GRACE_SECONDS)
            except Exception as exc:
                log.error("component stop raised an error", component="rest", error=str(exc))
            self._rest_task = None
            self._rest_server = None

        if self._watcher is not None:
            await self._watcher.stop()
            self._watcher = None

        await self._stop_k8s_client()
        log.info("hubbub stopped")

    async def _stop_k8s_client(self) -> None:
        """Close the kubernetes-asyncio ApiClient connection pool."""
        if self._core_v1 is None:
            return
        log = self._log or get_logger("app")
        try:
            await self._core_v1.api_client.close()  # type: ignore[attr-defined]
        except Exception as exc:
            log.debug("k8s client close raised (non-fatal)", error=str(exc))
        self._core_v1 = None


def _hubbub_version() -> str:
    from hubbub import __version__

    return __version__


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main(config_path: str | Path | None = None, env_only: bool = False) -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    # Until the configured level is known; keeps early records off stdout.
    setup_logging("info")
    app = HubbubApp(config_path=config_path, env_only=env_only)
    loop = asyncio.get_running_loop()

    shutdown_task: asyncio.Task[None] | None = None

    def _request_shutdown() -> None:
        nonlocal shutdown_task
        if shutdown_task is not None:
            return
        shutdown_task = asyncio.create_task(app.stop(), name="shutdown")

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _request_shutdown)

    try:
        await app.start()
        # Block until shutdown is triggered or the watch loop dies
        while app._running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app._running:
            await app.stop()

    if shutdown_task is not None:
        await shutdown_task

    if app.fatal_error is not None:
        get_logger("app").critical(
            "fatal watch error",
            component="watcher",
            error=str(app.fatal_error),
            subscription_error=isinstance(app.fatal_error, SubscriptionError),
        )
        await app.stop()
        raise SystemExit(1) from app.fatal_error

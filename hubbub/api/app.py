"""FastAPI application factory for Hubbub.

Serves two endpoints for the Deployment that runs the watcher:

* ``GET /healthz`` -- liveness; 503 once the watch loop has stopped.
* ``GET /metrics`` -- Prometheus text exposition.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest


def create_app(watcher: Any) -> FastAPI:
    """Create the Hubbub FastAPI application.

    Args:
        watcher: PodFailureWatcher whose state is reported by ``/healthz``.
    """
    from hubbub import __version__

    app = FastAPI(title="Hubbub", version=__version__, docs_url=None, redoc_url=None)
    app.state.watcher = watcher

    @app.get("/healthz")
    async def healthz() -> JSONResponse:
        running = bool(watcher.running)
        last_alert_at = watcher.last_alert_at
        return JSONResponse(
            status_code=200 if running else 503,
            content={
                "status": "ok" if running else "stopped",
                "namespace": watcher.namespace,
                "last_alert_at": last_alert_at.isoformat() if last_alert_at else None,
                "version": __version__,
            },
        )

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app

"""Structured logging for Hubbub.

Every line is one JSON object on stderr carrying ``ts``, ``level``,
``component`` and the event name. stdout belongs to the console
notification transport, so nothing else may write there.

Records emitted through the standard library (kubernetes-asyncio, uvicorn)
are rendered by the same processor chain so the stream stays uniform.

``setup_logging`` may be called more than once: the process starts at
``info`` and is reconfigured once the configured level is known.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

SERVICE_NAME = "hubbub"

# Chatty below WARNING even when Hubbub itself runs at debug.
_QUIET_LIBRARIES = ("kubernetes_asyncio", "urllib3", "uvicorn.access", "httpx", "httpcore")

_stdlib_handler: logging.Handler | None = None


def _add_service(_: object, __: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # sys.stderr is looked up per logger so a swapped stream is followed.
    return structlog.PrintLogger(file=sys.stderr)


def setup_logging(level: str = "info") -> None:
    """Configure structlog and the stdlib root logger for JSON output to stderr."""
    global _stdlib_handler
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        _add_service,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
    ]

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=[structlog.stdlib.add_logger_name, *shared],
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.JSONRenderer(),
            ],
        )
    )
    root = logging.getLogger()
    if _stdlib_handler is not None:
        root.removeHandler(_stdlib_handler)
    _stdlib_handler = handler
    root.addHandler(handler)
    root.setLevel(log_level)
    for name in _QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def reset_logging() -> None:
    """Undo ``setup_logging``: detach the stdlib handler and restore structlog defaults."""
    global _stdlib_handler
    if _stdlib_handler is not None:
        logging.getLogger().removeHandler(_stdlib_handler)
        _stdlib_handler = None
    structlog.reset_defaults()


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound with a component name."""
    return structlog.get_logger(component=component)  # type: ignore[return-value]

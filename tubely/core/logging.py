from __future__ import annotations

import logging
from typing import Any, Optional, TextIO

import structlog

SERVICE_NAME = "tubely"


def configure_logging(
    level: int = logging.INFO,
    *,
    environment: str = "development",
    stream: Optional[TextIO] = None,
) -> None:
    """Route structlog through stdlib logging at ``level``.

    Development gets a readable console renderer; every other environment
    emits one JSON object per event. ``service`` and ``environment`` are bound
    to every event through contextvars. Events go to ``stream`` (stdout when unset).
    """
    logging.basicConfig(format="%(message)s", level=level)
    renderer: Any
    if environment.lower() in {"development", "dev"}:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=SERVICE_NAME, environment=environment)


def get_logger(**initial_values: Any) -> structlog.BoundLogger:
    """Return a logger carrying ``initial_values`` (component, video_id, ...)."""
    return structlog.get_logger().bind(**initial_values)


__all__ = ["configure_logging", "get_logger", "SERVICE_NAME"]

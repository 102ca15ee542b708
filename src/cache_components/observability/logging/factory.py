"""Observability – structured JSON logging for the cache engine."""
from __future__ import annotations

import logging
from typing import IO, Any

import structlog

from cache_components.observability.logging.filters import CacheValueRedactor

ROOT_LOGGER_NAME = "cache_components"


def configure_logging(
    level: int = logging.INFO,
    *,
    logger_name: str = ROOT_LOGGER_NAME,
    redacted_fields: frozenset[str] | None = None,
    stream: IO[str] | None = None,
    json: bool = True,
) -> logging.Handler:
    """Route ``cache_components.*`` log records through structlog.

    Engine modules log with the standard :mod:`logging` API; this installs a
    :class:`structlog.stdlib.ProcessorFormatter` on *logger_name* so those
    records come out as one JSON object per line (or console key/values when
    ``json=False``). Returns the installed handler.
    """
    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    renderer: Any = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer(colors=False)
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            CacheValueRedactor(redacted_fields),
            renderer,
        ],
    )
    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter)
    target = logging.getLogger(logger_name)
    for existing in list(target.handlers):
        if getattr(existing, "_cache_components_handler", False):
            target.removeHandler(existing)
    handler._cache_components_handler = True  # type: ignore[attr-defined]
    target.addHandler(handler)
    target.setLevel(level)
    return handler


def get_logger(name: str | None = None, **initial_values: Any) -> Any:
    """Return a bound structlog logger (for callers wanting key/value events)."""
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger


__all__ = ["ROOT_LOGGER_NAME", "configure_logging", "get_logger"]

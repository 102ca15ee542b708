"""Observability – structured logging helpers."""
from cache_components.observability.logging.factory import ROOT_LOGGER_NAME, configure_logging, get_logger
from cache_components.observability.logging.filters import DEFAULT_REDACTED_FIELDS, CacheValueRedactor

__all__ = [
    "DEFAULT_REDACTED_FIELDS",
    "ROOT_LOGGER_NAME",
    "CacheValueRedactor",
    "configure_logging",
    "get_logger",
]

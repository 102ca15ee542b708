"""Unit tests for structured logging configuration."""

from __future__ import annotations

import io
import json
import logging

import pytest

from cache_components.observability.logging import (
    ROOT_LOGGER_NAME,
    CacheValueRedactor,
    configure_logging,
)


@pytest.fixture
def log_stream():
    stream = io.StringIO()
    handler = configure_logging(logging.DEBUG, stream=stream)
    yield stream
    logging.getLogger(ROOT_LOGGER_NAME).removeHandler(handler)


class TestCacheValueRedactor:
    def test_redacts_value_fields(self) -> None:
        redactor = CacheValueRedactor()
        out = redactor.redact({"event": "x", "value": "secret", "key": "k"})
        assert out == {"event": "x", "value": "[REDACTED]", "key": "k"}

    def test_redacts_nested(self) -> None:
        out = CacheValueRedactor().redact({"entry": {"payload": [1, 2]}})
        assert out == {"entry": {"payload": "[REDACTED]"}}

    def test_custom_fields_case_insensitive(self) -> None:
        out = CacheValueRedactor(frozenset({"Body"})).redact({"body": "b", "value": "v"})
        assert out == {"body": "[REDACTED]", "value": "v"}

    def test_is_structlog_processor(self) -> None:
        out = CacheValueRedactor()(None, "info", {"result": 1})
        assert out["result"] == "[REDACTED]"


class TestConfigureLogging:
    def test_engine_records_render_as_json(self, log_stream: io.StringIO) -> None:
        logging.getLogger("cache_components.application.cache.coordinator").info(
            "cache.tag.updated tag=%s keys=%d", "posts", 3
        )
        line = log_stream.getvalue().strip().splitlines()[-1]
        payload = json.loads(line)
        assert payload["event"] == "cache.tag.updated tag=posts keys=3"
        assert payload["level"] == "info"
        assert "timestamp" in payload

    def test_extra_value_is_redacted(self, log_stream: io.StringIO) -> None:
        logging.getLogger("cache_components.test").warning("cache.debug", extra={"value": "private"})
        payload = json.loads(log_stream.getvalue().strip().splitlines()[-1])
        assert payload["value"] == "[REDACTED]"

    def test_reconfigure_replaces_handler(self) -> None:
        first = configure_logging(stream=io.StringIO())
        second = configure_logging(stream=io.StringIO())
        handlers = logging.getLogger(ROOT_LOGGER_NAME).handlers
        assert second in handlers
        assert first not in handlers
        logging.getLogger(ROOT_LOGGER_NAME).removeHandler(second)

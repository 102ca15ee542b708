"""Observability – redaction of cached payloads in log events."""
from __future__ import annotations

from typing import Any

DEFAULT_REDACTED_FIELDS: frozenset[str] = frozenset({"value", "payload", "result"})


class CacheValueRedactor:
    """structlog processor replacing cached payload fields with ``[REDACTED]``.

    Cache values can hold per-user content; the engine never logs them on
    purpose, and this processor keeps third-party ``extra=`` fields from
    leaking them either.
    """

    REDACTED = "[REDACTED]"

    def __init__(self, fields: frozenset[str] | None = None) -> None:
        self._fields = frozenset(f.lower() for f in (fields or DEFAULT_REDACTED_FIELDS))

    def redact(self, data: dict[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for k, v in data.items():
            if k.lower() in self._fields:
                result[k] = self.REDACTED
            elif isinstance(v, dict):
                result[k] = self.redact(v)
            else:
                result[k] = v
        return result

    def __call__(
        self,
        logger: Any,       # noqa: ARG002
        method_name: str,  # noqa: ARG002
        event_dict: dict[str, Any],
    ) -> dict[str, Any]:
        return self.redact(event_dict)


__all__ = ["DEFAULT_REDACTED_FIELDS", "CacheValueRedactor"]

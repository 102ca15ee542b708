"""Application cache – CacheKey builder."""
from __future__ import annotations

import hashlib
import json
from typing import Any

__all__ = ["CacheKey"]


def _canonical(payload: Any) -> str:
    # sort_keys + compact separators keep the encoding stable across runs;
    # sets have no order so they are sorted by their JSON form first
    def _default(obj: Any) -> Any:
        if isinstance(obj, (set, frozenset)):
            return sorted(json.dumps(item, sort_keys=True, default=_default) for item in obj)
        return repr(obj)

    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=_default)


class CacheKey:
    """Factory for deterministic cache key strings.

    Keys never depend on ``hash()`` or object identity, so the same logical
    computation maps to the same key in every process.
    """

    @staticmethod
    def for_resource(resource_type: str, resource_id: str | int) -> str:
        return f"{resource_type}:{resource_id}"

    @staticmethod
    def for_call(identity: str, *args: Any, **kwargs: Any) -> str:
        """Fingerprint a computation *identity* applied to its arguments.

        >>> CacheKey.for_call("blog.post", 1) == CacheKey.for_call("blog.post", 1)
        True
        """
        canonical = _canonical({"args": list(args), "kwargs": kwargs})
        digest = hashlib.sha256(canonical.encode()).hexdigest()[:16]
        return f"call:{identity}:{digest}"

    @staticmethod
    def for_query(query_type: str, **kwargs: object) -> str:
        canonical = _canonical(kwargs)
        digest = hashlib.sha256(canonical.encode()).hexdigest()[:16]
        return f"query:{query_type}:{digest}"

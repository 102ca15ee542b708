"""Application cache – error kinds reported by the cache engine."""
from __future__ import annotations

from typing import Any

from cache_components.kernel.errors import ApplicationError, InvariantViolationError

__all__ = [
    "CacheError",
    "ComputeFailedError",
    "LockLeakError",
    "NonCacheableAccessError",
    "UnknownProfileError",
]


class CacheError(ApplicationError):
    """Base class for errors surfaced to callers of the cache engine."""

    default_code = "cache_error"


class UnknownProfileError(CacheError):
    """A lifetime profile name is not registered with the policy."""

    default_code = "unknown_profile"

    def __init__(self, profile: str, *, known: list[str] | None = None, **kwargs: Any) -> None:
        super().__init__(
            f"Unknown lifetime profile {profile!r}",
            detail={"profile": profile, "known": sorted(known or [])},
            **kwargs,
        )
        self.profile = profile


class ComputeFailedError(CacheError):
    """The recomputation for *key* raised; the original exception is ``cause``."""

    default_code = "compute_failed"
    retryable = True

    def __init__(self, key: str, *, cause: BaseException | None = None, **kwargs: Any) -> None:
        reason = f": {cause!r}" if cause is not None else ""
        super().__init__(
            f"Computation for cache key {key!r} failed{reason}",
            detail={"key": key},
            cause=cause,
            **kwargs,
        )
        self.key = key


class NonCacheableAccessError(CacheError):
    """Request-bound data was read inside an active cache scope."""

    default_code = "non_cacheable_access"

    def __init__(self, operation: str, **kwargs: Any) -> None:
        super().__init__(
            f"{operation!r} is request-bound and cannot be read inside a cache scope",
            detail={"operation": operation},
            **kwargs,
        )
        self.operation = operation


class LockLeakError(InvariantViolationError):
    """A key stayed flagged as computing after its computation settled."""

    default_code = "lock_leak"

    def __init__(self, key: str) -> None:
        super().__init__(
            f"Cache key {key!r} is still marked as computing after its flight ended",
            detail={"key": key},
        )
        self.key = key

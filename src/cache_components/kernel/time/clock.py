"""Kernel time – Clock protocol + implementations."""
from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Port: injectable time source.

    ``monotonic()`` drives stale/expire windows; ``now()`` is wall time for
    events and diagnostics only.
    """

    def now(self) -> datetime: ...
    def monotonic(self) -> float: ...


class SystemClock:
    """Production clock backed by ``time.monotonic`` and ``datetime.now(UTC)``."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def monotonic(self) -> float:
        return time.monotonic()


class FrozenClock:
    """Test clock pinned to a fixed point in time.

    Both readings move together when :meth:`advance` is called.
    """

    def __init__(self, fixed: datetime, *, monotonic_start: float = 1000.0) -> None:
        self._fixed = fixed
        self._monotonic = monotonic_start

    def now(self) -> datetime:
        return self._fixed

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, **kwargs: int | float) -> None:
        """Advance the frozen time by the given ``timedelta`` kwargs."""
        delta = timedelta(**kwargs)
        self._fixed += delta
        self._monotonic += delta.total_seconds()


def utc_now() -> datetime:
    """Shorthand for ``datetime.now(UTC)``."""
    return datetime.now(UTC)


__all__ = ["Clock", "FrozenClock", "SystemClock", "utc_now"]

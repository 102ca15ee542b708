"""Testing fakes – FakeClock factory."""
from __future__ import annotations

from datetime import UTC, datetime

from cache_components.kernel.time import FrozenClock


def FakeClock() -> FrozenClock:  # noqa: N802
    """Return a ``FrozenClock`` pinned to 2026-01-01 12:00 UTC, monotonic 1000.0."""
    return FrozenClock(datetime(2026, 1, 1, 12, 0, tzinfo=UTC), monotonic_start=1000.0)


__all__ = ["FakeClock"]

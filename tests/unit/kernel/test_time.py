"""Unit tests for kernel time utilities."""

from __future__ import annotations

from datetime import UTC, datetime

from cache_components.kernel.time import Clock, FrozenClock, SystemClock, utc_now
from cache_components.testing.fakes import FakeClock


class TestSystemClock:
    def test_now_is_utc_aware(self) -> None:
        result = SystemClock().now()
        assert isinstance(result, datetime)
        assert result.tzinfo is not None

    def test_monotonic_never_goes_backwards(self) -> None:
        clk = SystemClock()
        first = clk.monotonic()
        second = clk.monotonic()
        assert second >= first

    def test_satisfies_protocol(self) -> None:
        clk: Clock = SystemClock()
        assert isinstance(clk.monotonic(), float)


class TestFrozenClock:
    def test_readings_are_fixed(self) -> None:
        fixed = datetime(2026, 1, 1, tzinfo=UTC)
        clk = FrozenClock(fixed, monotonic_start=5.0)
        assert clk.now() == fixed
        assert clk.monotonic() == 5.0
        assert clk.monotonic() == 5.0

    def test_advance_moves_both_readings(self) -> None:
        clk = FrozenClock(datetime(2026, 1, 1, tzinfo=UTC), monotonic_start=0.0)
        clk.advance(minutes=2)
        assert clk.now() == datetime(2026, 1, 1, 0, 2, tzinfo=UTC)
        assert clk.monotonic() == 120.0

    def test_fake_clock_factory(self) -> None:
        clk = FakeClock()
        assert clk.now() == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        assert clk.monotonic() == 1000.0


def test_utc_now() -> None:
    assert utc_now().tzinfo is not None

"""Testing fakes – in-memory doubles for the cache engine's ports."""
from cache_components.kernel.time import FrozenClock
from cache_components.testing.fakes.clock import FakeClock
from cache_components.testing.fakes.compute import ComputeProbe

__all__ = ["ComputeProbe", "FakeClock", "FrozenClock"]

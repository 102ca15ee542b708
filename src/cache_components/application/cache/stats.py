"""Application cache – counters describing engine activity."""
from __future__ import annotations

import dataclasses
import threading

__all__ = ["CacheStats"]


@dataclasses.dataclass
class CacheStats:
    """Monotonic counters; read them with :meth:`snapshot`."""

    hits: int = 0
    stale_hits: int = 0
    misses: int = 0
    computes: int = 0
    background_refreshes: int = 0
    failures: int = 0
    invalidations: int = 0
    swept: int = 0
    _lock: threading.Lock = dataclasses.field(default_factory=threading.Lock, repr=False, compare=False)

    def incr(self, counter: str, amount: int = 1) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + amount)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {f.name: getattr(self, f.name) for f in dataclasses.fields(self) if not f.name.startswith("_")}

    @property
    def hit_ratio(self) -> float:
        total = self.hits + self.stale_hits + self.misses
        return (self.hits + self.stale_hits) / total if total else 0.0

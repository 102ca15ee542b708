"""Application cache – CacheEntry value object and its states."""
from __future__ import annotations

import dataclasses
import enum
from typing import Any

from cache_components.application.cache.lifetime import LifetimeProfile

__all__ = ["CacheEntry", "EntryState"]


class EntryState(str, enum.Enum):
    FRESH = "fresh"
    STALE = "stale"
    INVALIDATED = "invalidated"
    COMPUTING = "computing"


@dataclasses.dataclass(frozen=True)
class CacheEntry:
    """One cached result plus the metadata deciding whether it may be served.

    Timestamps are monotonic clock readings in seconds; ``stale_at`` and
    ``expire_at`` may be ``math.inf``. Entries are immutable, the store
    replaces them wholesale.
    """

    key: str
    value: Any
    tags: frozenset[str]
    lifetime: LifetimeProfile
    created_at: float
    stale_at: float
    expire_at: float
    generation: int = 1
    state: EntryState = EntryState.FRESH

    def is_expired(self, now: float) -> bool:
        return now >= self.expire_at

    def state_at(self, now: float) -> EntryState:
        """State as observed at *now*, applying elapsed windows lazily."""
        if self.state in (EntryState.INVALIDATED, EntryState.COMPUTING):
            return self.state
        if self.is_expired(now):
            return EntryState.INVALIDATED
        if self.state is EntryState.STALE or now >= self.stale_at:
            return EntryState.STALE
        return EntryState.FRESH

    def with_state(self, state: EntryState, *, expire_at: float | None = None) -> CacheEntry:
        changes: dict[str, Any] = {"state": state}
        if expire_at is not None:
            changes["expire_at"] = expire_at
            changes["stale_at"] = min(self.stale_at, expire_at)
        return dataclasses.replace(self, **changes)

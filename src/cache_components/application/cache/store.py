"""Application cache – EntryStore, keyed storage of cached results."""
from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Iterable

from cache_components.application.cache.entries import CacheEntry, EntryState
from cache_components.application.cache.lifetime import LifetimeProfile
from cache_components.application.cache.tags import TagIndex
from cache_components.kernel.time import Clock, SystemClock

__all__ = ["EntryStore"]

logger = logging.getLogger(__name__)

_SEVERITY = {
    EntryState.FRESH: 0,
    EntryState.STALE: 1,
    EntryState.INVALIDATED: 2,
}


class EntryStore:
    """In-memory entry table with its :class:`TagIndex`.

    Every mutation updates the entry table and the tag index under one
    re-entrant lock, so a key is registered under tag T exactly when its
    entry carries T. Reads take no lock and never block.
    """

    def __init__(self, clock: Clock | None = None, index: TagIndex | None = None) -> None:
        self._clock = clock or SystemClock()
        self._index = index if index is not None else TagIndex()
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()

    @property
    def index(self) -> TagIndex:
        return self._index

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, key: str) -> CacheEntry | None:
        """Return the entry for *key* with its state evaluated at the current time.

        An entry past ``expire_at`` comes back ``INVALIDATED`` even if the
        sweeper has not removed it yet; the stored entry is not modified.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        state = entry.state_at(self._clock.monotonic())
        if state is entry.state:
            return entry
        return dataclasses.replace(entry, state=state)

    def keys_for_tag(self, tag: str) -> frozenset[str]:
        with self._lock:
            return self._index.keys_for_tag(tag)

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def put(self, key: str, value: object, tags: Iterable[str], lifetime: LifetimeProfile) -> CacheEntry:
        now = self._clock.monotonic()
        new_tags = frozenset(tags)
        with self._lock:
            previous = self._entries.get(key)
            entry = CacheEntry(
                key=key,
                value=value,
                tags=new_tags,
                lifetime=lifetime,
                created_at=now,
                stale_at=now + lifetime.stale_window,
                expire_at=now + lifetime.expire_window,
                generation=previous.generation + 1 if previous is not None else 1,
                state=EntryState.FRESH,
            )
            if previous is not None:
                self._index.deindex_all(previous.tags - new_tags, key)
            self._index.index_all(new_tags, key)
            self._entries[key] = entry
        logger.debug("cache.store.put key=%s generation=%d tags=%d", key, entry.generation, len(new_tags))
        return entry

    def remove(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return False
            self._index.deindex_all(entry.tags, key)
        logger.debug("cache.store.remove key=%s", key)
        return True

    def mark(
        self,
        key: str,
        state: EntryState,
        *,
        expire_at: float | None = None,
        only_if: EntryState | None = None,
    ) -> CacheEntry | None:
        """Replace the state of *key*'s entry.

        Returns ``None`` when the key is absent or, with *only_if*, when the
        stored state differs from it. *expire_at* can only shorten the entry.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or (only_if is not None and entry.state is not only_if):
                return None
            if expire_at is not None:
                expire_at = min(entry.expire_at, expire_at)
            updated = entry.with_state(state, expire_at=expire_at)
            self._entries[key] = updated
            return updated

    def mark_tagged(self, tag: str, state: EntryState, *, expire_at: float | None = None) -> list[str]:
        """Downgrade every entry carrying *tag* to at most *state*.

        An entry is never upgraded (an invalidated entry stays invalidated
        under a later stale mark). Entries currently ``COMPUTING`` keep that
        state; their keys are still returned so the caller can flag the
        running computation. Returns all affected keys.
        """
        now = self._clock.monotonic()
        with self._lock:
            keys = sorted(self._index.keys_for_tag(tag))
            for key in keys:
                entry = self._entries[key]
                if entry.state is EntryState.COMPUTING:
                    continue
                current = entry.state_at(now)
                target = state if _SEVERITY[state] >= _SEVERITY[current] else current
                clamp = min(entry.expire_at, expire_at) if expire_at is not None else None
                self._entries[key] = entry.with_state(target, expire_at=clamp)
        return keys

    def sweep(self, now: float | None = None) -> int:
        """Drop expired entries that are not being recomputed; returns the count."""
        now = self._clock.monotonic() if now is None else now
        with self._lock:
            expired = [
                key
                for key, entry in self._entries.items()
                if entry.state is not EntryState.COMPUTING and entry.expire_at < now
            ]
            for key in expired:
                entry = self._entries.pop(key)
                self._index.deindex_all(entry.tags, key)
        if expired:
            logger.debug("cache.store.swept count=%d", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            for key, entry in self._entries.items():
                self._index.deindex_all(entry.tags, key)
            self._entries.clear()

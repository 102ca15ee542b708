"""Application cache – InvalidationCoordinator.

Reconciles concurrent reads, recomputation and tag invalidation for each
key:

* at most one computation ("flight") per key runs at any time; concurrent
  callers that need a value join it, callers allowed to see a stale value
  get it immediately;
* ``update_tag`` invalidates immediately, the next read recomputes;
* ``revalidate_tag`` marks entries stale (stale-while-revalidate), or
  invalidates them when given a zero expiry;
* an invalidation that lands while a flight is running flags the flight as
  superseded: callers arriving afterwards never take its result, and the
  committed entry inherits the invalidation.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import dataclasses
import functools
import logging
import threading
from collections.abc import Awaitable, Callable, Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any

from cache_components.application.cache.entries import CacheEntry, EntryState
from cache_components.application.cache.errors import ComputeFailedError, LockLeakError
from cache_components.application.cache.lifetime import LifetimePolicy, LifetimeProfile, RevalidateMode
from cache_components.application.cache.scope import ScopeContext, ScopeTracker
from cache_components.application.cache.stats import CacheStats
from cache_components.application.cache.store import EntryStore
from cache_components.config.settings import CacheSettings
from cache_components.kernel.errors import BaseError, ValidationError
from cache_components.kernel.errors import TimeoutError as AppTimeoutError
from cache_components.kernel.time import Clock, SystemClock

__all__ = [
    "ComputeFn",
    "InvalidationCoordinator",
    "InvalidationResult",
    "RevalidateProfile",
]

logger = logging.getLogger(__name__)

ComputeFn = Callable[[ScopeContext], Awaitable[Any]]
RevalidateProfile = str | LifetimeProfile | Mapping[str, float | timedelta] | None

_SEVERITY = {
    None: -1,
    EntryState.FRESH: 0,
    EntryState.STALE: 1,
    EntryState.INVALIDATED: 2,
}


@dataclasses.dataclass(frozen=True)
class InvalidationResult:
    """Acknowledgement of a completed ``update_tag`` / ``revalidate_tag`` call."""

    tag: str
    strategy: str
    state: EntryState
    keys: frozenset[str]
    occurred_at: datetime

    @property
    def keys_affected(self) -> int:
        return len(self.keys)


class _Flight:
    """One running computation for one key."""

    __slots__ = (
        "background", "key", "outcome", "prior_state", "scope", "superseded", "supersede_expire_at", "tags", "task",
    )

    def __init__(self, key: str, tags: frozenset[str], *, background: bool, prior_state: EntryState | None) -> None:
        self.key = key
        self.tags = tags
        self.background = background
        self.prior_state = prior_state
        self.scope: ScopeContext | None = None
        self.superseded: EntryState | None = None
        self.supersede_expire_at: float | None = None
        self.task: asyncio.Task[CacheEntry]
        # settled from the owning loop; awaited from any loop or thread
        self.outcome: concurrent.futures.Future[CacheEntry] = concurrent.futures.Future()
        self.outcome.set_running_or_notify_cancel()

    def carries(self, tag: str) -> bool:
        if tag in self.tags:
            return True
        return self.scope is not None and tag in self.scope.tags

    def supersede(self, state: EntryState, expire_at: float | None) -> None:
        if _SEVERITY[state] > _SEVERITY[self.superseded]:
            self.superseded = state
        if expire_at is not None:
            current = self.supersede_expire_at
            self.supersede_expire_at = expire_at if current is None else min(current, expire_at)

    def serves_stale(self, entry: CacheEntry | None, now: float) -> bool:
        """Whether a caller may be answered with *entry* while this flight runs."""
        if entry is None or not self.background or self.superseded is EntryState.INVALIDATED:
            return False
        if entry.is_expired(now):
            return False
        return self.supersede_expire_at is None or now < self.supersede_expire_at


class InvalidationCoordinator:
    """Drives lookups, single-flight recomputation and tag invalidation."""

    def __init__(
        self,
        store: EntryStore,
        policy: LifetimePolicy,
        scopes: ScopeTracker,
        *,
        settings: CacheSettings | None = None,
        clock: Clock | None = None,
        stats: CacheStats | None = None,
    ) -> None:
        self._store = store
        self._policy = policy
        self._scopes = scopes
        self._settings = settings or CacheSettings()
        self._clock = clock or SystemClock()
        self._stats = stats or CacheStats()
        self._flights: dict[str, _Flight] = {}
        self._lock = threading.Lock()

    @property
    def stats(self) -> CacheStats:
        return self._stats

    def in_flight(self, key: str | None = None) -> bool:
        return bool(self._flights) if key is None else key in self._flights

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_or_compute(
        self,
        key: str,
        compute: ComputeFn,
        tags: Iterable[str] | str = (),
        profile: str | LifetimeProfile | None = None,
        *,
        scope: ScopeContext | None = None,
        timeout: float | None = None,
    ) -> Any:
        """Return the cached value for *key*, computing it when required.

        *compute* receives the :class:`ScopeContext` of the computation. When
        *scope* is given (a nested call from another computation) the
        entry's tags and lifetime are folded into it.

        Raises :class:`ComputeFailedError` when the computation this call
        waited on failed, :class:`UnknownProfileError` for an unknown
        *profile* and the kernel ``TimeoutError`` when *timeout* elapses
        (the computation itself keeps running and still commits).
        """
        lifetime = self._policy.resolve(profile if profile is not None else self._settings.default_profile)
        declared = self.normalize_tags(tags)
        if timeout is None:
            timeout = self._settings.wait_timeout
        deadline = None if timeout is None else asyncio.get_running_loop().time() + timeout

        while True:
            with self._lock:
                entry, flight, settle = self._decide(key, compute, declared, lifetime)
            if flight is None:
                return self._deliver(entry, scope)  # type: ignore[arg-type]
            if settle:
                # started before an invalidation; its result is not acceptable here
                await self._settle(flight, deadline, timeout)
                continue
            return self._deliver(await self._wait(flight, deadline, timeout), scope)

    def _decide(
        self, key: str, compute: ComputeFn, tags: frozenset[str], lifetime: LifetimeProfile
    ) -> tuple[CacheEntry | None, _Flight | None, bool]:
        """Pick what a read does next: ``(entry, None, _)`` serves *entry*,
        ``(_, flight, False)`` waits for *flight*, ``(_, flight, True)`` lets it
        settle and looks again. Runs under ``self._lock``.
        """
        now = self._clock.monotonic()
        entry = self._store.get(key)
        flight = self._flights.get(key)

        if flight is not None:
            if flight.serves_stale(entry, now):
                self._stats.incr("stale_hits")
                logger.debug("cache.stale_hit key=%s refreshing=true", key)
                return entry, None, False
            return entry, flight, flight.superseded is not None

        if entry is None:
            self._stats.incr("misses")
            return None, self._launch(key, compute, tags, lifetime, None, background=False), False

        if entry.state is EntryState.COMPUTING:
            logger.error("cache.lock_leak key=%s", key)
            raise LockLeakError(key)

        if entry.state is EntryState.FRESH:
            self._stats.incr("hits")
            return entry, None, False

        if entry.state is EntryState.STALE and entry.lifetime.revalidate_mode is RevalidateMode.BACKGROUND:
            self._stats.incr("stale_hits")
            if self._settings.refresh_on_stale_read:
                self._launch(key, compute, tags, lifetime, entry, background=True)
                logger.debug("cache.stale_hit key=%s refreshing=true", key)
            return entry, None, False

        # invalidated, expired, or stale under a blocking profile
        self._stats.incr("misses")
        return entry, self._launch(key, compute, tags, lifetime, entry, background=False), False

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def update_tag(self, tag: str) -> InvalidationResult:
        """Invalidate every entry carrying *tag*; the next read recomputes."""
        tag = self._validate_tag(tag)
        keys = self._apply(tag, EntryState.INVALIDATED, None)
        logger.info("cache.tag.updated tag=%s keys=%d", tag, len(keys))
        return InvalidationResult(tag, "update", EntryState.INVALIDATED, keys, self._clock.now())

    def revalidate_tag(self, tag: str, profile: RevalidateProfile = "max") -> InvalidationResult:
        """Mark entries carrying *tag* stale (served while one refresh runs).

        *profile* may be ``"max"`` (default: stale, expiry untouched), another
        profile name or :class:`LifetimeProfile` (stale, expiry clamped to its
        expire window), or ``{"expire": seconds}``; ``{"expire": 0}``
        invalidates immediately like :meth:`update_tag`.
        """
        tag = self._validate_tag(tag)
        expire = self._expire_override(profile)
        if expire == 0:
            state, expire_at = EntryState.INVALIDATED, None
        else:
            state = EntryState.STALE
            expire_at = None if expire is None else self._clock.monotonic() + expire
        keys = self._apply(tag, state, expire_at)
        logger.info("cache.tag.revalidated tag=%s state=%s keys=%d", tag, state.value, len(keys))
        return InvalidationResult(tag, "revalidate", state, keys, self._clock.now())

    def _apply(self, tag: str, state: EntryState, expire_at: float | None) -> frozenset[str]:
        with self._lock:
            affected = set(self._store.mark_tagged(tag, state, expire_at=expire_at))
            for flight in self._flights.values():
                if flight.key in affected or flight.carries(tag):
                    flight.supersede(state, expire_at)
                    affected.add(flight.key)
        self._stats.incr("invalidations", len(affected))
        return frozenset(affected)

    def _expire_override(self, profile: RevalidateProfile) -> float | None:
        """Seconds until forced expiry for a revalidation, ``None`` for never."""
        if profile is None:
            return None
        if isinstance(profile, Mapping):
            unknown = set(profile) - {"expire"}
            if unknown or "expire" not in profile:
                raise ValidationError.for_field(
                    "profile",
                    f"unexpected keys {sorted(unknown)}",
                    "revalidate profile mapping must be {'expire': seconds}",
                )
            raw = profile["expire"]
            seconds = raw.total_seconds() if isinstance(raw, timedelta) else float(raw)
            if seconds < 0:
                raise ValidationError.for_field("expire", "must be >= 0")
            return seconds
        resolved = self._policy.resolve(profile)
        return None if resolved.never_expires else resolved.expire_window

    # ------------------------------------------------------------------
    # Flights
    # ------------------------------------------------------------------

    def _launch(
        self,
        key: str,
        compute: ComputeFn,
        tags: frozenset[str],
        lifetime: LifetimeProfile,
        entry: CacheEntry | None,
        *,
        background: bool,
    ) -> _Flight:
        # caller holds self._lock
        flight = _Flight(key, tags, background=background, prior_state=entry.state if entry is not None else None)
        if entry is not None:
            self._store.mark(key, EntryState.COMPUTING)
        self._flights[key] = flight
        loop = asyncio.get_running_loop()
        flight.task = loop.create_task(self._run(flight, compute, lifetime), name=f"cache-compute:{key}")
        flight.task.add_done_callback(functools.partial(self._on_flight_done, flight))
        self._stats.incr("background_refreshes" if background else "computes")
        return flight

    async def _run(self, flight: _Flight, compute: ComputeFn, lifetime: LifetimeProfile) -> CacheEntry:
        key = flight.key
        try:
            with self._scopes.enter(lifetime=lifetime) as scope:
                flight.scope = scope
                scope.tag(*flight.tags)
                value = await compute(scope)
                tags = self.normalize_tags(scope.tags)
                final_lifetime = scope.lifetime or lifetime
            with self._lock:
                entry = self._store.put(key, value, tags, final_lifetime)
                if flight.superseded is not None:
                    entry = self._store.mark(key, flight.superseded, expire_at=flight.supersede_expire_at) or entry
                self._release(flight)
            return entry
        except asyncio.CancelledError:
            raise
        except BaseError:
            self._stats.incr("failures")
            raise
        except Exception as exc:
            self._stats.incr("failures")
            raise ComputeFailedError(key, cause=exc) from exc
        finally:
            self._abandon(flight)

    def _abandon(self, flight: _Flight) -> None:
        """Unregister an unfinished flight, putting its entry back as it was (value kept).

        No-op once the flight has committed or been abandoned already.
        """
        with self._lock:
            if self._flights.get(flight.key) is not flight:
                return
            if flight.prior_state is not None:
                state = flight.prior_state
                if _SEVERITY[flight.superseded] > _SEVERITY[state]:
                    state = flight.superseded  # type: ignore[assignment]
                self._store.mark(
                    flight.key, state, expire_at=flight.supersede_expire_at, only_if=EntryState.COMPUTING
                )
            self._release(flight)

    def _release(self, flight: _Flight) -> None:
        # caller holds self._lock
        if self._flights.get(flight.key) is not flight:
            return
        del self._flights[flight.key]
        leaked = self._store.mark(flight.key, EntryState.INVALIDATED, only_if=EntryState.COMPUTING)
        if leaked is not None:
            logger.error("cache.lock_leak key=%s repaired=true", flight.key)

    def _on_flight_done(self, flight: _Flight, task: asyncio.Task[CacheEntry]) -> None:
        # a task cancelled before its first step never entered _run
        self._abandon(flight)
        if task.cancelled():
            logger.debug("cache.compute.cancelled key=%s", flight.key)
            flight.outcome.set_exception(ComputeFailedError(flight.key, cause=asyncio.CancelledError()))
            return
        exc = task.exception()
        if exc is None:
            flight.outcome.set_result(task.result())
            return
        flight.outcome.set_exception(exc)
        if flight.background:
            # nobody waits on a background refresh
            logger.warning("cache.refresh.failed key=%s error=%r", flight.key, exc)

    async def _wait(self, flight: _Flight, deadline: float | None, timeout: float | None) -> CacheEntry:
        # cancelling the wrapper leaves the running outcome untouched
        waiter = asyncio.wrap_future(flight.outcome)
        if deadline is None:
            return await waiter
        remaining = max(0.0, deadline - asyncio.get_running_loop().time())
        try:
            return await asyncio.wait_for(waiter, timeout=remaining)
        except (asyncio.TimeoutError, TimeoutError) as exc:
            raise self._timed_out(flight, timeout) from exc

    async def _settle(self, flight: _Flight, deadline: float | None, timeout: float | None) -> None:
        """Wait for *flight* to finish, whatever its outcome."""
        remaining = None if deadline is None else max(0.0, deadline - asyncio.get_running_loop().time())
        waiter = asyncio.wrap_future(flight.outcome)
        done, _ = await asyncio.wait({waiter}, timeout=remaining)
        if not done:
            waiter.cancel()
            raise self._timed_out(flight, timeout)
        if not waiter.cancelled():
            waiter.exception()

    @staticmethod
    def _timed_out(flight: _Flight, timeout: float | None) -> AppTimeoutError:
        logger.warning("cache.wait.timeout key=%s timeout=%s", flight.key, timeout)
        return AppTimeoutError(
            f"Timed out waiting for cache key {flight.key!r}", timeout=timeout, detail={"key": flight.key}
        )

    def _deliver(self, entry: CacheEntry, scope: ScopeContext | None) -> Any:
        if scope is not None:
            scope.absorb(entry.tags, entry.lifetime)
        return entry.value

    async def aclose(self) -> None:
        """Cancel running flights, on whichever loop runs them; entries keep their pre-flight state."""
        with self._lock:
            flights = list(self._flights.values())
        loop = asyncio.get_running_loop()
        pending = []
        for flight in flights:
            owner = flight.task.get_loop()
            if owner is loop:
                flight.task.cancel()
            elif not owner.is_closed():
                owner.call_soon_threadsafe(flight.task.cancel)
            else:
                self._abandon(flight)
                continue
            pending.append(asyncio.wrap_future(flight.outcome))
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def _validate_tag(self, tag: str) -> str:
        if not isinstance(tag, str) or not tag:
            raise ValidationError.for_field("tag", repr(tag), "Cache tag must be a non-empty string")
        if len(tag) > self._settings.max_tag_length:
            raise ValidationError.for_field(
                "tag", "too long", f"Cache tag exceeds {self._settings.max_tag_length} characters"
            )
        return tag

    def normalize_tags(self, tags: Iterable[str] | str) -> frozenset[str]:
        """Validate *tags* (a single string counts as one tag)."""
        if isinstance(tags, str):
            tags = (tags,)
        normalized = frozenset(self._validate_tag(tag) for tag in tags)
        if len(normalized) > self._settings.max_tags_per_entry:
            raise ValidationError.for_field(
                "tags", f"{len(normalized)} given", f"At most {self._settings.max_tags_per_entry} tags per entry"
            )
        return normalized

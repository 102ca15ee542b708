"""Application cache – CacheEngine, the owned entry point of the library."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from cache_components.application.cache.coordinator import (
    ComputeFn,
    InvalidationCoordinator,
    InvalidationResult,
    RevalidateProfile,
)
from cache_components.application.cache.entries import CacheEntry
from cache_components.application.cache.lifetime import LifetimePolicy, LifetimeProfile
from cache_components.application.cache.scope import RequestData, ScopeContext, ScopeTracker
from cache_components.application.cache.stats import CacheStats
from cache_components.application.cache.store import EntryStore
from cache_components.config.settings import CacheSettings, EnvSettingsLoader
from cache_components.kernel.time import Clock, SystemClock

__all__ = ["CacheEngine"]

logger = logging.getLogger(__name__)


class CacheEngine:
    """Tag-based cache with lifetime profiles and staged invalidation.

    Build one per process (or per test) and pass it to the code that needs
    it; there is no module-level instance. ``start()`` launches the expiry
    sweeper, ``aclose()`` stops it and cancels running computations::

        async with CacheEngine() as cache:
            post = await cache.get_or_compute(
                CacheKey.for_resource("post", 1),
                lambda scope: load_post(1),
                tags=["post-1", "posts"],
                profile="days",
            )
            cache.update_tag("post-1")
    """

    def __init__(
        self,
        settings: CacheSettings | None = None,
        *,
        clock: Clock | None = None,
        policy: LifetimePolicy | None = None,
        scopes: ScopeTracker | None = None,
    ) -> None:
        self.settings = settings or CacheSettings()
        self._clock = clock or SystemClock()
        self.policy = policy or LifetimePolicy()
        self.policy.resolve(self.settings.default_profile)
        self.scopes = scopes or ScopeTracker(policy=self.policy)
        self.store = EntryStore(self._clock)
        self.stats = CacheStats()
        self.coordinator = InvalidationCoordinator(
            self.store,
            self.policy,
            self.scopes,
            settings=self.settings,
            clock=self._clock,
            stats=self.stats,
        )
        self._sweeper: asyncio.Task[None] | None = None
        self._running = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **kwargs: Any) -> CacheEngine:
        """Build an engine from ``CACHE_COMPONENTS_*`` environment variables."""
        return cls(EnvSettingsLoader(environ).load(CacheSettings), **kwargs)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._running:
            return
        self._running = True
        if self.settings.sweep_interval_seconds > 0:
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="cache-sweeper")
        logger.info(
            "cache.engine.started default_profile=%s sweep_interval=%s",
            self.settings.default_profile, self.settings.sweep_interval_seconds,
        )

    async def aclose(self) -> None:
        self._running = False
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        await self.coordinator.aclose()
        logger.info("cache.engine.stopped entries=%d", len(self.store))

    async def __aenter__(self) -> CacheEngine:
        await self.start()
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.aclose()

    async def _sweep_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.settings.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception as exc:
                logger.warning("cache.sweep.failed exc=%r", exc)

    # ------------------------------------------------------------------
    # Cache operations
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
        return await self.coordinator.get_or_compute(
            key, compute, tags, profile, scope=scope, timeout=timeout
        )

    def put(
        self,
        key: str,
        value: Any,
        tags: Iterable[str] | str = (),
        profile: str | LifetimeProfile | None = None,
    ) -> CacheEntry:
        """Write *value* directly, as if it had just been computed."""
        lifetime = self.policy.resolve(profile if profile is not None else self.settings.default_profile)
        return self.store.put(key, value, self.coordinator.normalize_tags(tags), lifetime)

    def get(self, key: str) -> CacheEntry | None:
        return self.store.get(key)

    def remove(self, key: str) -> bool:
        return self.store.remove(key)

    def update_tag(self, tag: str) -> InvalidationResult:
        return self.coordinator.update_tag(tag)

    def revalidate_tag(self, tag: str, profile: RevalidateProfile = "max") -> InvalidationResult:
        return self.coordinator.revalidate_tag(tag, profile)

    def keys_for_tag(self, tag: str) -> frozenset[str]:
        return self.store.keys_for_tag(tag)

    def sweep(self) -> int:
        removed = self.store.sweep()
        if removed:
            self.stats.incr("swept", removed)
        return removed

    def register_profile(self, profile: LifetimeProfile) -> None:
        self.policy.register(profile)

    # ------------------------------------------------------------------
    # Scopes
    # ------------------------------------------------------------------

    def enter_scope(self, parent: ScopeContext | None = None, *, forbid: Iterable[str] = ()) -> ScopeContext:
        return self.scopes.enter(parent, forbid=forbid)

    def exit_scope(self, ctx: ScopeContext) -> None:
        self.scopes.exit(ctx)

    def assert_cacheable(self, operation: str, ctx: ScopeContext | None = None) -> None:
        self.scopes.assert_cacheable(operation, ctx)

    def request_data(self, values: Mapping[str, Any] | None = None) -> RequestData:
        return RequestData(self.scopes, values)

    def __len__(self) -> int:
        return len(self.store)

"""Application cache – @cached decorator and CacheWarmupService."""
from __future__ import annotations

import dataclasses
import functools
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from cache_components.application.cache.engine import CacheEngine
from cache_components.application.cache.keys import CacheKey
from cache_components.application.cache.lifetime import LifetimeProfile
from cache_components.application.cache.scope import ScopeContext

__all__ = ["CacheWarmupService", "cached"]

logger = logging.getLogger(__name__)


def cached(
    engine: CacheEngine,
    *,
    tags: Iterable[str] | Callable[..., Iterable[str]] = (),
    profile: str | LifetimeProfile | None = None,
    key_fn: Callable[..., str] | None = None,
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Decorator: route an async function through ``engine.get_or_compute``.

    The key defaults to ``CacheKey.for_call("<module>.<qualname>", *args, **kwargs)``;
    *key_fn* and a callable *tags* receive the same args/kwargs as the
    wrapped function. Pass ``cache_scope=`` when calling the wrapper from
    inside another computation so its tags and lifetime propagate outward.
    """

    def decorator(fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        identity = f"{fn.__module__}.{fn.__qualname__}"

        @functools.wraps(fn)
        async def wrapper(*args: Any, cache_scope: ScopeContext | None = None, **kwargs: Any) -> Any:
            key = key_fn(*args, **kwargs) if key_fn else CacheKey.for_call(identity, *args, **kwargs)
            entry_tags = tags(*args, **kwargs) if callable(tags) else tags

            async def compute(scope: ScopeContext) -> Any:
                return await fn(*args, **kwargs)

            return await engine.get_or_compute(key, compute, entry_tags, profile, scope=cache_scope)

        wrapper.cache_engine = engine  # type: ignore[attr-defined]
        wrapper.cache_key = (  # type: ignore[attr-defined]
            key_fn if key_fn else functools.partial(CacheKey.for_call, identity)
        )
        return wrapper

    return decorator


@dataclasses.dataclass(frozen=True)
class _Loader:
    load: Callable[[], Awaitable[Any]]
    tags: tuple[str, ...]
    profile: str | LifetimeProfile | None


class CacheWarmupService:
    """Pre-populates cache entries, e.g. at startup or after a bulk import."""

    def __init__(self, engine: CacheEngine) -> None:
        self._engine = engine
        self._loaders: dict[str, _Loader] = {}

    def register(
        self,
        key: str,
        loader: Callable[[], Awaitable[Any]],
        *,
        tags: Iterable[str] = (),
        profile: str | LifetimeProfile | None = None,
    ) -> None:
        # resolve now so a typo fails at registration, not at warm-up
        if profile is not None:
            self._engine.policy.resolve(profile)
        self._loaders[key] = _Loader(loader, tuple(tags), profile)

    async def warm(self, key: str) -> Any:
        if key not in self._loaders:
            raise KeyError(f"No loader registered for key: {key!r}")
        loader = self._loaders[key]
        value = await loader.load()
        self._engine.put(key, value, loader.tags, loader.profile)
        return value

    async def warm_all(self) -> dict[str, Any]:
        """Warm every registered key; a failing loader is logged and skipped."""
        warmed: dict[str, Any] = {}
        for key in list(self._loaders):
            try:
                warmed[key] = await self.warm(key)
            except Exception as exc:
                logger.warning("cache.warmup.failed key=%s exc=%r", key, exc)
        return warmed

"""Application cache – tag-based cache engine with staged invalidation."""
from cache_components.application.cache.coordinator import (
    InvalidationCoordinator,
    InvalidationResult,
)
from cache_components.application.cache.decorators import CacheWarmupService, cached
from cache_components.application.cache.engine import CacheEngine
from cache_components.application.cache.entries import CacheEntry, EntryState
from cache_components.application.cache.errors import (
    CacheError,
    ComputeFailedError,
    LockLeakError,
    NonCacheableAccessError,
    UnknownProfileError,
)
from cache_components.application.cache.keys import CacheKey
from cache_components.application.cache.lifetime import (
    BUILTIN_PROFILES,
    INFINITE,
    LifetimePolicy,
    LifetimeProfile,
    RevalidateMode,
)
from cache_components.application.cache.scope import (
    DEFAULT_REQUEST_BOUND,
    RequestData,
    ScopeContext,
    ScopeTracker,
)
from cache_components.application.cache.stats import CacheStats
from cache_components.application.cache.store import EntryStore
from cache_components.application.cache.tags import TagIndex

__all__ = [
    "BUILTIN_PROFILES",
    "DEFAULT_REQUEST_BOUND",
    "INFINITE",
    "CacheEngine",
    "CacheEntry",
    "CacheError",
    "CacheKey",
    "CacheStats",
    "CacheWarmupService",
    "ComputeFailedError",
    "EntryState",
    "EntryStore",
    "InvalidationCoordinator",
    "InvalidationResult",
    "LifetimePolicy",
    "LifetimeProfile",
    "LockLeakError",
    "NonCacheableAccessError",
    "RequestData",
    "RevalidateMode",
    "ScopeContext",
    "ScopeTracker",
    "TagIndex",
    "UnknownProfileError",
    "cached",
]

"""Unit tests for cache keys, the tag index and the entry store."""
import math

import pytest

from cache_components.application.cache import (
    BUILTIN_PROFILES,
    CacheKey,
    CacheStats,
    EntryState,
    EntryStore,
    LifetimePolicy,
    TagIndex,
)
from cache_components.testing.fakes import FakeClock

POLICY = LifetimePolicy()
DAYS = POLICY.resolve("days")
SECONDS = POLICY.resolve("seconds")
MAX = POLICY.resolve("max")


# ---------------------------------------------------------------------------
# CacheKey
# ---------------------------------------------------------------------------

class TestCacheKey:
    def test_for_resource_format(self):
        assert CacheKey.for_resource("post", 42) == "post:42"

    def test_for_call_deterministic(self):
        k1 = CacheKey.for_call("blog.list", "en", page=1, sort="new")
        k2 = CacheKey.for_call("blog.list", "en", sort="new", page=1)
        assert k1 == k2
        assert k1.startswith("call:blog.list:")

    def test_for_call_depends_on_args(self):
        assert CacheKey.for_call("blog.post", 1) != CacheKey.for_call("blog.post", 2)
        assert CacheKey.for_call("blog.post", 1) != CacheKey.for_call("blog.author", 1)

    def test_for_call_sets_are_order_independent(self):
        assert CacheKey.for_call("f", {"b", "a", "c"}) == CacheKey.for_call("f", {"c", "a", "b"})

    def test_for_query_deterministic(self):
        k1 = CacheKey.for_query("products", category="shoes", page=1)
        k2 = CacheKey.for_query("products", page=1, category="shoes")
        assert k1 == k2
        assert k1.startswith("query:products:")


# ---------------------------------------------------------------------------
# TagIndex
# ---------------------------------------------------------------------------

class TestTagIndex:
    def test_index_and_lookup(self):
        index = TagIndex()
        index.index("posts", "k1")
        index.index("posts", "k2")
        assert index.keys_for_tag("posts") == {"k1", "k2"}

    def test_index_is_idempotent(self):
        index = TagIndex()
        index.index("posts", "k1")
        index.index("posts", "k1")
        assert index.keys_for_tag("posts") == {"k1"}

    def test_deindex_is_idempotent(self):
        index = TagIndex()
        index.deindex("posts", "k1")
        index.index("posts", "k1")
        index.deindex("posts", "k1")
        index.deindex("posts", "k1")
        assert index.keys_for_tag("posts") == frozenset()

    def test_empty_tag_is_dropped(self):
        index = TagIndex()
        index.index("one-off", "k1")
        index.deindex("one-off", "k1")
        assert "one-off" not in index
        assert len(index) == 0

    def test_lookup_returns_snapshot(self):
        index = TagIndex()
        index.index("posts", "k1")
        snapshot = index.keys_for_tag("posts")
        index.index("posts", "k2")
        assert snapshot == {"k1"}

    def test_tags_sorted(self):
        index = TagIndex()
        index.index_all(["b", "a"], "k1")
        assert index.tags() == ["a", "b"]
        assert list(index) == ["a", "b"]


# ---------------------------------------------------------------------------
# EntryStore
# ---------------------------------------------------------------------------

class TestEntryStore:
    def test_put_and_get(self):
        store = EntryStore(FakeClock())
        store.put("k1", "hello", ["tag-a"], DAYS)
        entry = store.get("k1")
        assert entry.value == "hello"
        assert entry.state is EntryState.FRESH
        assert entry.generation == 1
        assert entry.tags == {"tag-a"}

    def test_get_missing_returns_none(self):
        assert EntryStore(FakeClock()).get("missing") is None

    def test_put_computes_windows_from_clock(self):
        clock = FakeClock()
        entry = EntryStore(clock).put("k1", "v", [], DAYS)
        assert entry.created_at == clock.monotonic()
        assert entry.stale_at == clock.monotonic() + 86400
        assert entry.expire_at == clock.monotonic() + 604800

    def test_max_profile_never_expires(self):
        entry = EntryStore(FakeClock()).put("k1", "v", [], MAX)
        assert math.isinf(entry.stale_at)
        assert math.isinf(entry.expire_at)

    def test_overwrite_bumps_generation(self):
        store = EntryStore(FakeClock())
        store.put("k1", "v1", [], DAYS)
        entry = store.put("k1", "v2", [], DAYS)
        assert entry.generation == 2
        assert store.get("k1").value == "v2"

    def test_tag_fan_out_registered_and_removed(self):
        store = EntryStore(FakeClock())
        store.put("key", "v", {"A", "B"}, DAYS)
        assert "key" in store.keys_for_tag("A")
        assert "key" in store.keys_for_tag("B")
        assert store.remove("key") is True
        assert "key" not in store.keys_for_tag("A")
        assert "key" not in store.keys_for_tag("B")
        assert len(store.index) == 0

    def test_remove_missing_returns_false(self):
        assert EntryStore(FakeClock()).remove("nope") is False

    def test_overwrite_drops_old_tags(self):
        store = EntryStore(FakeClock())
        store.put("k1", "v1", ["old", "kept"], DAYS)
        store.put("k1", "v2", ["kept", "new"], DAYS)
        assert store.keys_for_tag("old") == frozenset()
        assert store.keys_for_tag("kept") == {"k1"}
        assert store.keys_for_tag("new") == {"k1"}

    def test_lookup_applies_stale_window_lazily(self):
        clock = FakeClock()
        store = EntryStore(clock)
        store.put("k1", "v", [], SECONDS)
        clock.advance(seconds=2)
        assert store.get("k1").state is EntryState.STALE

    def test_lookup_never_returns_expired_as_fresh(self):
        clock = FakeClock()
        store = EntryStore(clock)
        store.put("k1", "v", [], SECONDS)
        clock.advance(seconds=61)
        assert store.get("k1").state is EntryState.INVALIDATED
        assert "k1" in store  # not swept yet

    def test_mark_tagged_never_upgrades(self):
        store = EntryStore(FakeClock())
        store.put("k1", "v", ["t"], DAYS)
        store.mark_tagged("t", EntryState.INVALIDATED)
        store.mark_tagged("t", EntryState.STALE)
        assert store.get("k1").state is EntryState.INVALIDATED

    def test_mark_tagged_clamps_expiry(self):
        clock = FakeClock()
        store = EntryStore(clock)
        store.put("k1", "v", ["t"], DAYS)
        keys = store.mark_tagged("t", EntryState.STALE, expire_at=clock.monotonic() + 5)
        assert keys == ["k1"]
        entry = store.get("k1")
        assert entry.state is EntryState.STALE
        assert entry.expire_at == clock.monotonic() + 5

    def test_mark_tagged_leaves_computing_entries(self):
        store = EntryStore(FakeClock())
        store.put("k1", "v", ["t"], DAYS)
        store.mark("k1", EntryState.COMPUTING)
        assert store.mark_tagged("t", EntryState.INVALIDATED) == ["k1"]
        assert store.get("k1").state is EntryState.COMPUTING

    def test_mark_only_if(self):
        store = EntryStore(FakeClock())
        store.put("k1", "v", [], DAYS)
        assert store.mark("k1", EntryState.STALE, only_if=EntryState.COMPUTING) is None
        assert store.get("k1").state is EntryState.FRESH
        assert store.mark("missing", EntryState.STALE) is None

    def test_sweep_removes_only_expired(self):
        clock = FakeClock()
        store = EntryStore(clock)
        store.put("short", "v", ["t"], SECONDS)
        store.put("long", "v", ["t"], DAYS)
        clock.advance(seconds=120)
        assert store.sweep() == 1
        assert store.get("short") is None
        assert store.keys_for_tag("t") == {"long"}

    def test_sweep_skips_computing(self):
        clock = FakeClock()
        store = EntryStore(clock)
        store.put("k1", "v", [], SECONDS)
        store.mark("k1", EntryState.COMPUTING)
        clock.advance(seconds=120)
        assert store.sweep() == 0
        assert "k1" in store

    def test_clear(self):
        store = EntryStore(FakeClock())
        store.put("k1", "v", ["t"], DAYS)
        store.clear()
        assert len(store) == 0
        assert store.keys_for_tag("t") == frozenset()


def test_builtin_profiles_cover_named_durations():
    names = [p.name for p in BUILTIN_PROFILES]
    assert names[:6] == ["seconds", "minutes", "hours", "days", "weeks", "max"]


@pytest.mark.parametrize("profile", [SECONDS, DAYS, MAX])
def test_put_state_is_fresh(profile):
    assert EntryStore(FakeClock()).put("k", 1, [], profile).state is EntryState.FRESH


# ---------------------------------------------------------------------------
# CacheStats
# ---------------------------------------------------------------------------

class TestCacheStats:
    def test_hit_ratio_without_reads_is_zero(self):
        stats = CacheStats()
        stats.incr("computes")
        assert stats.hit_ratio == 0.0

    def test_hit_ratio_counts_stale_hits(self):
        stats = CacheStats()
        stats.incr("hits", 2)
        stats.incr("stale_hits")
        stats.incr("misses")
        assert stats.hit_ratio == 0.75

    def test_snapshot_excludes_lock(self):
        stats = CacheStats()
        stats.incr("swept", 3)
        snapshot = stats.snapshot()
        assert snapshot["swept"] == 3
        assert "_lock" not in snapshot

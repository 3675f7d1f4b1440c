"""Tests for the namespaced result cache.

Tests cover:
    - Basic get/set/has behavior (TestBasicOperations)
    - LRU eviction (TestEviction)
    - Sliding TTL (TestExpiry)
    - Namespace validation (TestNamespaces)
    - Invalidation and clearing (TestInvalidation)
    - Statistics and memory estimates (TestStats)
    - Disabled cache behavior (TestDisabledCache)
    - Concurrent access (TestThreadSafety)
"""

import threading

import pytest

from devgate.cache import CacheManager, CacheStats
from devgate.cache.manager import ENTRY_OVERHEAD_BYTES, UNSERIALIZABLE_ENTRY_BYTES
from devgate.config import CacheNamespaceConfig, CacheSettings
from devgate.errors import CacheError, UnknownNamespaceError


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_cache(
    clock: FakeClock | None = None,
    enabled: bool = True,
    **namespaces: tuple[int, int],
) -> CacheManager:
    """Build a cache whose namespaces are given as name=(max_entries, ttl_ms)."""
    if not namespaces:
        namespaces = {"test": (2, 1000)}
    settings = CacheSettings(
        enabled=enabled,
        namespaces={
            name: CacheNamespaceConfig(max_entries=size, ttl_ms=ttl)
            for name, (size, ttl) in namespaces.items()
        },
    )
    return CacheManager(settings, clock=clock or FakeClock())


# =============================================================================
# TestBasicOperations
# =============================================================================


class TestBasicOperations:
    """Tests for get, set and has."""

    def test_set_then_get(self) -> None:
        """Verify a stored value is returned."""
        cache = make_cache()
        cache.set("test", "a", {"type": "go"})

        assert cache.get("test", "a") == {"type": "go"}

    def test_get_missing_returns_default(self) -> None:
        """Verify a missing key returns None or the given default."""
        cache = make_cache()

        assert cache.get("test", "missing") is None
        assert cache.get("test", "missing", default="fallback") == "fallback"

    def test_stored_none_distinguishable_with_sentinel(self) -> None:
        """Verify None can be stored and told apart from a miss."""
        cache = make_cache()
        sentinel = object()
        cache.set("test", "a", None)

        assert cache.get("test", "a", default=sentinel) is None
        assert cache.get("test", "b", default=sentinel) is sentinel

    def test_set_replaces_value(self) -> None:
        """Verify setting an existing key replaces its value."""
        cache = make_cache()
        cache.set("test", "a", 1)
        cache.set("test", "a", 2)

        assert cache.get("test", "a") == 2
        assert cache.get_stats("test").size == 1

    def test_has_does_not_count(self) -> None:
        """Verify has() leaves hit and miss counters alone."""
        cache = make_cache()
        cache.set("test", "a", 1)

        assert cache.has("test", "a") is True
        assert cache.has("test", "b") is False

        stats = cache.get_stats("test")
        assert stats.hits == 0
        assert stats.misses == 0

    def test_namespaces_are_isolated(self) -> None:
        """Verify the same key in different namespaces holds different values."""
        cache = make_cache(first=(5, 1000), second=(5, 1000))
        cache.set("first", "k", "one")
        cache.set("second", "k", "two")

        assert cache.get("first", "k") == "one"
        assert cache.get("second", "k") == "two"


# =============================================================================
# TestEviction
# =============================================================================


class TestEviction:
    """Tests for least-recently-used eviction."""

    def test_oldest_entry_evicted_at_capacity(self) -> None:
        """Verify inserting into a full namespace evicts the oldest entry."""
        cache = make_cache()
        cache.set("test", "a", 1)
        cache.set("test", "b", 2)
        cache.set("test", "c", 3)

        assert cache.get("test", "a") is None
        assert cache.get("test", "b") == 2
        assert cache.get("test", "c") == 3

    def test_get_marks_entry_recently_used(self) -> None:
        """Verify a hit protects an entry from the next eviction."""
        cache = make_cache()
        cache.set("test", "a", 1)
        cache.set("test", "b", 2)
        cache.get("test", "a")
        cache.set("test", "c", 3)

        assert cache.has("test", "a") is True
        assert cache.has("test", "b") is False
        assert cache.has("test", "c") is True

    def test_has_does_not_change_recency(self) -> None:
        """Verify has() does not protect an entry from eviction."""
        cache = make_cache()
        cache.set("test", "a", 1)
        cache.set("test", "b", 2)
        cache.has("test", "a")
        cache.set("test", "c", 3)

        assert cache.has("test", "a") is False
        assert cache.has("test", "b") is True

    def test_replacing_at_capacity_evicts_nothing(self) -> None:
        """Verify replacing an existing key in a full namespace keeps the others."""
        cache = make_cache()
        cache.set("test", "a", 1)
        cache.set("test", "b", 2)
        cache.set("test", "a", 10)

        assert cache.get("test", "a") == 10
        assert cache.get("test", "b") == 2

    def test_size_never_exceeds_capacity(self) -> None:
        """Verify size stays bounded after many inserts."""
        cache = make_cache(test=(3, 1000))
        for i in range(20):
            cache.set("test", f"k{i}", i)

        assert cache.get_stats("test").size == 3


# =============================================================================
# TestExpiry
# =============================================================================


class TestExpiry:
    """Tests for sliding time-to-live."""

    def test_entry_expires_after_ttl(self) -> None:
        """Verify an untouched entry is gone once its TTL elapses."""
        clock = FakeClock()
        cache = make_cache(clock)
        cache.set("test", "a", 1)

        clock.advance(1.0)

        assert cache.get("test", "a") is None
        assert cache.get_stats("test").misses == 1
        assert cache.get_stats("test").size == 0

    def test_entry_live_just_before_ttl(self) -> None:
        """Verify an entry is still served just before its TTL."""
        clock = FakeClock()
        cache = make_cache(clock)
        cache.set("test", "a", 1)

        clock.advance(0.999)

        assert cache.get("test", "a") == 1

    def test_hit_refreshes_ttl(self) -> None:
        """Verify reading an entry restarts its TTL."""
        clock = FakeClock()
        cache = make_cache(clock)
        cache.set("test", "a", 1)

        for _ in range(5):
            clock.advance(0.6)
            assert cache.get("test", "a") == 1

    def test_has_does_not_refresh_ttl(self) -> None:
        """Verify has() does not extend an entry's life."""
        clock = FakeClock()
        cache = make_cache(clock)
        cache.set("test", "a", 1)

        clock.advance(0.6)
        assert cache.has("test", "a") is True
        clock.advance(0.6)

        assert cache.has("test", "a") is False

    def test_set_restarts_ttl(self) -> None:
        """Verify re-setting a key restarts its TTL."""
        clock = FakeClock()
        cache = make_cache(clock)
        cache.set("test", "a", 1)
        clock.advance(0.8)
        cache.set("test", "a", 2)
        clock.advance(0.8)

        assert cache.get("test", "a") == 2


# =============================================================================
# TestNamespaces
# =============================================================================


class TestNamespaces:
    """Tests for namespace validation."""

    @pytest.mark.parametrize(
        "operation",
        [
            lambda c: c.get("nope", "k"),
            lambda c: c.set("nope", "k", 1),
            lambda c: c.has("nope", "k"),
            lambda c: c.invalidate("nope"),
            lambda c: c.clear("nope"),
            lambda c: c.get_stats("nope"),
        ],
    )
    def test_unknown_namespace_raises(self, operation) -> None:
        """Verify every operation rejects an unconfigured namespace."""
        cache = make_cache()

        with pytest.raises(UnknownNamespaceError) as exc_info:
            operation(cache)

        assert exc_info.value.namespace == "nope"
        assert "test" in str(exc_info.value)

    def test_unknown_namespace_error_hierarchy(self) -> None:
        """Verify the error is both a CacheError and a KeyError."""
        error = UnknownNamespaceError("nope", ["a"])

        assert isinstance(error, CacheError)
        assert isinstance(error, KeyError)

    def test_default_namespaces(self) -> None:
        """Verify the built-in namespace table."""
        cache = CacheManager()

        assert cache.namespaces == [
            "command_availability",
            "file_lists",
            "git_operations",
            "module_metadata",
            "project_detection",
            "test_results",
        ]
        assert cache.get_stats("file_lists").max_size == 200
        assert cache.settings.namespaces["command_availability"].ttl_ms == 3_600_000


# =============================================================================
# TestInvalidation
# =============================================================================


class TestInvalidation:
    """Tests for invalidate, clear and clear_all."""

    def test_invalidate_single_key(self) -> None:
        """Verify invalidating a key removes only that key."""
        cache = make_cache()
        cache.set("test", "a", 1)
        cache.set("test", "b", 2)

        cache.invalidate("test", "a")

        assert cache.has("test", "a") is False
        assert cache.has("test", "b") is True

    def test_invalidate_missing_key_is_noop(self) -> None:
        """Verify invalidating an absent key does nothing."""
        cache = make_cache()
        cache.invalidate("test", "missing")

        assert cache.get_stats("test").size == 0

    def test_invalidate_whole_namespace(self) -> None:
        """Verify invalidate without a key empties the namespace."""
        cache = make_cache(first=(5, 1000), second=(5, 1000))
        cache.set("first", "a", 1)
        cache.set("second", "a", 1)

        cache.invalidate("first")

        assert cache.get_stats("first").size == 0
        assert cache.get_stats("second").size == 1

    def test_clear_all_empties_everything_keeps_counters(self) -> None:
        """Verify clear_all drops entries in every namespace but keeps stats."""
        cache = make_cache(first=(5, 1000), second=(5, 1000))
        cache.set("first", "a", 1)
        cache.set("second", "b", 2)
        cache.get("first", "a")

        cache.clear_all()

        assert all(stats.size == 0 for stats in cache.get_all_stats())
        assert cache.get_stats("first").hits == 1
        assert cache.total_memory_usage_mb() == 0


# =============================================================================
# TestStats
# =============================================================================


class TestStats:
    """Tests for statistics and memory estimates."""

    def test_hits_misses_and_rate(self) -> None:
        """Verify hit and miss counters and the derived hit rate."""
        cache = make_cache()
        cache.set("test", "a", 1)
        cache.get("test", "a")
        cache.get("test", "a")
        cache.get("test", "b")

        stats = cache.get_stats("test")

        assert isinstance(stats, CacheStats)
        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.hit_rate == pytest.approx(2 / 3)
        assert stats.size == 1
        assert stats.max_size == 2

    def test_hit_rate_zero_without_lookups(self) -> None:
        """Verify the hit rate is 0.0 before any lookup."""
        cache = make_cache()

        assert cache.get_stats("test").hit_rate == 0.0

    def test_memory_estimate_empty(self) -> None:
        """Verify an empty namespace estimates zero bytes."""
        cache = make_cache()

        assert cache.get_stats("test").estimated_memory_bytes == 0

    def test_memory_estimate_serializable(self) -> None:
        """Verify the estimate uses key, serialized value and overhead."""
        cache = make_cache()
        cache.set("test", "key", {"a": 1})

        expected = len("key") + len('{"a": 1}') + ENTRY_OVERHEAD_BYTES
        assert cache.get_stats("test").estimated_memory_bytes == expected

    def test_memory_estimate_unserializable(self) -> None:
        """Verify values that cannot be serialized count a fixed size."""
        cache = make_cache()
        cache.set("test", "a", object())

        stats = cache.get_stats("test")
        assert stats.estimated_memory_bytes == UNSERIALIZABLE_ENTRY_BYTES

    def test_memory_estimate_non_string_key(self) -> None:
        """Verify stats work for keys that are not strings."""
        cache = make_cache()
        cache.set("test", 42, [1, 2])

        expected = len("42") + len("[1, 2]") + ENTRY_OVERHEAD_BYTES
        assert cache.get_stats("test").estimated_memory_bytes == expected

    def test_memory_estimate_extrapolates_from_sample(self) -> None:
        """Verify the estimate scales the sample average to every entry."""
        cache = make_cache(big=(100, 10_000))
        for i in range(50):
            cache.set("big", f"k{i:02d}", "x" * 10)

        per_entry = len("k00") + len('"xxxxxxxxxx"') + ENTRY_OVERHEAD_BYTES
        assert cache.get_stats("big").estimated_memory_bytes == 50 * per_entry

    def test_total_memory_sums_namespaces(self) -> None:
        """Verify the total is the sum of namespace estimates in MB."""
        cache = make_cache(first=(5, 1000), second=(5, 1000))
        cache.set("first", "a", "value")
        cache.set("second", "b", [1, 2, 3])

        expected = sum(s.memory_estimate_mb for s in cache.get_all_stats())
        assert cache.total_memory_usage_mb() == pytest.approx(expected)
        assert cache.total_memory_usage_mb() > 0

    def test_stats_to_dict(self) -> None:
        """Verify the serialized stats carry every field."""
        cache = make_cache()
        data = cache.get_stats("test").to_dict()

        assert data["namespace"] == "test"
        assert set(data) >= {"hits", "misses", "hit_rate", "size", "max_size"}


# =============================================================================
# TestDisabledCache
# =============================================================================


class TestDisabledCache:
    """Tests for a cache switched off in settings."""

    def test_disabled_cache_stores_nothing(self) -> None:
        """Verify set is a no-op and get returns the default."""
        cache = make_cache(enabled=False)
        cache.set("test", "a", 1)

        assert cache.enabled is False
        assert cache.get("test", "a") is None
        assert cache.get("test", "a", default=0) == 0
        assert cache.has("test", "a") is False

    def test_disabled_cache_counts_nothing(self) -> None:
        """Verify lookups on a disabled cache are not counted."""
        cache = make_cache(enabled=False)
        cache.get("test", "a")

        stats = cache.get_stats("test")
        assert stats.hits == 0
        assert stats.misses == 0

    def test_disabled_cache_still_validates_namespaces(self) -> None:
        """Verify unknown namespaces raise even when disabled."""
        cache = make_cache(enabled=False)

        with pytest.raises(UnknownNamespaceError):
            cache.get("nope", "a")


# =============================================================================
# TestThreadSafety
# =============================================================================


class TestThreadSafety:
    """Tests for concurrent access from multiple threads."""

    def test_concurrent_sets_and_gets(self) -> None:
        """Verify concurrent writers keep the namespace within capacity."""
        cache = make_cache(test=(50, 60_000))
        errors: list[Exception] = []

        def worker(offset: int) -> None:
            try:
                for i in range(200):
                    key = f"k{(offset + i) % 80}"
                    cache.set("test", key, i)
                    cache.get("test", key)
                    cache.has("test", key)
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        stats = cache.get_stats("test")
        assert errors == []
        assert stats.size <= 50
        assert stats.hits + stats.misses == 8 * 200

"""Unit tests for the bounded TTL cache"""

import pytest

from gravatar_client.utils.ttl_cache import TTLCache


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return TTLCache(ttl_seconds=60.0, max_size=4, clock=clock, name="test")


class TestGetSet:
    """Tests for basic get/set behavior."""

    def test_miss_on_empty(self, cache):
        """Test missing key returns None and counts a miss."""
        assert cache.get("absent") is None
        assert cache.misses == 1
        assert cache.hits == 0

    def test_hit_updates_access_bookkeeping(self, cache, clock):
        """Test a hit increments access count and refreshes last access."""
        cache.set("k", "v")
        clock.advance(5)

        assert cache.get("k") == "v"

        entry = dict(cache.items())["k"]
        assert entry.access_count == 2
        assert entry.last_access_at == clock.now
        assert cache.hits == 1

    def test_entry_expires_at_ttl(self, cache, clock):
        """Test entry is removed lazily once its TTL has elapsed."""
        cache.set("k", "v")
        clock.advance(60)

        assert cache.get("k") is None
        assert "k" not in cache
        assert len(cache) == 0

    def test_per_entry_ttl_override(self, cache, clock):
        """Test explicit ttl_seconds overrides the default TTL."""
        cache.set("short", "v", ttl_seconds=1)
        cache.set("long", "v")
        clock.advance(2)

        assert cache.get("short") is None
        assert cache.get("long") == "v"

    def test_overwrite_keeps_size(self, cache):
        """Test overwriting an existing key does not grow the cache."""
        cache.set("k", 1)
        cache.set("k", 2)
        assert len(cache) == 1
        assert cache.get("k") == 2

    def test_delete_and_clear(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.delete("a") is True
        assert cache.delete("a") is False

        cache.clear()
        assert len(cache) == 0

    def test_invalid_max_size(self):
        """Test max_size below 1 is rejected."""
        with pytest.raises(ValueError):
            TTLCache(ttl_seconds=1.0, max_size=0)


class TestEviction:
    """Tests for bulk eviction when the cache is full."""

    def test_full_insert_evicts_least_recently_accessed_half(self, cache, clock):
        """Test inserting into a full cache drops the oldest half."""
        for key in ("a", "b", "c", "d"):
            cache.set(key, key)
            clock.advance(1)

        # Touch "a" so it becomes the most recently accessed
        cache.get("a")
        clock.advance(1)

        cache.set("e", "e")

        assert len(cache) == 3
        assert "a" in cache
        assert "b" not in cache
        assert "c" not in cache
        assert "d" in cache
        assert "e" in cache

    def test_size_never_exceeds_max(self, cache, clock):
        """Test size stays bounded across many inserts."""
        for i in range(50):
            cache.set(f"k{i}", i)
            clock.advance(0.1)
            assert len(cache) <= cache.max_size

    def test_evict_single_slot_cache(self, clock):
        """Test a max_size of 1 still evicts one entry."""
        cache = TTLCache(ttl_seconds=10.0, max_size=1, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        assert "a" not in cache
        assert cache.get("b") == 2

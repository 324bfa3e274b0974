"""Bounded in-memory TTL cache.

Entries expire lazily on read. When an insert finds the cache full, the
least recently accessed half of the entries is evicted in one pass, which
keeps eviction cost amortized over many inserts.
"""

import time
from dataclasses import dataclass
from typing import Callable, Dict, Generic, Iterator, Optional, Tuple, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """Cached value with expiry and access bookkeeping"""

    value: T
    expires_at: float
    created_at: float
    access_count: int = 0
    last_access_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class TTLCache(Generic[T]):
    """In-memory cache with per-entry TTL and bulk LRU-ish eviction.

    Not thread-safe: intended to be owned by a single object running on one
    event loop.
    """

    def __init__(
        self,
        ttl_seconds: float,
        max_size: int,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        """Initialize cache.

        Args:
            ttl_seconds: Default time-to-live for new entries
            max_size: Entry count that triggers eviction on insert
            clock: Time source in seconds (injectable for tests)
            name: Label used in log events
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.name = name
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[T]:
        """Return the live value for ``key`` or None.

        Expired entries are removed. A hit increments the entry's access
        count and refreshes its last access time.
        """
        entry = self._entries.get(key)
        now = self._clock()
        if entry is None:
            self.misses += 1
            return None
        if entry.is_expired(now):
            del self._entries[key]
            self.misses += 1
            return None

        self.hits += 1
        entry.access_count += 1
        entry.last_access_at = now
        return entry.value

    def set(self, key: str, value: T, ttl_seconds: Optional[float] = None) -> None:
        """Store ``value`` under ``key``, evicting first if the cache is full."""
        now = self._clock()
        if key not in self._entries and len(self._entries) >= self.max_size:
            self.evict()

        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = CacheEntry(
            value=value,
            expires_at=now + ttl,
            created_at=now,
            access_count=1,
            last_access_at=now,
        )

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def evict(self) -> int:
        """Remove the least recently accessed half of the entries.

        Returns:
            Number of entries removed
        """
        count = max(1, self.max_size // 2)
        oldest = sorted(self._entries.items(), key=lambda kv: kv[1].last_access_at)
        for key, _ in oldest[:count]:
            del self._entries[key]

        removed = min(count, len(oldest))
        logger.debug("cache_evicted", cache=self.name, removed=removed)
        return removed

    def clear(self) -> None:
        self._entries.clear()

    def items(self) -> Iterator[Tuple[str, CacheEntry[T]]]:
        """Iterate over a snapshot of (key, entry) pairs, expired included."""
        return iter(list(self._entries.items()))

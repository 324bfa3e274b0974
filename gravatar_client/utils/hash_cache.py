"""Memoized fingerprint computation.

Wraps ``fingerprint`` with a bounded TTL cache keyed by the normalized
email, and shares in-flight computations between concurrent callers.
"""

import asyncio
import time
from typing import Awaitable, Callable, Dict, Optional

import structlog

from gravatar_client.models.stats import HashCacheStats
from gravatar_client.utils.hash import digest_normalized, fingerprint, normalize_email
from gravatar_client.utils.ttl_cache import TTLCache

logger = structlog.get_logger()

DEFAULT_HASH_CACHE_TTL_SECONDS = 300.0
DEFAULT_HASH_CACHE_MAX_SIZE = 1000

Hasher = Callable[[str], Awaitable[str]]


async def _digest(normalized: str) -> str:
    return digest_normalized(normalized)


class HashCache:
    """Per-owner fingerprint cache.

    ``clear()`` bumps a generation counter so that a computation started
    before the clear cannot repopulate the cache with its result.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_HASH_CACHE_TTL_SECONDS,
        max_size: int = DEFAULT_HASH_CACHE_MAX_SIZE,
        hasher: Optional[Hasher] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize hash cache.

        Args:
            ttl_seconds: Lifetime of a cached fingerprint
            max_size: Entry count that triggers bulk eviction
            hasher: Async callable mapping a normalized email to its
                fingerprint (defaults to SHA-256)
            clock: Time source in seconds
        """
        self._cache: TTLCache[str] = TTLCache(
            ttl_seconds=ttl_seconds, max_size=max_size, clock=clock, name="hash"
        )
        self._hasher = hasher or _digest
        self._in_flight: Dict[str, "asyncio.Future[str]"] = {}
        self._generation = 0

    @property
    def ttl_seconds(self) -> float:
        return self._cache.ttl_seconds

    @property
    def max_size(self) -> int:
        return self._cache.max_size

    def __len__(self) -> int:
        return len(self._cache)

    async def get(self, raw: str, use_cache: bool = True) -> str:
        """Return the fingerprint of ``raw``, computing it at most once.

        Args:
            raw: Email address
            use_cache: False bypasses the cache and always recomputes

        Raises:
            InvalidIdentifierError: If the email is invalid (before any await)
            HashError: If the digest could not be computed
        """
        if not use_cache:
            return fingerprint(raw)

        normalized = normalize_email(raw)

        cached = self._cache.get(normalized)
        if cached is not None:
            return cached

        task = self._in_flight.get(normalized)
        if task is None:
            task = asyncio.ensure_future(self._hasher(normalized))
            self._in_flight[normalized] = task
            generation = self._generation
            task.add_done_callback(
                lambda done: self._on_done(normalized, generation, done)
            )

        return await asyncio.shield(task)

    def _on_done(self, key: str, generation: int, task: "asyncio.Future[str]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if task.cancelled() or task.exception() is not None:
            return
        if generation != self._generation:
            logger.debug("hash_cache_stale_result_dropped", generation=generation)
            return
        self._cache.set(key, task.result())

    def clear(self) -> None:
        """Empty the cache and invalidate in-flight computations."""
        self._generation += 1
        self._in_flight.clear()
        self._cache.clear()

    def stats(self) -> HashCacheStats:
        return HashCacheStats(
            size=len(self._cache),
            max_size=self._cache.max_size,
            ttl_seconds=self._cache.ttl_seconds,
            hits=self._cache.hits,
            misses=self._cache.misses,
        )

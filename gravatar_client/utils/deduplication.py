"""Request deduplication for concurrent identical calls.

Collapses concurrent calls that share a key into one underlying execution
and optionally remembers the result for a short window.

Usage:
    dedup = create_request_deduplicator(ttl_seconds=5.0)
    profile = await dedup.deduplicate(cache_key, lambda: fetch(url))

Each deduplicator is independent: there is no module-level state, so
unrelated sessions (e.g. concurrent server-side renders) never observe each
other's in-flight or cached results.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_DEDUP_TTL_SECONDS = 5.0


@dataclass
class CachedResult(Generic[T]):
    """Result remembered after a successful execution"""

    result: T
    timestamp: float
    generation: int


class RequestDeduplicator:
    """Shares one in-flight execution per key among concurrent callers.

    All callers joining an execution receive the identical value or the
    identical exception. A caller being cancelled does not cancel the shared
    execution for the others.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_DEDUP_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize deduplicator.

        Args:
            ttl_seconds: How long successful results are reused. 0 disables
                result caching; only in-flight sharing remains.
            clock: Time source in seconds (injectable for tests)
        """
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be >= 0")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._generation = 0
        self._in_flight: Dict[str, "asyncio.Future[Any]"] = {}
        self._cache: Dict[str, CachedResult[Any]] = {}

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    @property
    def cached_count(self) -> int:
        return len(self._cache)

    async def deduplicate(self, key: str, producer: Callable[[], Awaitable[T]]) -> T:
        """Run ``producer`` unless a cached or in-flight result exists for ``key``.

        Args:
            key: Deduplication key
            producer: Zero-argument callable returning an awaitable

        Returns:
            The (possibly shared) result of ``producer``

        Raises:
            Exception: Whatever ``producer`` raised, propagated to every
                caller sharing the execution
        """
        cached = self._cache.get(key)
        if cached is not None:
            if (
                self.ttl_seconds > 0
                and cached.generation == self._generation
                and self._clock() - cached.timestamp < self.ttl_seconds
            ):
                logger.debug("dedup_cache_hit", key=key[:16])
                return cached.result  # type: ignore[no-any-return]
            del self._cache[key]

        task = self._in_flight.get(key)
        if task is not None:
            logger.debug("dedup_joined_in_flight", key=key[:16])
        else:
            task = asyncio.ensure_future(producer())
            self._in_flight[key] = task
            generation = self._generation
            task.add_done_callback(
                lambda done: self._on_done(key, generation, done)
            )

        return await asyncio.shield(task)  # type: ignore[no-any-return]

    def _on_done(self, key: str, generation: int, task: "asyncio.Future[Any]") -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

        if task.cancelled():
            return
        if task.exception() is not None:
            return

        if self.ttl_seconds > 0 and generation == self._generation:
            self._cache[key] = CachedResult(
                result=task.result(),
                timestamp=self._clock(),
                generation=generation,
            )

    def clear(self) -> None:
        """Drop cached and in-flight bookkeeping.

        Executions still running keep delivering their outcome to callers
        already awaiting them, but their results are not cached.
        """
        self._generation += 1
        self._in_flight.clear()
        self._cache.clear()


def create_request_deduplicator(
    ttl_seconds: float = DEFAULT_DEDUP_TTL_SECONDS,
) -> RequestDeduplicator:
    """Create a new, independent deduplicator."""
    return RequestDeduplicator(ttl_seconds=ttl_seconds)

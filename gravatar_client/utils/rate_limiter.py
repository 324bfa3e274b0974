import asyncio
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Deque, Mapping, Optional

import structlog

from gravatar_client.models.stats import RateLimitInfo

logger = structlog.get_logger()

RATE_LIMIT_LIMIT_HEADER = "X-RateLimit-Limit"
RATE_LIMIT_REMAINING_HEADER = "X-RateLimit-Remaining"
RATE_LIMIT_RESET_HEADER = "X-RateLimit-Reset"


def parse_rate_limit_headers(headers: Mapping[str, str]) -> Optional[RateLimitInfo]:
    """Parse X-RateLimit-* headers.

    Returns None unless all three headers are present and integral.
    """
    limit = headers.get(RATE_LIMIT_LIMIT_HEADER)
    remaining = headers.get(RATE_LIMIT_REMAINING_HEADER)
    reset = headers.get(RATE_LIMIT_RESET_HEADER)

    if not (limit and remaining and reset):
        return None

    try:
        return RateLimitInfo(
            limit=int(limit), remaining=int(remaining), reset=int(reset)
        )
    except ValueError:
        logger.warning(
            "rate_limit_headers_malformed",
            limit=limit,
            remaining=remaining,
            reset=reset,
        )
        return None


class ConcurrencyLimiter:
    """Bounds simultaneous requests of one client instance.

    The bound can change while requests hold slots. ``resize`` only affects
    admission: in-flight requests keep counting against the new bound, so
    the number of holders never exceeds the current ``max_concurrent``.
    """

    def __init__(self, max_concurrent: int = 10):
        _check_bound(max_concurrent)
        self.max_concurrent = max_concurrent
        self._active = 0
        self._waiters: Deque["asyncio.Future[None]"] = deque()

    @property
    def active(self) -> int:
        """Requests currently holding a slot"""
        return self._active

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    def resize(self, max_concurrent: int) -> None:
        """Change the bound, admitting waiters if it grew"""
        _check_bound(max_concurrent)
        self.max_concurrent = max_concurrent
        self._wake()

    def _wake(self) -> None:
        free = self.max_concurrent - self._active
        for waiter in self._waiters:
            if free <= 0:
                break
            if not waiter.done():
                waiter.set_result(None)
                free -= 1

    async def _acquire(self) -> None:
        if self._active >= self.max_concurrent:
            logger.debug(
                "concurrency_limit_reached",
                active=self._active,
                max_concurrent=self.max_concurrent,
            )

        loop = asyncio.get_running_loop()
        # Woken waiters re-check: another task may have taken the slot first
        while self._active >= self.max_concurrent:
            waiter: "asyncio.Future[None]" = loop.create_future()
            self._waiters.append(waiter)
            try:
                await waiter
            except asyncio.CancelledError:
                if waiter.done() and not waiter.cancelled():
                    # Hand the unused wake-up to the next waiter
                    self._wake()
                raise
            finally:
                self._waiters.remove(waiter)
        self._active += 1

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one slot for the duration of the block, waiting if necessary"""
        await self._acquire()
        try:
            yield
        finally:
            self._active -= 1
            self._wake()


def _check_bound(max_concurrent: int) -> None:
    if max_concurrent < 1:
        raise ValueError("max_concurrent must be at least 1")

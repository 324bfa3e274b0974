"""Retry policy with exponential backoff, jitter and rate-limit awareness.

Each logical request moves through an explicit state machine:

    ATTEMPTING(n) -> SUCCEEDED
                  -> RETRYING(n+1) -> ATTEMPTING(n+1)
                  -> FAILED

``BackoffPolicy`` holds the pure decision functions (should we retry, how
long to wait) so they can be unit-tested without timers.
``BackoffPolicy.retrying()`` plugs them into ``tenacity.AsyncRetrying`` to
drive real requests.

Features:
- Exponential backoff: delay = base * factor^(attempt-1), capped
- Up to 10% additive jitter to spread retries across clients
- Waits for the server-reported reset time on 429 responses
- Built-in structured logging for observability
"""

import asyncio
import random
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import structlog
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt

from gravatar_client.models.config import RateLimitConfig, RetryConfig
from gravatar_client.models.stats import RateLimitInfo
from gravatar_client.utils.exceptions import (
    ApiError,
    GravatarError,
    NetworkError,
    RateLimitedError,
)

logger = structlog.get_logger(__name__)

JITTER_FRACTION = 0.1


class RetryPhase(Enum):
    """Lifecycle phase of one logical request"""

    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class RetryState:
    """Snapshot of a logical request's retry progress"""

    attempt: int = 1
    phase: RetryPhase = RetryPhase.ATTEMPTING
    last_error: Optional[Exception] = None
    delay_seconds: float = 0.0

    @property
    def is_terminal(self) -> bool:
        return self.phase in (RetryPhase.SUCCEEDED, RetryPhase.FAILED)


class BackoffPolicy:
    """Decides whether and when a failed request is retried."""

    def __init__(
        self,
        retry: RetryConfig,
        rate_limit: RateLimitConfig,
        rng: Callable[[], float] = random.random,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize policy.

        Args:
            retry: Attempt limit and backoff parameters
            rate_limit: Reset-aware waiting parameters
            rng: Source of uniform [0, 1) values for jitter
            clock: Wall clock in Unix seconds, compared with reset timestamps
        """
        self.retry = retry
        self.rate_limit = rate_limit
        self._rng = rng
        self._clock = clock

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        """Whether ``error`` on attempt number ``attempt`` (1-based) is retried.

        Authentication, validation, not-found and malformed-response errors
        are never retried; rate limits only when configured.
        """
        if attempt >= self.retry.max_attempts:
            return False
        if isinstance(error, RateLimitedError):
            return self.retry.retry_on_rate_limit
        return isinstance(error, (NetworkError, ApiError))

    def backoff_delay(self, attempt: int) -> float:
        """Exponential delay after attempt number ``attempt`` with jitter.

        delay = min(base * factor^(attempt-1) + jitter, max_delay), where
        jitter is up to 10% of the exponential term.
        """
        exponential = self.retry.base_delay_seconds * (
            self.retry.backoff_factor ** (attempt - 1)
        )
        jitter = self._rng() * JITTER_FRACTION * exponential
        return min(exponential + jitter, self.retry.max_delay_seconds)

    def rate_limit_delay(self, info: RateLimitInfo) -> float:
        """Seconds until the rate limit window resets, plus the safety buffer."""
        until_reset = info.reset - self._clock()
        buffer = until_reset * self.rate_limit.safety_buffer
        return max(0.0, until_reset + buffer)

    def delay_for(self, error: BaseException, attempt: int) -> float:
        """Delay before the attempt following a failed ``attempt``."""
        delay = self.backoff_delay(attempt)
        if (
            isinstance(error, RateLimitedError)
            and error.rate_limit is not None
            and self.rate_limit.auto_handle
        ):
            delay = max(delay, self.rate_limit_delay(error.rate_limit))
        return delay

    def transition(self, state: RetryState, error: Exception) -> RetryState:
        """Next state after ``error`` ended the attempt in ``state``."""
        if self.should_retry(error, state.attempt):
            return RetryState(
                attempt=state.attempt + 1,
                phase=RetryPhase.RETRYING,
                last_error=error,
                delay_seconds=self.delay_for(error, state.attempt),
            )
        return replace(state, phase=RetryPhase.FAILED, last_error=error, delay_seconds=0.0)

    def retrying(
        self,
        on_retry: Optional[Callable[[RetryState], None]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> AsyncRetrying:
        """Build a tenacity controller driven by this policy.

        Every failed attempt goes through ``transition``; tenacity retries
        while the resulting state is not terminal and sleeps for its delay.
        The last error is re-raised unchanged once the policy stops retrying.

        Args:
            on_retry: Called with the RETRYING state before each backoff sleep
            sleep: Awaitable sleep function
        """
        latest: Optional[RetryState] = None

        def _retry(retry_state: RetryCallState) -> bool:
            nonlocal latest
            outcome = retry_state.outcome
            if outcome is None or not outcome.failed:
                return False
            latest = self.transition(
                RetryState(attempt=retry_state.attempt_number), outcome.exception()
            )
            return not latest.is_terminal

        def _wait(retry_state: RetryCallState) -> float:
            assert latest is not None
            return latest.delay_seconds

        def _before_sleep(retry_state: RetryCallState) -> None:
            assert latest is not None
            error = latest.last_error

            logger.warning(
                "retry_attempt",
                attempt=retry_state.attempt_number,
                max_attempts=self.retry.max_attempts,
                error_type=type(error).__name__,
                error_code=error.code.value if isinstance(error, GravatarError) else None,
                delay_seconds=round(latest.delay_seconds, 3),
            )

            if on_retry is not None:
                on_retry(latest)

        return AsyncRetrying(
            stop=stop_after_attempt(self.retry.max_attempts),
            retry=_retry,
            wait=_wait,
            before_sleep=_before_sleep,
            sleep=sleep,
            reraise=True,
        )

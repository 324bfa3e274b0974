"""Unit tests for the retry policy and its tenacity controller"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from gravatar_client.models.config import RateLimitConfig, RetryConfig
from gravatar_client.models.stats import RateLimitInfo
from gravatar_client.utils.exceptions import (
    ApiError,
    AuthError,
    InvalidIdentifierError,
    InvalidResponseError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
)
from gravatar_client.utils.retry import BackoffPolicy, RetryPhase, RetryState


@pytest.fixture
def retry_config():
    """Create test retry configuration."""
    return RetryConfig(
        max_attempts=3,
        base_delay_seconds=1.0,
        max_delay_seconds=10.0,
        backoff_factor=2.0,
    )


@pytest.fixture
def policy(retry_config):
    """Policy with jitter disabled and a fixed wall clock."""
    return BackoffPolicy(
        retry_config, RateLimitConfig(), rng=lambda: 0.0, clock=lambda: 1000.0
    )


class TestShouldRetry:
    """Tests for retry classification."""

    @pytest.mark.parametrize(
        "error",
        [NetworkError("timeout"), ApiError("HTTP 500", status=500)],
    )
    def test_transient_errors_retried(self, policy, error):
        """Test network and generic API errors are retried."""
        assert policy.should_retry(error, attempt=1)

    @pytest.mark.parametrize(
        "error",
        [
            AuthError("unauthorized", status=401),
            NotFoundError("missing", status=404),
            InvalidIdentifierError("bad email"),
            InvalidResponseError("No data received"),
            ValueError("unexpected"),
        ],
    )
    def test_permanent_errors_not_retried(self, policy, error):
        """Test auth, not-found, validation and unknown errors fail at once."""
        assert not policy.should_retry(error, attempt=1)

    def test_rate_limit_follows_config(self, retry_config):
        """Test 429 retry is controlled by retry_on_rate_limit."""
        error = RateLimitedError("slow down", status=429)
        enabled = BackoffPolicy(retry_config, RateLimitConfig())
        disabled = BackoffPolicy(
            retry_config.model_copy(update={"retry_on_rate_limit": False}),
            RateLimitConfig(),
        )

        assert enabled.should_retry(error, attempt=1)
        assert not disabled.should_retry(error, attempt=1)

    def test_stops_at_max_attempts(self, policy):
        """Test no retry once the attempt ceiling is reached."""
        assert policy.should_retry(NetworkError("x"), attempt=2)
        assert not policy.should_retry(NetworkError("x"), attempt=3)


class TestDelays:
    """Tests for delay calculation."""

    def test_exponential_backoff(self, policy):
        """Test delays double per attempt without jitter."""
        assert policy.backoff_delay(1) == 1.0
        assert policy.backoff_delay(2) == 2.0
        assert policy.backoff_delay(3) == 4.0

    def test_backoff_capped_at_max_delay(self, policy):
        assert policy.backoff_delay(10) == 10.0

    def test_jitter_adds_at_most_ten_percent(self, retry_config):
        """Test full jitter adds 10% of the exponential term."""
        policy = BackoffPolicy(retry_config, RateLimitConfig(), rng=lambda: 0.999999)
        delay = policy.backoff_delay(2)
        assert 2.0 <= delay < 2.2

    def test_rate_limit_delay_includes_safety_buffer(self, policy):
        """Test reset-aware delay adds 10% of time-until-reset."""
        info = RateLimitInfo(limit=100, remaining=0, reset=1020)
        assert policy.rate_limit_delay(info) == pytest.approx(22.0)

    def test_rate_limit_delay_in_past_is_zero(self, policy):
        info = RateLimitInfo(limit=100, remaining=0, reset=900)
        assert policy.rate_limit_delay(info) == 0.0

    def test_delay_for_rate_limit_uses_longer_wait(self, policy):
        """Test a 429 with reset info waits until the window reopens."""
        error = RateLimitedError(
            "slow down",
            status=429,
            rate_limit=RateLimitInfo(limit=100, remaining=0, reset=1020),
        )
        assert policy.delay_for(error, attempt=1) == pytest.approx(22.0)

    def test_delay_for_rate_limit_without_auto_handle(self, retry_config):
        """Test auto_handle=False falls back to plain backoff."""
        policy = BackoffPolicy(
            retry_config,
            RateLimitConfig(auto_handle=False),
            rng=lambda: 0.0,
            clock=lambda: 1000.0,
        )
        error = RateLimitedError(
            "slow down",
            status=429,
            rate_limit=RateLimitInfo(limit=100, remaining=0, reset=1020),
        )
        assert policy.delay_for(error, attempt=1) == 1.0


class TestTransition:
    """Tests for the retry state machine."""

    def test_retryable_error_moves_to_retrying(self, policy):
        error = NetworkError("reset")
        state = policy.transition(RetryState(), error)

        assert state.phase is RetryPhase.RETRYING
        assert state.attempt == 2
        assert state.last_error is error
        assert state.delay_seconds == 1.0
        assert not state.is_terminal

    def test_permanent_error_moves_to_failed(self, policy):
        state = policy.transition(RetryState(), NotFoundError("missing"))

        assert state.phase is RetryPhase.FAILED
        assert state.attempt == 1
        assert state.is_terminal

    def test_exhausted_attempts_move_to_failed(self, policy):
        state = policy.transition(RetryState(attempt=3), NetworkError("x"))
        assert state.phase is RetryPhase.FAILED


class TestRetrying:
    """Tests for the tenacity controller built from the policy."""

    async def _run(self, policy, func, on_retry=None, sleep=None):
        sleep = sleep or AsyncMock()
        async for attempt in policy.retrying(on_retry=on_retry, sleep=sleep):
            with attempt:
                result = await func()
        return result

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, policy):
        """Test successful call runs once without sleeping."""
        func = AsyncMock(return_value="ok")
        sleep = AsyncMock()

        assert await self._run(policy, func, sleep=sleep) == "ok"
        assert func.call_count == 1
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, policy):
        """Test transient failures are retried with backoff sleeps."""
        func = AsyncMock(side_effect=[NetworkError("a"), ApiError("b"), "ok"])
        sleep = AsyncMock()
        on_retry = MagicMock()

        assert await self._run(policy, func, on_retry=on_retry, sleep=sleep) == "ok"
        assert func.call_count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]
        assert on_retry.call_count == 2
        assert on_retry.call_args_list[0].args[0].attempt == 2

    @pytest.mark.asyncio
    async def test_exhausted_reraises_last_error(self, policy):
        """Test the original error surfaces after max attempts."""
        func = AsyncMock(side_effect=NetworkError("down"))

        with pytest.raises(NetworkError, match="down"):
            await self._run(policy, func)

        assert func.call_count == 3

    @pytest.mark.asyncio
    async def test_permanent_error_not_retried(self, policy):
        func = AsyncMock(side_effect=AuthError("nope", status=401))

        with pytest.raises(AuthError):
            await self._run(policy, func)

        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_single_attempt_config(self):
        """Test max_attempts=1 disables retrying entirely."""
        policy = BackoffPolicy(RetryConfig(max_attempts=1), RateLimitConfig())
        func = AsyncMock(side_effect=NetworkError("down"))

        with pytest.raises(NetworkError):
            await self._run(policy, func)

        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_on_retry_state_matches_sleep(self, retry_config):
        """Test each reported RETRYING state carries the delay actually slept."""
        draws = []

        def rng():
            draws.append(0.5)
            return 0.5

        policy = BackoffPolicy(retry_config, RateLimitConfig(), rng=rng)
        func = AsyncMock(side_effect=[NetworkError("a"), NetworkError("b"), "ok"])
        sleep = AsyncMock()
        on_retry = MagicMock()

        await self._run(policy, func, on_retry=on_retry, sleep=sleep)

        states = [c.args[0] for c in on_retry.call_args_list]
        slept = [c.args[0] for c in sleep.call_args_list]
        assert slept == pytest.approx([1.05, 2.1])
        assert [s.delay_seconds for s in states] == slept
        assert all(s.phase is RetryPhase.RETRYING for s in states)
        assert [s.attempt for s in states] == [2, 3]
        assert str(states[1].last_error) == "b"
        assert len(draws) == 2

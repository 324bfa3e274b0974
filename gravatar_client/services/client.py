"""Advanced Gravatar API client.

Composes fingerprinting, URL building, request deduplication, the HTTP
engine and the retry policy into a stateful client:
- Response cache with TTL and bounded size
- Exponential backoff retry with jitter and rate-limit awareness
- Concurrent request bound per client instance
- Batch fetching with per-item results
- Request and cache statistics

Every client owns its caches, statistics and concurrency gate. Nothing is
shared between instances, so one client per tenant or per render keeps
their cached data isolated.

Usage:
    async with GravatarClient(api_key="...") as client:
        profile = await client.get_profile("user@example.com")
        results = await client.get_profiles(emails, BatchOptions(concurrency=5))
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Union

import structlog
from pydantic import ValidationError

from gravatar_client.models.config import BatchOptions, ClientConfig
from gravatar_client.models.profile import GravatarProfile, ProfileResult
from gravatar_client.models.stats import (
    CacheEntryInfo,
    ClientCacheStats,
    RateLimitInfo,
    RequestStats,
)
from gravatar_client.observability.context import inherit_or_start_trace
from gravatar_client.services.http import ApiResponse, HttpTransport
from gravatar_client.services.url_builder import build_profile_url
from gravatar_client.utils.deduplication import RequestDeduplicator
from gravatar_client.utils.exceptions import (
    ApiError,
    GravatarError,
    InvalidParameterError,
    InvalidResponseError,
)
from gravatar_client.utils.hash import calculate_config_hash
from gravatar_client.utils.hash_cache import HashCache
from gravatar_client.utils.rate_limiter import ConcurrencyLimiter
from gravatar_client.utils.retry import BackoffPolicy, RetryState
from gravatar_client.utils.ttl_cache import TTLCache

logger = structlog.get_logger()


def _merge_config(
    base: ClientConfig, overrides: Optional[Mapping[str, Any]]
) -> ClientConfig:
    """Apply caller overrides, reporting invalid values as InvalidParameterError."""
    try:
        return base.merged(overrides)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or None
        raise InvalidParameterError(
            f"Invalid configuration value for '{field}': {error['msg']}",
            field=field,
        ) from e


class GravatarClient:
    """Configurable Gravatar profile client.

    Attributes:
        transport: HTTP engine performing single requests
        hash_cache: Fingerprint cache owned by this client
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport: Optional[HttpTransport] = None,
        hash_cache: Optional[HashCache] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        **overrides: Any,
    ) -> None:
        """Initialize client.

        Args:
            config: Base configuration (defaults to ClientConfig())
            transport: HTTP engine; a new aiohttp-backed one by default
            hash_cache: Fingerprint cache; a new private one by default
            sleep: Awaitable sleep used for backoff and batch delays
            clock: Monotonic time source for the response cache
            **overrides: Config fields deep-merged onto ``config``
                (e.g. ``api_key="..."``, ``retry={"max_attempts": 5}``)
        """
        self._config = _merge_config(config or ClientConfig(), overrides)
        self.transport = transport or HttpTransport()
        self.hash_cache = hash_cache or HashCache()
        self._sleep = sleep

        self._cache: TTLCache[GravatarProfile] = TTLCache(
            ttl_seconds=self._config.cache.ttl_seconds,
            max_size=self._config.cache.max_size,
            clock=clock,
            name="profile",
        )
        # Result caching is the response cache's job; only share in-flight calls
        self._dedup = RequestDeduplicator(ttl_seconds=0)
        self._limiter = ConcurrencyLimiter(self._config.rate_limit.max_concurrent)
        self._stats = RequestStats()

        logger.info(
            "gravatar_client_initialized",
            base_url=self._config.base_url,
            authenticated=self._config.api_key is not None,
            cache_enabled=self._config.cache.enabled,
            max_attempts=self._config.retry.max_attempts,
        )

    async def __aenter__(self) -> "GravatarClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the HTTP session."""
        await self.transport.close()

    # ==================== Profiles ====================

    async def get_profile(
        self,
        email: str,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> GravatarProfile:
        """Fetch a Gravatar profile.

        Args:
            email: Email address
            overrides: Per-call config overrides, deep-merged onto the
                client config

        Returns:
            The profile, from cache when a live entry exists

        Raises:
            InvalidParameterError: If an override is invalid (before any I/O)
            InvalidIdentifierError: If the email is invalid (before any I/O)
            NotFoundError: If no profile exists
            AuthError: If the API key was rejected
            RateLimitedError: If rate limited after all retries
            NetworkError: On timeout or connection failure after all retries
            ApiError: On other API failures after all retries
            InvalidResponseError: If the response body is not a profile
        """
        config = _merge_config(self._config, overrides)
        fingerprint = await self.hash_cache.get(email)
        cache_key = f"{fingerprint}:{calculate_config_hash(config)}"

        if config.cache.enabled:
            cached = self._cache.get(cache_key)
            if cached is not None:
                self._stats.cache_hits += 1
                logger.debug("profile_cache_hit", fingerprint=fingerprint[:8])
                return cached
            self._stats.cache_misses += 1

        url = build_profile_url(fingerprint, config.base_url)
        return await self._dedup.deduplicate(
            cache_key, lambda: self._fetch_profile(url, config, cache_key)
        )

    async def get_profiles(
        self,
        emails: Sequence[str],
        options: Union[BatchOptions, Mapping[str, Any], None] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> List[ProfileResult]:
        """Fetch several profiles in windows of ``options.concurrency``.

        Failures are reported per item; one failing email does not abort
        the batch unless ``fail_fast`` is set.

        Args:
            emails: Email addresses
            options: Batch options (concurrency, fail_fast, batch delay)
            overrides: Per-call config overrides applied to every request

        Returns:
            One ProfileResult per email, in input order

        Raises:
            GravatarError: Only when ``fail_fast`` is set, the first failure
        """
        if options is None:
            opts = BatchOptions()
        elif isinstance(options, BatchOptions):
            opts = options
        else:
            opts = BatchOptions.model_validate(options)

        results: List[ProfileResult] = []
        with inherit_or_start_trace() as trace_id:
            logger.info(
                "profile_batch_started",
                trace_id=trace_id,
                count=len(emails),
                concurrency=opts.concurrency,
                fail_fast=opts.fail_fast,
            )

            for start in range(0, len(emails), opts.concurrency):
                window = emails[start : start + opts.concurrency]
                window_results = await asyncio.gather(
                    *(
                        self._fetch_result(email, overrides, opts.fail_fast)
                        for email in window
                    )
                )
                results.extend(window_results)

                if opts.batch_delay_seconds > 0 and start + opts.concurrency < len(
                    emails
                ):
                    await self._sleep(opts.batch_delay_seconds)

            failed = sum(1 for r in results if not r.ok)
            logger.info(
                "profile_batch_completed",
                trace_id=trace_id,
                succeeded=len(results) - failed,
                failed=failed,
            )

        return results

    async def _fetch_result(
        self,
        email: str,
        overrides: Optional[Mapping[str, Any]],
        fail_fast: bool,
    ) -> ProfileResult:
        try:
            profile = await self.get_profile(email, overrides)
        except GravatarError as e:
            if fail_fast:
                raise
            return ProfileResult(email=email, error=e)
        except Exception as e:
            error = ApiError(f"Failed to fetch profile for {email}: {e}")
            if fail_fast:
                raise error from e
            return ProfileResult(email=email, error=error)
        return ProfileResult(email=email, profile=profile)

    # ==================== Request Pipeline ====================

    async def _fetch_profile(
        self, url: str, config: ClientConfig, cache_key: str
    ) -> GravatarProfile:
        profile = await self._request_with_retry(url, config)
        if config.cache.enabled:
            self._cache.set(cache_key, profile, ttl_seconds=config.cache.ttl_seconds)
        return profile

    async def _request_with_retry(
        self, url: str, config: ClientConfig
    ) -> GravatarProfile:
        """Run attempts until success or the retry policy gives up."""
        policy = BackoffPolicy(config.retry, config.rate_limit)

        def on_retry(state: RetryState) -> None:
            self._stats.total_retries += 1

        try:
            async for attempt in policy.retrying(on_retry=on_retry, sleep=self._sleep):
                with attempt:
                    profile = await self._attempt(url, config)
        except GravatarError as e:
            self._stats.failed_requests += 1
            logger.warning(
                "profile_fetch_failed",
                error_code=e.code.value,
                status=e.status,
                error=str(e),
            )
            raise

        self._stats.successful_requests += 1
        return profile

    async def _attempt(self, url: str, config: ClientConfig) -> GravatarProfile:
        """One admitted HTTP attempt, decoded into a profile."""
        async with self._limiter.slot():
            self._stats.total_requests += 1
            started = time.perf_counter()
            try:
                response = await self.transport.request(url, config)
            except GravatarError as e:
                self._record_rate_limit(e.rate_limit)
                raise
            except Exception as e:
                raise ApiError(f"Request failed: {e}") from e
            finally:
                self._stats.total_response_time_seconds += (
                    time.perf_counter() - started
                )

        self._record_rate_limit(response.rate_limit)
        return self._parse_profile(response)

    @staticmethod
    def _parse_profile(response: ApiResponse) -> GravatarProfile:
        try:
            return GravatarProfile.model_validate(response.data)
        except ValidationError as e:
            raise InvalidResponseError(
                f"Invalid profile data: {e.error_count()} validation error(s)",
                status=response.status,
                rate_limit=response.rate_limit,
            ) from e

    def _record_rate_limit(self, rate_limit: Optional[RateLimitInfo]) -> None:
        if rate_limit is None:
            return
        self._stats.current_rate_limit = rate_limit
        if rate_limit.remaining == 0:
            logger.warning(
                "rate_limit_exhausted", limit=rate_limit.limit, reset=rate_limit.reset
            )

    # ==================== Cache & Stats ====================

    def clear_cache(self) -> None:
        """Clear the response and fingerprint caches of this client."""
        self._cache.clear()
        self.hash_cache.clear()
        logger.info("profile_cache_cleared")

    def get_cache_stats(self) -> ClientCacheStats:
        entries = [
            CacheEntryInfo(
                key=key,
                expires_at=entry.expires_at,
                access_count=entry.access_count,
                last_access_at=entry.last_access_at,
            )
            for key, entry in self._cache.items()
        ]
        return ClientCacheStats(
            size=len(self._cache),
            max_size=self._cache.max_size,
            ttl_seconds=self._cache.ttl_seconds,
            hits=self._cache.hits,
            misses=self._cache.misses,
            entries=entries,
        )

    def get_request_stats(self) -> RequestStats:
        """Copy of the request counters."""
        return self._stats.model_copy(deep=True)

    @property
    def active_requests(self) -> int:
        """Requests currently in flight through the concurrency gate."""
        return self._limiter.active

    # ==================== Configuration ====================

    @property
    def config(self) -> ClientConfig:
        return self._config

    def update_config(self, overrides: Mapping[str, Any]) -> None:
        """Deep-merge ``overrides`` into the client configuration.

        Cache bounds apply to subsequent inserts. A new concurrency bound is
        applied in place: requests already in flight count against it.

        Raises:
            InvalidParameterError: If an override is invalid; the current
                configuration is kept
        """
        previous = self._config
        self._config = _merge_config(previous, overrides)

        self._cache.ttl_seconds = self._config.cache.ttl_seconds
        self._cache.max_size = self._config.cache.max_size
        if self._config.rate_limit.max_concurrent != previous.rate_limit.max_concurrent:
            self._limiter.resize(self._config.rate_limit.max_concurrent)

        logger.info("client_config_updated", fields=sorted(overrides))

    def get_config(self) -> Dict[str, Any]:
        """Current configuration without the API key."""
        return self._config.public_dump()

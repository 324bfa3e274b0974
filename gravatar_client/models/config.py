"""Client configuration models.

This module defines the data structures for:
- Response cache policy
- Retry with exponential backoff
- Rate limit handling and concurrency bounds
- Batch profile fetching
- The merged per-request client configuration
"""

import os
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

GRAVATAR_API_BASE = "https://api.gravatar.com/v3"
DEFAULT_TIMEOUT_SECONDS = 10.0


class CacheConfig(BaseModel):
    """Response cache configuration"""

    model_config = ConfigDict(frozen=True)

    ttl_seconds: float = Field(default=300.0, gt=0.0)
    max_size: int = Field(default=100, ge=1)
    enabled: bool = True


class RetryConfig(BaseModel):
    """Configuration for retry logic with exponential backoff

    Controls retry behavior for transient failures:
    - Number of attempts before giving up
    - Delay calculation parameters
    - Whether 429 responses are retried
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "max_attempts": 3,
                "base_delay_seconds": 1.0,
                "max_delay_seconds": 10.0,
                "backoff_factor": 2.0,
                "retry_on_rate_limit": True,
            }
        },
    )

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts (1 initial + N-1 retries)",
    )
    base_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Base delay for exponential backoff",
    )
    max_delay_seconds: float = Field(
        default=10.0,
        ge=0.0,
        le=300.0,
        description="Maximum backoff delay cap",
    )
    backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        description="Multiplier applied per attempt",
    )
    retry_on_rate_limit: bool = Field(
        default=True, description="Whether 429 responses are retried"
    )


class RateLimitConfig(BaseModel):
    """Rate limit handling configuration"""

    model_config = ConfigDict(frozen=True)

    auto_handle: bool = Field(
        default=True,
        description="Wait for the server-reported reset time before retrying a 429",
    )
    safety_buffer: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Fraction of the time-until-reset added on top of it",
    )
    max_concurrent: int = Field(
        default=10,
        ge=1,
        description="Maximum simultaneous requests per client instance",
    )


class BatchOptions(BaseModel):
    """Options for batch profile fetching"""

    concurrency: int = Field(default=10, ge=1)
    fail_fast: bool = False
    batch_delay_seconds: float = Field(default=0.0, ge=0.0)


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``overrides`` onto ``base``.

    Nested mappings are merged key by key; any other value replaces the base.

    Args:
        base: Original mapping (not modified)
        overrides: Values taking precedence

    Returns:
        New merged dictionary
    """
    merged: Dict[str, Any] = dict(base)
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


class ClientConfig(BaseModel):
    """Complete configuration for GravatarClient requests

    Instances are immutable; per-request overrides produce a new config
    through ``merged()``.
    """

    model_config = ConfigDict(frozen=True)

    base_url: str = GRAVATAR_API_BASE
    api_key: Optional[str] = Field(default=None, min_length=1)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0.0)
    headers: Dict[str, str] = Field(default_factory=dict)

    cache: CacheConfig = Field(default_factory=CacheConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)

    def merged(self, overrides: Optional[Mapping[str, Any]] = None) -> "ClientConfig":
        """Return a validated copy with ``overrides`` deep-merged on top.

        Nested sections (``cache``, ``retry``, ``rate_limit``, ``headers``)
        are merged key by key, so ``{"retry": {"max_attempts": 5}}`` keeps
        the other retry settings.

        Raises:
            pydantic.ValidationError: If the merged values are invalid
        """
        if not overrides:
            return self
        data = deep_merge(self.model_dump(), _as_plain_dict(overrides))
        return ClientConfig.model_validate(data)

    def public_dump(self) -> Dict[str, Any]:
        """Serialize without the API key."""
        return self.model_dump(exclude={"api_key"})

    @classmethod
    def from_env(cls, prefix: str = "GRAVATAR_") -> "ClientConfig":
        """Build a config from ``<prefix>API_KEY``, ``<prefix>BASE_URL`` and
        ``<prefix>TIMEOUT_SECONDS`` environment variables."""
        return cls.model_validate(env_overrides(prefix))


def env_overrides(prefix: str = "GRAVATAR_") -> Dict[str, Any]:
    """Collect configuration values present in the environment."""
    overrides: Dict[str, Any] = {}
    api_key = os.environ.get(f"{prefix}API_KEY")
    if api_key:
        overrides["api_key"] = api_key
    base_url = os.environ.get(f"{prefix}BASE_URL")
    if base_url:
        overrides["base_url"] = base_url
    timeout = os.environ.get(f"{prefix}TIMEOUT_SECONDS")
    if timeout:
        overrides["timeout_seconds"] = timeout
    return overrides


def _as_plain_dict(overrides: Mapping[str, Any]) -> Dict[str, Any]:
    # Sections may be passed as models instead of dicts
    plain: Dict[str, Any] = {}
    for key, value in overrides.items():
        if isinstance(value, BaseModel):
            value = value.model_dump()
        plain[key] = value
    return plain

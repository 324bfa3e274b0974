"""
Data models for request and cache statistics.

Defines rate limit info, client request counters and cache statistics.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RateLimitInfo(BaseModel):
    """Rate limit window reported by the X-RateLimit-* response headers"""

    limit: int
    remaining: int
    reset: int = Field(description="Unix timestamp (seconds) when the window resets")


class RequestStats(BaseModel):
    """Monotonic request counters for one client instance"""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_retries: int = 0

    cache_hits: int = 0
    cache_misses: int = 0

    total_response_time_seconds: float = 0.0
    current_rate_limit: Optional[RateLimitInfo] = None

    @property
    def average_response_time_seconds(self) -> float:
        """Mean duration of HTTP attempts"""
        if self.total_requests == 0:
            return 0.0
        return self.total_response_time_seconds / self.total_requests


class HashCacheStats(BaseModel):
    """Fingerprint cache statistics"""

    size: int = 0
    max_size: int
    ttl_seconds: float
    hits: int = 0
    misses: int = 0


class CacheEntryInfo(BaseModel):
    """Snapshot of a single response cache entry"""

    key: str
    expires_at: float
    access_count: int
    last_access_at: float


class ClientCacheStats(BaseModel):
    """Response cache statistics"""

    model_config = ConfigDict(protected_namespaces=())

    size: int = 0
    max_size: int
    ttl_seconds: float
    hits: int = 0
    misses: int = 0
    entries: List[CacheEntryInfo] = Field(default_factory=list)

    last_updated: datetime = Field(default_factory=datetime.now)

    @property
    def hit_ratio(self) -> float:
        """Calculate cache hit ratio"""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

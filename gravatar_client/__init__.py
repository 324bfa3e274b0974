"""Async Gravatar client: URL builders and a resilient profile API client."""

from gravatar_client.version import __version__
from gravatar_client.models.avatar import (
    AvatarOptions,
    AvatarRating,
    CustomDefaultUrl,
    DefaultAvatar,
    QRCodeIcon,
    QRCodeOptions,
    QRCodeVersion,
)
from gravatar_client.models.config import (
    BatchOptions,
    CacheConfig,
    ClientConfig,
    RateLimitConfig,
    RetryConfig,
)
from gravatar_client.models.profile import GravatarProfile, ProfileResult
from gravatar_client.models.stats import (
    ClientCacheStats,
    HashCacheStats,
    RateLimitInfo,
    RequestStats,
)
from gravatar_client.services.client import GravatarClient
from gravatar_client.services.config_manager import ConfigManager, ConfigValidationError
from gravatar_client.services.http import HttpTransport
from gravatar_client.services.url_builder import (
    build_avatar_url,
    build_profile_url,
    build_qr_code_url,
    get_default_avatar_config,
    validate_avatar_params,
)
from gravatar_client.utils.deduplication import (
    RequestDeduplicator,
    create_request_deduplicator,
)
from gravatar_client.utils.exceptions import (
    ApiError,
    AuthError,
    ErrorCode,
    GravatarError,
    HashError,
    InvalidIdentifierError,
    InvalidParameterError,
    InvalidResponseError,
    NetworkError,
    NotFoundError,
    RateLimitedError,
)
from gravatar_client.utils.hash import (
    extract_fingerprint,
    fingerprint,
    fingerprint_many,
    is_valid_email,
    is_valid_fingerprint,
    normalize_email,
)
from gravatar_client.utils.hash_cache import HashCache

__all__ = [
    "__version__",
    "AvatarOptions",
    "AvatarRating",
    "CustomDefaultUrl",
    "DefaultAvatar",
    "QRCodeIcon",
    "QRCodeOptions",
    "QRCodeVersion",
    "BatchOptions",
    "CacheConfig",
    "ClientConfig",
    "RateLimitConfig",
    "RetryConfig",
    "GravatarProfile",
    "ProfileResult",
    "ClientCacheStats",
    "HashCacheStats",
    "RateLimitInfo",
    "RequestStats",
    "GravatarClient",
    "ConfigManager",
    "ConfigValidationError",
    "HttpTransport",
    "build_avatar_url",
    "build_profile_url",
    "build_qr_code_url",
    "get_default_avatar_config",
    "validate_avatar_params",
    "RequestDeduplicator",
    "create_request_deduplicator",
    "ApiError",
    "AuthError",
    "ErrorCode",
    "GravatarError",
    "HashError",
    "InvalidIdentifierError",
    "InvalidParameterError",
    "InvalidResponseError",
    "NetworkError",
    "NotFoundError",
    "RateLimitedError",
    "extract_fingerprint",
    "fingerprint",
    "fingerprint_many",
    "is_valid_email",
    "is_valid_fingerprint",
    "normalize_email",
    "HashCache",
]

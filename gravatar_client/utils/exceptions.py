"""Error taxonomy for the Gravatar client.

This module defines the exception hierarchy for URL building and API access:
- Base exception carrying a stable code, HTTP status and rate-limit info
- One subclass per failure kind (validation, hashing, HTTP, network)

All exceptions inherit from GravatarError so callers can catch every client
failure in a single except block and branch on ``code`` instead of matching
messages:
```python
try:
    profile = await client.get_profile("user@example.com")
except GravatarError as e:
    if e.code is ErrorCode.NOT_FOUND:
        render_fallback()
```
"""

from enum import Enum
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from gravatar_client.models.stats import RateLimitInfo


class ErrorCode(str, Enum):
    """Stable error codes exposed on every GravatarError."""

    INVALID_EMAIL = "INVALID_EMAIL"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    HASH_ERROR = "HASH_ERROR"
    NOT_FOUND = "NOT_FOUND"
    AUTH_ERROR = "AUTH_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    API_ERROR = "API_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"


class GravatarError(Exception):
    """Base exception for all Gravatar client errors

    Attributes:
        code: Stable error code for programmatic branching
        status: HTTP status of the failed response, if any
        rate_limit: Rate limit headers observed on the failed response, if any
    """

    code: ErrorCode = ErrorCode.API_ERROR

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        rate_limit: Optional["RateLimitInfo"] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.rate_limit = rate_limit

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code.value!r}, "
            f"message={self.message!r}, status={self.status!r})"
        )


class InvalidIdentifierError(GravatarError):
    """Identifier could not be normalized

    Raised when:
    - Input is not a string
    - Input is empty or whitespace-only
    - Input does not look like an email address
    - A Gravatar URL contains no extractable hash

    This is a caller bug and is never retried.
    """

    code = ErrorCode.INVALID_EMAIL


class InvalidParameterError(GravatarError):
    """Option out of range or not an allowed value (URL builder or config)

    Attributes:
        field: Name of the offending option
    """

    code = ErrorCode.INVALID_PARAMETER

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class HashError(GravatarError):
    """Digest engine failed while fingerprinting an identifier"""

    code = ErrorCode.HASH_ERROR


class NotFoundError(GravatarError):
    """Remote resource does not exist (HTTP 404)"""

    code = ErrorCode.NOT_FOUND


class AuthError(GravatarError):
    """Remote service rejected the credentials (HTTP 401)"""

    code = ErrorCode.AUTH_ERROR


class RateLimitedError(GravatarError):
    """Rate limit exceeded (HTTP 429)

    ``rate_limit`` carries the reset timestamp when the server sent one,
    which the client uses to wait until the window reopens.
    """

    code = ErrorCode.RATE_LIMITED


class ApiError(GravatarError):
    """Any other non-2xx response, or an unexpected failure during a request"""

    code = ErrorCode.API_ERROR


class NetworkError(GravatarError):
    """Transport failure

    Raised when:
    - Request timed out
    - DNS resolution or connection failed
    - Connection was reset mid-response
    """

    code = ErrorCode.NETWORK_ERROR


class InvalidResponseError(GravatarError):
    """2xx response whose body is empty, null or not a valid profile"""

    code = ErrorCode.INVALID_RESPONSE


def error_for_status(
    status: int,
    message: str,
    rate_limit: Optional["RateLimitInfo"] = None,
) -> GravatarError:
    """Build the typed error matching an HTTP failure status.

    Args:
        status: HTTP status code of the failed response
        message: Human-readable error message
        rate_limit: Parsed rate limit headers, if present

    Returns:
        RateLimitedError for 429, AuthError for 401, NotFoundError for 404,
        ApiError otherwise.
    """
    error_cls: type[GravatarError]
    if status == 429:
        error_cls = RateLimitedError
    elif status == 401:
        error_cls = AuthError
    elif status == 404:
        error_cls = NotFoundError
    else:
        error_cls = ApiError
    return error_cls(message, status=status, rate_limit=rate_limit)

"""HTTP request engine for the Gravatar REST API.

Issues a single GET with timeout, parses rate-limit headers and classifies
failures into the client error taxonomy. Retrying is the caller's concern.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp
import structlog

from gravatar_client.version import __version__
from gravatar_client.models.config import ClientConfig
from gravatar_client.models.stats import RateLimitInfo
from gravatar_client.utils.exceptions import (
    GravatarError,
    InvalidResponseError,
    NetworkError,
    error_for_status,
)
from gravatar_client.utils.rate_limiter import parse_rate_limit_headers

logger = structlog.get_logger()

USER_AGENT = f"gravatar-client/{__version__}"


@dataclass
class ApiResponse:
    """Successful API response"""

    data: Any
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    rate_limit: Optional[RateLimitInfo] = None


def build_headers(config: ClientConfig, user_agent: str = USER_AGENT) -> Dict[str, str]:
    """Request headers: defaults, then caller headers, then authorization."""
    headers = {
        "User-Agent": user_agent,
        "Accept": "application/json",
    }
    headers.update(config.headers)
    if config.api_key:
        headers["Authorization"] = f"Bearer {config.api_key}"
    return headers


def _error_message(body: str, status: int, reason: Optional[str]) -> str:
    message = f"HTTP {status}: {reason or ''}".rstrip()
    try:
        payload = json.loads(body)
    except ValueError:
        return message
    if isinstance(payload, dict):
        detail = payload.get("error") or payload.get("message")
        if isinstance(detail, str) and detail:
            return detail
    return message


class HttpTransport:
    """Thin aiohttp wrapper performing one request per call.

    The session is created lazily on first use. A session passed in by the
    caller is never closed by the transport.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        user_agent: str = USER_AGENT,
    ):
        self._session = session
        self._owns_session = session is None
        self.user_agent = user_agent

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session if this transport created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def request(self, url: str, config: ClientConfig) -> ApiResponse:
        """GET ``url`` and return its JSON body.

        Args:
            url: Fully-qualified request URL
            config: Merged client configuration (auth, headers, timeout)

        Returns:
            ApiResponse with the decoded JSON body

        Raises:
            RateLimitedError: HTTP 429
            AuthError: HTTP 401
            NotFoundError: HTTP 404
            ApiError: Any other non-2xx status
            InvalidResponseError: 2xx with an empty, null or non-JSON body
            NetworkError: Timeout or connection failure
        """
        headers = build_headers(config, self.user_agent)
        timeout = aiohttp.ClientTimeout(total=config.timeout_seconds)
        session = await self._get_session()

        try:
            async with session.get(url, headers=headers, timeout=timeout) as response:
                response_headers = dict(response.headers)
                rate_limit = parse_rate_limit_headers(response.headers)

                if not 200 <= response.status < 300:
                    body = await response.text()
                    message = _error_message(body, response.status, response.reason)
                    logger.warning(
                        "gravatar_request_failed",
                        status=response.status,
                        error=message,
                    )
                    raise error_for_status(response.status, message, rate_limit)

                try:
                    data = await response.json(content_type=None)
                except ValueError as e:
                    raise InvalidResponseError(
                        f"Invalid JSON in response: {e}",
                        status=response.status,
                        rate_limit=rate_limit,
                    ) from e

        except GravatarError:
            raise
        except asyncio.TimeoutError as e:
            logger.error("gravatar_request_timeout", timeout_seconds=config.timeout_seconds)
            raise NetworkError(
                f"Request timeout after {config.timeout_seconds}s"
            ) from e
        except (aiohttp.ClientError, OSError) as e:
            logger.error("gravatar_network_error", error=str(e))
            raise NetworkError(f"Network error: {e}") from e

        if data is None or data == {} or data == []:
            raise InvalidResponseError(
                "No data received", status=response.status, rate_limit=rate_limit
            )

        return ApiResponse(
            data=data,
            status=response.status,
            headers=response_headers,
            rate_limit=rate_limit,
        )

"""Identifier hashing utilities.

Provides normalization and stable SHA-256 fingerprints for email
identifiers, which Gravatar uses as the resource key in every URL.
"""

import hashlib
import json
import re
from typing import List, Sequence, TYPE_CHECKING

import structlog

from gravatar_client.utils.exceptions import HashError, InvalidIdentifierError

if TYPE_CHECKING:
    from gravatar_client.models.config import ClientConfig

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
FINGERPRINT_PATTERN = re.compile(r"^[a-f0-9]{64}$", re.IGNORECASE)
PROFILE_URL_PATTERN = re.compile(
    r"gravatar\.com/(?:avatar/)?([a-f0-9]{64})", re.IGNORECASE
)


def is_valid_email(value: object) -> bool:
    """Check an identifier against the permissive email shape."""
    return isinstance(value, str) and bool(EMAIL_PATTERN.match(value.strip()))


def normalize_email(raw: object) -> str:
    """Normalize an email address for hashing.

    Trims surrounding whitespace and lowercases. Deliberately permissive:
    anything shaped like ``local@domain.tld`` is accepted.

    Args:
        raw: Email address as provided by the caller.

    Returns:
        Normalized email.

    Raises:
        InvalidIdentifierError: If the input is not a string, is empty, or
            does not look like an email address.
    """
    if not isinstance(raw, str):
        raise InvalidIdentifierError("Email must be a string")

    trimmed = raw.strip()
    if not trimmed:
        raise InvalidIdentifierError("Email cannot be empty")

    if not EMAIL_PATTERN.match(trimmed):
        raise InvalidIdentifierError(f"Invalid email format: {trimmed}")

    return trimmed.lower()


def digest_normalized(normalized: str) -> str:
    """SHA-256 hex digest of an already-normalized identifier."""
    try:
        return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
    except (UnicodeError, ValueError) as e:
        logger.error("fingerprint_digest_failed", error=str(e))
        raise HashError(f"Failed to hash email: {e}") from e


def fingerprint(raw: object) -> str:
    """Calculate the Gravatar fingerprint of an email address.

    Args:
        raw: Email address (any case, surrounding whitespace allowed).

    Returns:
        64-character lowercase hex SHA-256 digest of the normalized email.

    Raises:
        InvalidIdentifierError: If the email is invalid.
        HashError: If the digest could not be computed.
    """
    return digest_normalized(normalize_email(raw))


def fingerprint_many(raws: Sequence[str]) -> List[str]:
    """Fingerprint several emails at once.

    The call is atomic: every email is normalized before any is hashed, so
    a single invalid entry fails the whole batch without partial results.

    Raises:
        InvalidIdentifierError: If ``raws`` is not a list/tuple or any
            element is invalid.
    """
    if not isinstance(raws, (list, tuple)):
        raise InvalidIdentifierError("Emails must be provided as a list")

    normalized = [normalize_email(raw) for raw in raws]
    return [digest_normalized(value) for value in normalized]


def is_valid_fingerprint(value: object) -> bool:
    """Check whether a value is a 64-character hex SHA-256 digest."""
    return isinstance(value, str) and bool(FINGERPRINT_PATTERN.match(value))


def extract_fingerprint(value: object) -> str:
    """Resolve an email, fingerprint or Gravatar URL to a fingerprint.

    Resolution order:
    1. A bare 64-character hex digest is lowercased and returned.
    2. A Gravatar URL has its hash path segment extracted.
    3. Anything else is treated as an email and fingerprinted.

    Raises:
        InvalidIdentifierError: If the input is empty or not a string, if a
            URL contains no extractable hash, or if the email is invalid.
    """
    if not value or not isinstance(value, str):
        raise InvalidIdentifierError("Input must be a non-empty string")

    candidate = value.strip()
    if is_valid_fingerprint(candidate):
        return candidate.lower()

    match = PROFILE_URL_PATTERN.search(candidate)
    if match:
        return match.group(1).lower()

    if "gravatar.com/" in candidate.lower() or candidate.startswith(
        ("http://", "https://")
    ):
        raise InvalidIdentifierError(f"No Gravatar hash found in URL: {candidate}")

    return fingerprint(candidate)


def calculate_config_hash(config: "ClientConfig") -> str:
    """Calculate a short stable hash of the request-shaping configuration.

    Used in response cache keys so that clients (or per-call overrides)
    with different endpoints or credentials never share cached profiles.
    The API key only contributes through its own digest.

    Args:
        config: Merged client configuration.

    Returns:
        First 16 hex characters of a SHA-256 over the normalized settings.
    """
    api_key = "none"
    if config.api_key:
        api_key = hashlib.sha256(config.api_key.encode("utf-8")).hexdigest()

    normalized = {
        "base_url": config.base_url.rstrip("/"),
        "api_key": api_key,
        "timeout_seconds": config.timeout_seconds,
        "headers": {k.lower(): v for k, v in config.headers.items()},
    }

    json_str = json.dumps(normalized, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(json_str.encode("utf-8")).hexdigest()[:16]

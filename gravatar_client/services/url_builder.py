"""Gravatar URL builders.

Pure functions turning an identifier (email, fingerprint or Gravatar URL)
and options into request URLs for avatars, profiles and QR codes.

Parameters equal to their defaults are left out so URLs stay minimal and
stable, and free-text values are URL-encoded exactly once.

Example:
    >>> build_avatar_url("user@example.com", size=200, rating="pg")
    'https://0.gravatar.com/avatar/<hash>?s=200&r=pg'
"""

from typing import Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar, Union
from urllib.parse import urlencode

from pydantic import BaseModel, ValidationError

from gravatar_client.models.avatar import (
    DEFAULT_AVATAR_SIZE,
    DEFAULT_QR_SIZE,
    MAX_AVATAR_SIZE,
    MIN_AVATAR_SIZE,
    AvatarOptions,
    AvatarRating,
    CustomDefaultUrl,
    DefaultAvatar,
    QRCodeIcon,
    QRCodeOptions,
    QRCodeVersion,
)
from gravatar_client.models.config import GRAVATAR_API_BASE
from gravatar_client.utils.exceptions import InvalidParameterError
from gravatar_client.utils.hash import extract_fingerprint

GRAVATAR_AVATAR_BASE = "https://0.gravatar.com/avatar"
GRAVATAR_QR_BASE = "https://api.gravatar.com/v3/qr-code"

DEFAULT_AVATAR_RATING = AvatarRating.G
DEFAULT_AVATAR_IMAGE = DefaultAvatar.MYSTERY_PERSON

_FIELD_MESSAGES = {
    ("avatar", "size"): (
        f"Avatar size must be an integer between {MIN_AVATAR_SIZE} "
        f"and {MAX_AVATAR_SIZE} pixels"
    ),
    ("avatar", "rating"): "Avatar rating must be one of: g, pg, r, x",
    ("avatar", "default"): (
        "Default avatar must be one of: "
        + ", ".join(d.value for d in DefaultAvatar)
        + " or an http(s) URL"
    ),
    ("qr", "size"): "QR code size must be an integer between 1 and 1000 pixels",
    ("qr", "version"): "QR code version must be 1 or 3",
    ("qr", "type"): "QR code type must be one of: user, gravatar, none",
}

OptionsT = TypeVar("OptionsT", bound=BaseModel)


def _resolve_options(
    kind: str,
    model: Type[OptionsT],
    options: Union[OptionsT, Mapping[str, Any], None],
    overrides: Dict[str, Any],
) -> OptionsT:
    """Validate options, translating pydantic errors to InvalidParameterError."""
    if isinstance(options, model) and not overrides:
        return options

    data: Dict[str, Any] = {}
    if isinstance(options, BaseModel):
        data.update(options.model_dump(exclude_unset=True))
    elif options is not None:
        data.update(options)
    data.update(overrides)
    # None means "use the default", as if the option was not given
    data = {k: v for k, v in data.items() if v is not None}

    try:
        return model.model_validate(data)
    except ValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else None
        message = _FIELD_MESSAGES.get(
            (kind, field or ""), f"Invalid {kind} option '{field}': {error['msg']}"
        )
        raise InvalidParameterError(message, field=field) from e


def _with_query(base: str, fingerprint: str, params: List[Tuple[str, str]]) -> str:
    url = f"{base.rstrip('/')}/{fingerprint}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


def build_avatar_url(
    identifier: str,
    options: Union[AvatarOptions, Mapping[str, Any], None] = None,
    *,
    base_url: str = GRAVATAR_AVATAR_BASE,
    **kwargs: Any,
) -> str:
    """Build a Gravatar avatar image URL.

    Args:
        identifier: Email address, fingerprint or Gravatar URL
        options: AvatarOptions or a mapping of its fields
        base_url: Avatar endpoint
        **kwargs: Option fields (``size``, ``rating``, ``default``,
            ``force_default``) taking precedence over ``options``

    Returns:
        ``{base_url}/{fingerprint}`` with ``s``, ``r``, ``d``, ``f`` query
        parameters (in that order) for every non-default option

    Raises:
        InvalidIdentifierError: If the identifier is invalid
        InvalidParameterError: If an option is out of range
    """
    fingerprint = extract_fingerprint(identifier)
    opts = _resolve_options("avatar", AvatarOptions, options, kwargs)

    params: List[Tuple[str, str]] = []
    if opts.size != DEFAULT_AVATAR_SIZE:
        params.append(("s", str(opts.size)))
    if opts.rating != DEFAULT_AVATAR_RATING:
        params.append(("r", opts.rating.value))

    default = opts.default
    if isinstance(default, CustomDefaultUrl):
        params.append(("d", default.url))
    elif default != DEFAULT_AVATAR_IMAGE:
        params.append(("d", default.value))

    if opts.force_default:
        params.append(("f", "y"))

    return _with_query(base_url, fingerprint, params)


def build_profile_url(identifier: str, base_url: Optional[str] = None) -> str:
    """Build the profile API URL ``{base_url}/profiles/{fingerprint}``."""
    fingerprint = extract_fingerprint(identifier)
    base = (base_url or GRAVATAR_API_BASE).rstrip("/")
    return f"{base}/profiles/{fingerprint}"


def build_qr_code_url(
    identifier: str,
    options: Union[QRCodeOptions, Mapping[str, Any], None] = None,
    *,
    base_url: str = GRAVATAR_QR_BASE,
    **kwargs: Any,
) -> str:
    """Build a Gravatar QR code URL.

    Query parameters appear in the order ``size``, ``version``, ``type``,
    ``utm_medium``, ``utm_campaign`` and only when they differ from the
    defaults (80, 1, ``none``, unset).

    Raises:
        InvalidIdentifierError: If the identifier is invalid
        InvalidParameterError: If an option is out of range
    """
    fingerprint = extract_fingerprint(identifier)
    opts = _resolve_options("qr", QRCodeOptions, options, kwargs)

    params: List[Tuple[str, str]] = []
    if opts.size != DEFAULT_QR_SIZE:
        params.append(("size", str(opts.size)))
    if opts.version != QRCodeVersion.STANDARD:
        params.append(("version", str(int(opts.version))))
    if opts.type != QRCodeIcon.NONE:
        params.append(("type", opts.type.value))
    if opts.utm_medium:
        params.append(("utm_medium", opts.utm_medium))
    if opts.utm_campaign:
        params.append(("utm_campaign", opts.utm_campaign))

    return _with_query(base_url, fingerprint, params)


def validate_avatar_params(size: Optional[int] = None, rating: Optional[str] = None) -> None:
    """Validate avatar size and rating without building a URL.

    Raises:
        InvalidParameterError: If either value is invalid
    """
    _resolve_options("avatar", AvatarOptions, None, {"size": size, "rating": rating})


def get_default_avatar_config() -> AvatarOptions:
    """Default avatar options (size 80, rating g, mystery person)."""
    return AvatarOptions()

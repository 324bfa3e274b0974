"""URL builder option models for avatars and QR codes.

The default avatar is a tagged variant: either a predefined ``DefaultAvatar``
token or a ``CustomDefaultUrl``. Plain strings are coerced by
``parse_default_avatar``.
"""

from enum import Enum, IntEnum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIN_AVATAR_SIZE = 1
MAX_AVATAR_SIZE = 2048
DEFAULT_AVATAR_SIZE = 80

QR_MIN_SIZE = 1
QR_MAX_SIZE = 1000
DEFAULT_QR_SIZE = 80


class AvatarRating(str, Enum):
    """Maximum content rating of the returned avatar"""

    G = "g"
    PG = "pg"
    R = "r"
    X = "x"


class DefaultAvatar(str, Enum):
    """Predefined image served when no avatar exists"""

    NOT_FOUND = "404"
    MYSTERY_PERSON = "mp"
    IDENTICON = "identicon"
    MONSTERID = "monsterid"
    WAVATAR = "wavatar"
    RETRO = "retro"
    ROBOHASH = "robohash"
    BLANK = "blank"


class CustomDefaultUrl(BaseModel):
    """Publicly reachable image URL served when no avatar exists"""

    model_config = ConfigDict(frozen=True)

    url: str = Field(pattern=r"^https?://\S+$")


DefaultImage = Union[DefaultAvatar, CustomDefaultUrl]


def parse_default_avatar(value: Any) -> Any:
    """Coerce a plain string into the DefaultImage variant.

    Known tokens become ``DefaultAvatar`` members and ``http(s)://`` URLs
    become ``CustomDefaultUrl`` data. Anything else is returned unchanged for
    pydantic to reject.
    """
    if not isinstance(value, str) or isinstance(value, DefaultAvatar):
        return value
    try:
        return DefaultAvatar(value)
    except ValueError:
        pass
    if value.startswith(("http://", "https://")):
        return {"url": value}
    return value


class QRCodeVersion(IntEnum):
    """QR code style version"""

    STANDARD = 1
    MODERN = 3


class QRCodeIcon(str, Enum):
    """Icon rendered in the centre of a QR code"""

    USER = "user"
    GRAVATAR = "gravatar"
    NONE = "none"


class AvatarOptions(BaseModel):
    """Avatar image URL options"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    size: int = Field(
        default=DEFAULT_AVATAR_SIZE,
        strict=True,
        ge=MIN_AVATAR_SIZE,
        le=MAX_AVATAR_SIZE,
    )
    rating: AvatarRating = AvatarRating.G
    default: DefaultImage = DefaultAvatar.MYSTERY_PERSON
    force_default: bool = False

    @field_validator("default", mode="before")
    @classmethod
    def _coerce_default(cls, value: Any) -> Any:
        return parse_default_avatar(value)


class QRCodeOptions(BaseModel):
    """QR code URL options"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    size: int = Field(
        default=DEFAULT_QR_SIZE,
        strict=True,
        ge=QR_MIN_SIZE,
        le=QR_MAX_SIZE,
    )
    version: QRCodeVersion = QRCodeVersion.STANDARD
    type: QRCodeIcon = QRCodeIcon.NONE
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None

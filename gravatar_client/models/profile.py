"""Gravatar profile payload models.

Mirrors the public profile object returned by ``GET /profiles/{hash}``.
Unknown fields are kept so newer API additions are not dropped.
"""

from dataclasses import dataclass
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from gravatar_client.utils.exceptions import GravatarError


class VerifiedAccount(BaseModel):
    """Linked account verified by Gravatar"""

    model_config = ConfigDict(extra="allow")

    service_type: str
    service_label: str = ""
    service_icon: Optional[str] = None
    url: str
    is_hidden: bool = False


class ProfileLink(BaseModel):
    """Custom link shown on a profile"""

    model_config = ConfigDict(extra="allow")

    label: str
    url: str


class Interest(BaseModel):
    """Interest tag"""

    model_config = ConfigDict(extra="allow")

    id: int
    name: str
    slug: Optional[str] = None


class CryptoWalletAddress(BaseModel):
    """Payment address"""

    label: str
    address: str


class ContactInfo(BaseModel):
    """Contact details (only returned to authenticated callers)"""

    model_config = ConfigDict(extra="allow")

    email: Optional[str] = None
    home_phone: Optional[str] = None
    work_phone: Optional[str] = None
    cell_phone: Optional[str] = None
    contact_form: Optional[str] = None
    calendar: Optional[str] = None


class GalleryImage(BaseModel):
    """Image from the profile gallery"""

    model_config = ConfigDict(extra="allow")

    url: str
    alt_text: Optional[str] = None


class GravatarProfile(BaseModel):
    """Public Gravatar profile"""

    model_config = ConfigDict(extra="allow")

    hash: str
    display_name: str = ""
    profile_url: str = ""
    avatar_url: str = ""
    avatar_alt_text: str = ""

    location: Optional[str] = None
    description: Optional[str] = None
    job_title: Optional[str] = None
    company: Optional[str] = None
    pronouns: Optional[str] = None
    pronunciation: Optional[str] = None
    timezone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    is_organization: Optional[bool] = None
    header_image: Optional[str] = None
    background_color: Optional[str] = None

    languages: List[dict] = []
    verified_accounts: List[VerifiedAccount] = []
    links: List[ProfileLink] = []
    interests: List[Interest] = []
    payments: Optional[dict] = None
    contact_info: Optional[ContactInfo] = None
    gallery: List[GalleryImage] = []

    number_verified_accounts: Optional[int] = None
    last_profile_edit: Optional[str] = None
    registration_date: Optional[str] = None


@dataclass
class ProfileResult:
    """Outcome of one identifier in a batch fetch.

    Exactly one of ``profile`` and ``error`` is set.
    """

    email: str
    profile: Optional[GravatarProfile] = None
    error: Optional[GravatarError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

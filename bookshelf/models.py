"""
Pydantic models for users, books, identities and Google Books payloads.
JSON field names are camelCase; Python attributes are snake_case.
"""

import re
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ISBN_PATTERN = re.compile(r"(?:[0-9]{10}|[0-9]{13})")


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    """Lowercase and trim, so case variants map to one account."""
    return email.strip().lower()


def normalize_isbn(isbn: str) -> str:
    """Strip the hyphens and spaces people type into ISBNs."""
    return isbn.replace("-", "").replace(" ", "")


def is_valid_isbn(isbn: str) -> bool:
    """True for exactly 10 or 13 ASCII digits."""
    return bool(ISBN_PATTERN.fullmatch(isbn))


class CamelModel(BaseModel):
    """Base model serialising to camelCase and accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(BaseModel):
    """Stored user record. ``id`` is None until the store assigns one."""
    id: Optional[str] = Field(None, description="Store-assigned identifier")
    email: str = Field(..., description="Normalized email address")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    password_hash: str = Field(..., description="bcrypt hash of the password")
    created_at: datetime = Field(default_factory=utcnow, description="Account creation time")


class UserInfo(CamelModel):
    """Public user profile."""
    id: str
    email: str
    first_name: str
    last_name: str

    @classmethod
    def from_user(cls, user: User) -> "UserInfo":
        return cls(
            id=user.id or "",
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
        )


class Identity(BaseModel):
    """
    Caller identity decoded from a validated token.

    Immutable for the lifetime of a request.
    """
    user_id: str = Field(..., description="Token subject")
    email: str = Field(..., description="Email claim")
    token_id: str = Field(..., description="Unique token identifier (jti)")
    first_name: str = Field("", description="First name claim")
    last_name: str = Field("", description="Last name claim")
    expires_at: datetime = Field(..., description="Absolute expiry")

    model_config = ConfigDict(frozen=True)


class AuthResult(BaseModel):
    """Outcome of register, login and refresh."""
    user: UserInfo
    token: str
    expires_at: datetime


class Book(CamelModel):
    """A library entry owned by exactly one user."""
    id: Optional[str] = Field(None, description="Store-assigned identifier")
    user_id: str = Field(..., description="Owning user id")
    isbn: Optional[str] = Field(None, description="10 or 13 digit ISBN")
    title: str = Field(..., description="Book title")
    author: str = Field(..., description="Primary author")
    published_date: Optional[str] = Field(None, description="Free-text publication date")
    description: Optional[str] = Field(None, description="Book description")
    categories: List[str] = Field(default_factory=list, description="Category tags")
    cover_url: Optional[str] = Field(None, description="Cover image URL")
    created_at: datetime = Field(default_factory=utcnow, description="Creation timestamp")


class BookFields(CamelModel):
    """
    Client-editable book fields, used for explicit creation and for updates.
    id, userId and createdAt are never client-editable.
    """
    title: str = ""
    author: str = ""
    published_date: Optional[str] = None
    description: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    cover_url: Optional[str] = None
    isbn: Optional[str] = Field(None, validation_alias=AliasChoices("isbn", "ISBN"))


# Google Books volume search payloads

class ImageLinks(CamelModel):
    small_thumbnail: Optional[str] = None
    thumbnail: Optional[str] = None


class VolumeInfo(CamelModel):
    title: Optional[str] = None
    authors: Optional[List[str]] = None
    published_date: Optional[str] = None
    description: Optional[str] = None
    categories: Optional[List[str]] = None
    image_links: Optional[ImageLinks] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Volume(CamelModel):
    id: Optional[str] = None
    volume_info: Optional[VolumeInfo] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class VolumeSearchResponse(CamelModel):
    total_items: int = 0
    items: Optional[List[Volume]] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

"""Pydantic schemas for bookmark endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator

from models.base import as_utc
from schemas.base import CamelModel

MAX_URL_LENGTH = 2048
MAX_TITLE_LENGTH = 500
MAX_MEMO_LENGTH = 10_000


def empty_to_none(value: str | None) -> str | None:
    """Treat blank strings as absent."""
    if value is None:
        return None
    value = value.strip()
    return value or None


class BookmarkCreate(CamelModel):
    """
    Schema for creating a new bookmark.

    `domain` is accepted for client compatibility but the server always
    derives it from `url`.
    """

    url: str = Field(min_length=1, max_length=MAX_URL_LENGTH)
    title: str | None = Field(default=None, max_length=MAX_TITLE_LENGTH)
    domain: str | None = None
    favicon: str | None = None
    memo: str | None = Field(default=None, max_length=MAX_MEMO_LENGTH)
    collection_id: UUID | None = None

    @field_validator("title", "favicon")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Blank title/favicon means not provided."""
        return empty_to_none(v)


class BookmarkUpdate(CamelModel):
    """
    Schema for updating a bookmark. Only memo and favicon are mutable.

    Omitted fields are left unchanged; explicit null clears the field.
    Any other keys in the body are ignored.
    """

    memo: str | None = Field(default=None, max_length=MAX_MEMO_LENGTH)
    favicon: str | None = None

    @field_validator("favicon")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        """Blank favicon clears it."""
        return empty_to_none(v)


class BookmarkResponse(CamelModel):
    """Schema for bookmark responses."""

    id: UUID
    user_id: UUID
    collection_id: UUID | None
    url: str
    title: str
    domain: str
    favicon: str | None
    memo: str | None
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """SQLite returns naive datetimes; always answer in UTC."""
        return as_utc(v)

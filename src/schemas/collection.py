"""Pydantic schemas for collection endpoints."""
from datetime import datetime
from uuid import UUID

from pydantic import Field, field_validator

from models.base import as_utc
from schemas.base import CamelModel

MAX_COLLECTION_NAME_LENGTH = 100


def validate_collection_name(name: str) -> str:
    """Trim a collection name and require it to be non-empty."""
    name = name.strip()
    if not name:
        raise ValueError("Collection name cannot be empty")
    if len(name) > MAX_COLLECTION_NAME_LENGTH:
        raise ValueError(
            f"Collection name exceeds maximum length of {MAX_COLLECTION_NAME_LENGTH} characters",
        )
    return name


class CollectionCreate(CamelModel):
    """Schema for creating a collection."""

    name: str

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        """Validate collection name."""
        return validate_collection_name(v)


class CollectionUpdate(CamelModel):
    """Schema for renaming a collection. Name is the only mutable field."""

    name: str | None = Field(default=None)

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str | None) -> str | None:
        """Validate collection name if provided."""
        if v is None:
            return None
        return validate_collection_name(v)


class CollectionResponse(CamelModel):
    """Schema for collection responses."""

    id: UUID
    user_id: UUID
    name: str
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """SQLite returns naive datetimes; always answer in UTC."""
        return as_utc(v)

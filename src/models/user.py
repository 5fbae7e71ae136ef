"""User model for registered accounts."""
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, CreatedAtMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.bookmark import Bookmark
    from models.collection import Collection


class User(Base, UUIDv7Mixin, CreatedAtMixin):
    """
    User model - username/password accounts.

    The password column only ever holds an Argon2 hash. Verification and reset
    tokens are stored as SHA-256 hashes; the plaintext only travels in the email.
    """

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password: Mapped[str] = mapped_column(String(255), comment="Argon2id hash")

    email_verified: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None,
    )
    verification_token: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True, comment="SHA-256 hash of the token",
    )
    verification_token_expiry: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    reset_token: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True, comment="SHA-256 hash of the token",
    )
    reset_token_expiry: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    collections: Mapped[list["Collection"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    bookmarks: Mapped[list["Bookmark"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

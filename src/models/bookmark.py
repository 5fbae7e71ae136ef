"""Bookmark model for storing user bookmarks."""
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, CreatedAtMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.collection import Collection
    from models.user import User


class Bookmark(Base, UUIDv7Mixin, CreatedAtMixin):
    """
    Bookmark model - stores a URL with memo text and an embedded favicon.

    The favicon column only ever holds a `data:image/...;base64,` blob once
    persisted; remote URLs are resolved by the image fetch guard beforehand.
    """

    __tablename__ = "bookmarks"
    __table_args__ = (
        Index("ix_bookmarks_user_id_collection_id", "user_id", "collection_id"),
    )

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # NULL means uncategorized
    collection_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("collections.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    domain: Mapped[str] = mapped_column(String(255), nullable=False)
    favicon: Mapped[str | None] = mapped_column(Text, nullable=True)
    memo: Mapped[str | None] = mapped_column(Text, nullable=True)

    user: Mapped["User"] = relationship(back_populates="bookmarks")
    collection: Mapped["Collection | None"] = relationship(back_populates="bookmarks")

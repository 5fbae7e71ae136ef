"""Collection model for grouping bookmarks."""
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, CreatedAtMixin, UUIDv7Mixin

if TYPE_CHECKING:
    from models.bookmark import Bookmark
    from models.user import User


class Collection(Base, UUIDv7Mixin, CreatedAtMixin):
    """Collection model - a named tab of bookmarks owned by one user."""

    __tablename__ = "collections"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    user: Mapped["User"] = relationship(back_populates="collections")
    # Bookmarks are detached, never deleted, when their collection goes away
    bookmarks: Mapped[list["Bookmark"]] = relationship(
        back_populates="collection",
        passive_deletes=True,
    )

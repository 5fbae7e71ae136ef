"""Server-side web session model."""
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from models.base import Base, utc_now

if TYPE_CHECKING:
    from models.user import User


class WebSession(Base):
    """
    Web session keyed by the hash of an opaque cookie value.

    Every client gets a session on its first API request, anonymous until login.
    The CSRF token lives here so it is bound to exactly one session.
    """

    __tablename__ = "web_sessions"

    id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="SHA-256 hash of the session cookie value",
    )
    user_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    csrf_token: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False,
    )
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True,
    )

    user: Mapped["User | None"] = relationship()

    @property
    def is_authenticated(self) -> bool:
        """Whether a user is bound to this session."""
        return self.user_id is not None

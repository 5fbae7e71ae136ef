"""
Service layer for server-side web sessions.

The browser holds only an opaque random identifier in an HTTP-only cookie.
The database holds its SHA-256 hash, the bound user (if any), the CSRF
token, and a sliding expiry. Expired sessions are treated as absent.
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.security import hash_token
from models.base import as_utc, utc_now
from models.web_session import WebSession

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(days=7)


@dataclass
class ResolvedSession:
    """
    A session record plus the cookie value the client should hold.

    `raw_id` is only set when the identifier is new (created or rotated), i.e.
    when the response needs a Set-Cookie header.
    """

    record: WebSession
    raw_id: str | None = None

    @property
    def needs_cookie(self) -> bool:
        """Whether the client must be sent a new cookie value."""
        return self.raw_id is not None


def generate_session_id() -> tuple[str, str]:
    """Return (cookie_value, stored_id) for a new session."""
    raw = secrets.token_urlsafe(32)
    return raw, hash_token(raw)


def generate_csrf_token() -> str:
    """Return a new high-entropy anti-forgery token."""
    return secrets.token_urlsafe(32)


def is_expired(session: WebSession, now: datetime | None = None) -> bool:
    """Check whether a session is past its inactivity deadline."""
    now = now or utc_now()
    return as_utc(session.expires_at) <= now


async def create_session(
    db: AsyncSession,
    max_age: timedelta = DEFAULT_MAX_AGE,
    now: datetime | None = None,
) -> ResolvedSession:
    """
    Create a new anonymous session with its own CSRF token.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    now = now or utc_now()
    raw, session_id = generate_session_id()
    record = WebSession(
        id=session_id,
        user_id=None,
        csrf_token=generate_csrf_token(),
        created_at=now,
        last_seen_at=now,
        expires_at=now + max_age,
    )
    db.add(record)
    await db.flush()
    return ResolvedSession(record=record, raw_id=raw)


async def get_session(
    db: AsyncSession,
    raw_id: str,
    now: datetime | None = None,
) -> WebSession | None:
    """
    Look up a live session by cookie value.

    Expired records are deleted on sight and reported as absent.
    """
    result = await db.execute(
        select(WebSession).where(WebSession.id == hash_token(raw_id)),
    )
    record = result.scalar_one_or_none()
    if record is None:
        return None
    if is_expired(record, now):
        await db.delete(record)
        await db.flush()
        return None
    return record


async def get_or_create_session(
    db: AsyncSession,
    raw_id: str | None,
    max_age: timedelta = DEFAULT_MAX_AGE,
    now: datetime | None = None,
) -> ResolvedSession:
    """
    Resolve the request's session, creating an anonymous one if needed.

    A found session has its inactivity window slid forward.

    Args:
        db: Database session.
        raw_id: Cookie value sent by the client, if any.
        max_age: Inactivity window.
        now: Current time. Defaults to datetime.now(UTC).
    """
    now = now or utc_now()
    if raw_id:
        record = await get_session(db, raw_id, now=now)
        if record is not None:
            record.last_seen_at = now
            record.expires_at = now + max_age
            await db.flush()
            return ResolvedSession(record=record)
    return await create_session(db, max_age=max_age, now=now)


async def bind_user(
    db: AsyncSession,
    session: WebSession,
    user_id: UUID,
    max_age: timedelta = DEFAULT_MAX_AGE,
    now: datetime | None = None,
) -> ResolvedSession:
    """
    Authenticate a session as `user_id`, rotating its identifier.

    The pre-login identifier stops working (session fixation defense). The
    CSRF token carries over so the client does not have to fetch it again.
    """
    now = now or utc_now()
    raw, session_id = generate_session_id()
    replacement = WebSession(
        id=session_id,
        user_id=user_id,
        csrf_token=session.csrf_token,
        created_at=now,
        last_seen_at=now,
        expires_at=now + max_age,
    )
    await db.execute(delete(WebSession).where(WebSession.id == session.id))
    db.add(replacement)
    await db.flush()
    logger.info("Session bound to user %s", user_id)
    return ResolvedSession(record=replacement, raw_id=raw)


async def destroy_session(db: AsyncSession, session: WebSession) -> None:
    """Delete a session. Deleting an already-deleted session is a no-op."""
    await db.execute(delete(WebSession).where(WebSession.id == session.id))
    await db.flush()


async def destroy_user_sessions(db: AsyncSession, user_id: UUID) -> int:
    """
    Delete every session of a user (e.g. after a password reset).

    Returns:
        Number of sessions deleted.
    """
    result = await db.execute(delete(WebSession).where(WebSession.user_id == user_id))
    await db.flush()
    return result.rowcount or 0


async def purge_expired_sessions(db: AsyncSession, now: datetime | None = None) -> int:
    """
    Delete every expired session.

    Returns:
        Number of sessions deleted.
    """
    now = now or utc_now()
    result = await db.execute(delete(WebSession).where(WebSession.expires_at <= now))
    await db.flush()
    return result.rowcount or 0

"""
Service layer for account registration, login and single-use account tokens.

Password hashing is CPU-bound (Argon2 tuned to ~100ms), so it runs in a worker
thread to keep the event loop free for other requests.
"""
import asyncio
import logging
from datetime import datetime, timedelta
from urllib.parse import urlencode

from fastapi import BackgroundTasks
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.security import (
    dummy_password_hash,
    generate_token,
    hash_password,
    hash_token,
    password_needs_rehash,
    verify_password,
)
from models.base import as_utc, utc_now
from models.user import User
from models.web_session import WebSession
from schemas.user import LoginRequest, RegisterRequest
from services import session_service
from services.email_service import (
    render_password_reset_email,
    render_verification_email,
    send_email,
)
from services.exceptions import (
    DuplicateIdentityError,
    InvalidCredentialsError,
    InvalidOrExpiredTokenError,
    InvalidTokenError,
    UnauthenticatedError,
)
from services.session_service import ResolvedSession

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Emails are unique case-insensitively; store them lowercased."""
    return email.strip().lower()


def _session_max_age() -> timedelta:
    return timedelta(days=get_settings().session_max_age_days)


def _frontend_link(path: str, token: str) -> str:
    base = get_settings().frontend_url.rstrip("/")
    return f"{base}{path}?{urlencode({'token': token})}"


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Get a user by exact username."""
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Get a user by email, ignoring case."""
    result = await db.execute(
        select(User).where(func.lower(User.email) == normalize_email(email)),
    )
    return result.scalar_one_or_none()


async def send_verification_email(email: str, username: str, token: str) -> bool:
    """Email a link that confirms the address. Runs as a background task after commit."""
    settings = get_settings()
    html = render_verification_email(
        username,
        _frontend_link("/verify-email", token),
        validity=f"{settings.verification_token_ttl_hours} hours",
    )
    sent = await send_email(email, "Confirm your email address", html)
    if not sent:
        logger.warning("Verification email for %s was not sent", username)
    return sent


async def send_password_reset_email(email: str, username: str, token: str) -> bool:
    """Email a password reset link. Runs as a background task after commit."""
    settings = get_settings()
    html = render_password_reset_email(
        username,
        _frontend_link("/reset-password", token),
        validity=f"{settings.reset_token_ttl_minutes} minutes",
    )
    sent = await send_email(email, "Reset your password", html)
    if not sent:
        logger.warning("Password reset email for %s was not sent", username)
    return sent


async def register(
    db: AsyncSession,
    web_session: WebSession,
    data: RegisterRequest,
    background_tasks: BackgroundTasks,
) -> tuple[User, ResolvedSession]:
    """
    Create an account and log the current session in as it.

    Args:
        db: Database session.
        web_session: The request's session record (anonymous or not).
        data: Validated registration payload.
        background_tasks: Receives the verification email, sent once the
            response is out and the transaction committed.

    Returns:
        Tuple of (new user, rotated session).

    Raises:
        DuplicateIdentityError: If the username or email is already registered.

    Note:
        Does not commit. Caller (session generator) handles commit at request end.
    """
    email = normalize_email(str(data.email))
    if await get_user_by_username(db, data.username) is not None:
        raise DuplicateIdentityError("username")
    if await get_user_by_email(db, email) is not None:
        raise DuplicateIdentityError("email")

    password_hash = await asyncio.to_thread(hash_password, data.password)
    verification_token, verification_hash = generate_token()
    user = User(
        username=data.username,
        email=email,
        password=password_hash,
        verification_token=verification_hash,
        verification_token_expiry=utc_now()
        + timedelta(hours=get_settings().verification_token_ttl_hours),
    )

    # Unique constraints catch a concurrent registration that passed the checks above
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        field = "email" if "email" in str(e.orig).lower() else "username"
        raise DuplicateIdentityError(field) from e

    resolved = await session_service.bind_user(
        db, web_session, user.id, max_age=_session_max_age(),
    )
    logger.info("Registered user %s (%s)", user.username, user.id)

    background_tasks.add_task(
        send_verification_email, user.email, user.username, verification_token,
    )

    return user, resolved


async def login(
    db: AsyncSession,
    web_session: WebSession,
    data: LoginRequest,
) -> tuple[User, ResolvedSession]:
    """
    Check credentials and log the current session in.

    Unknown username and wrong password raise the same error, and both paths
    run one hash verification.

    Raises:
        InvalidCredentialsError: If the username is unknown or the password is wrong.
    """
    user = await get_user_by_username(db, data.username)
    if user is None:
        await asyncio.to_thread(verify_password, data.password, dummy_password_hash())
        raise InvalidCredentialsError()

    if not await asyncio.to_thread(verify_password, data.password, user.password):
        logger.info("Failed login for user %s", user.id)
        raise InvalidCredentialsError()

    if password_needs_rehash(user.password):
        user.password = await asyncio.to_thread(hash_password, data.password)

    resolved = await session_service.bind_user(
        db, web_session, user.id, max_age=_session_max_age(),
    )
    return user, resolved


async def logout(db: AsyncSession, web_session: WebSession) -> None:
    """Destroy the session server-side. Safe to call on an anonymous session."""
    if web_session.user_id is not None:
        logger.info("User %s logged out", web_session.user_id)
    await session_service.destroy_session(db, web_session)


async def get_current_user(db: AsyncSession, web_session: WebSession) -> User:
    """
    Get the user the session is logged in as.

    Raises:
        UnauthenticatedError: If the session is anonymous or its user is gone.
    """
    if web_session.user_id is None:
        raise UnauthenticatedError()
    user = await db.get(User, web_session.user_id)
    if user is None:
        raise UnauthenticatedError()
    return user


async def request_password_reset(
    db: AsyncSession,
    email: str,
    background_tasks: BackgroundTasks,
    now: datetime | None = None,
) -> None:
    """
    Issue a reset token and queue its email, if the address belongs to an account.

    Returns nothing either way, and never waits on the mail provider, so
    neither the answer nor its timing reveals whether the account exists.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        logger.info("Password reset requested for unknown email")
        return

    now = now or utc_now()
    token, token_hash = generate_token()
    user.reset_token = token_hash
    user.reset_token_expiry = now + timedelta(minutes=get_settings().reset_token_ttl_minutes)
    await db.flush()

    background_tasks.add_task(send_password_reset_email, user.email, user.username, token)


async def reset_password(
    db: AsyncSession,
    token: str,
    new_password: str,
    now: datetime | None = None,
) -> User:
    """
    Replace a password using a reset token.

    The token is cleared so it cannot be used again, and every existing
    session of the user is logged out.

    Raises:
        InvalidOrExpiredTokenError: If the token is unknown or past its expiry.
    """
    now = now or utc_now()
    result = await db.execute(
        select(User).where(User.reset_token == hash_token(token)).with_for_update(),
    )
    user = result.scalar_one_or_none()
    if user is None or user.reset_token_expiry is None or as_utc(user.reset_token_expiry) < now:
        raise InvalidOrExpiredTokenError()

    user.password = await asyncio.to_thread(hash_password, new_password)
    user.reset_token = None
    user.reset_token_expiry = None
    await db.flush()

    revoked = await session_service.destroy_user_sessions(db, user.id)
    logger.info("Password reset for user %s; %d sessions revoked", user.id, revoked)
    return user


async def verify_email(
    db: AsyncSession,
    token: str,
    now: datetime | None = None,
) -> User:
    """
    Mark a user's email as verified using the token from the verification email.

    Raises:
        InvalidTokenError: If the token is unknown, already used, or expired.
    """
    now = now or utc_now()
    result = await db.execute(
        select(User).where(User.verification_token == hash_token(token)).with_for_update(),
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise InvalidTokenError()
    if user.verification_token_expiry is not None and as_utc(user.verification_token_expiry) < now:
        raise InvalidTokenError("Verification token has expired")

    user.email_verified = now
    user.verification_token = None
    user.verification_token_expiry = None
    await db.flush()
    logger.info("Email verified for user %s", user.id)
    return user

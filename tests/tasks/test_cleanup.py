"""Tests for the scheduled cleanup task."""
from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.base import utc_now
from models.user import User
from models.web_session import WebSession
from services import session_service
from tasks.cleanup import CleanupStats, run_cleanup


async def test__run_cleanup__purges_expired_state(db_session: AsyncSession) -> None:
    """Expired sessions go, expired tokens are cleared, live ones stay."""
    now = utc_now()
    stale = User(
        username="stale",
        email="stale@example.com",
        password="x",
        reset_token="a" * 64,
        reset_token_expiry=now - timedelta(minutes=5),
        verification_token="b" * 64,
        verification_token_expiry=now - timedelta(days=1),
    )
    fresh = User(
        username="fresh",
        email="fresh@example.com",
        password="x",
        reset_token="c" * 64,
        reset_token_expiry=now + timedelta(minutes=30),
    )
    db_session.add_all([stale, fresh])
    await session_service.create_session(db_session, max_age=timedelta(hours=1), now=now - timedelta(hours=2))
    await session_service.create_session(db_session, now=now)
    await db_session.commit()

    stats = await run_cleanup(db_session, now=now)

    assert stats == CleanupStats(
        sessions_deleted=1, reset_tokens_cleared=1, verification_tokens_cleared=1,
    )
    remaining = await db_session.execute(select(func.count()).select_from(WebSession))
    assert remaining.scalar_one() == 1

    db_session.expire_all()
    stale = (await db_session.execute(select(User).where(User.username == "stale"))).scalar_one()
    fresh = (await db_session.execute(select(User).where(User.username == "fresh"))).scalar_one()
    assert stale.reset_token is None
    assert stale.verification_token is None
    assert fresh.reset_token == "c" * 64


async def test__cleanup_stats__to_dict() -> None:
    """Stats flatten for logging."""
    assert CleanupStats(sessions_deleted=2).to_dict() == {
        "sessions_deleted": 2,
        "reset_tokens_cleared": 0,
        "verification_tokens_cleared": 0,
    }

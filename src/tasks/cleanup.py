"""
Scheduled cleanup task.

Removes server-side state that has outlived its purpose. Designed to run as a
cron job (e.g., hourly).

Usage:
    python -m tasks.cleanup

The task:
1. Deletes web sessions past their inactivity deadline
2. Clears password reset tokens past their expiry
3. Clears email verification tokens past their expiry
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from db.session import async_session_factory
from models.base import utc_now
from models.user import User
from services.session_service import purge_expired_sessions

logger = logging.getLogger(__name__)


@dataclass
class CleanupStats:
    """Statistics from a cleanup run."""

    sessions_deleted: int = 0
    reset_tokens_cleared: int = 0
    verification_tokens_cleared: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to simple dict for logging/return."""
        return {
            "sessions_deleted": self.sessions_deleted,
            "reset_tokens_cleared": self.reset_tokens_cleared,
            "verification_tokens_cleared": self.verification_tokens_cleared,
        }


async def clear_expired_reset_tokens(db: AsyncSession, now: datetime) -> int:
    """Null out reset tokens whose expiry has passed. Returns rows touched."""
    result = await db.execute(
        update(User)
        .where(User.reset_token.is_not(None), User.reset_token_expiry <= now)
        .values(reset_token=None, reset_token_expiry=None)
        .execution_options(synchronize_session=False),
    )
    return result.rowcount or 0


async def clear_expired_verification_tokens(db: AsyncSession, now: datetime) -> int:
    """Null out verification tokens whose expiry has passed. Returns rows touched."""
    result = await db.execute(
        update(User)
        .where(User.verification_token.is_not(None), User.verification_token_expiry <= now)
        .values(verification_token=None, verification_token_expiry=None)
        .execution_options(synchronize_session=False),
    )
    return result.rowcount or 0


async def run_cleanup(
    db: AsyncSession | None = None,
    now: datetime | None = None,
) -> CleanupStats:
    """
    Run all cleanup tasks in one transaction.

    Args:
        db: Database session. If None, creates one from async_session_factory.
        now: Current time for cutoff calculation. Defaults to datetime.now(UTC).

    Returns:
        CleanupStats with the number of rows affected by each step.
    """
    logger.info("Starting cleanup task")
    now = now or utc_now()

    async def _run(session: AsyncSession) -> CleanupStats:
        stats = CleanupStats(
            sessions_deleted=await purge_expired_sessions(session, now=now),
            reset_tokens_cleared=await clear_expired_reset_tokens(session, now),
            verification_tokens_cleared=await clear_expired_verification_tokens(session, now),
        )
        await session.commit()
        return stats

    if db is not None:
        stats = await _run(db)
    else:
        async with async_session_factory() as session:
            stats = await _run(session)

    logger.info("Cleanup complete: %s", stats.to_dict())
    return stats


def main() -> None:
    """Entry point for running cleanup as a script."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_cleanup())


if __name__ == "__main__":
    main()

"""Async SQLAlchemy session factory."""
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.config import get_settings


settings = get_settings()

# SQLite engines use a single-connection pool that rejects sizing arguments
_pool_kwargs = (
    {}
    if settings.is_sqlite
    else {"pool_size": settings.db_pool_size, "max_overflow": settings.db_max_overflow}
)

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
    **_pool_kwargs,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    Yield the request's database session.

    Services only flush; the request commits once here, or rolls back
    everything (session touch, CSRF state, writes) if a handler raises.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

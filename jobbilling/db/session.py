"""
Database session management.

WHY: Async database sessions are required for FastAPI's async/await pattern.
Each request gets one session; billing operations that must be serialized
per job commit inside their own job lock (see ``jobbilling.dao.job_lock``),
so the commit issued here only covers whatever else the request touched.
"""

from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from jobbilling.core.config import settings


# WHY: pool_pre_ping recycles stale connections in long-running workers.
engine = create_async_engine(
    settings.async_database_url,
    echo=settings.DEBUG,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

# WHY: expire_on_commit=False keeps invoice rows readable after the job lock
# commits, without a lazy reload outside the greenlet.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency to get database session.

    Yields:
        AsyncSession: Database session for the request
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

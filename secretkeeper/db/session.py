import time

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..core.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(settings.DATABASE_URL, echo=settings.DB_ECHO, future=True)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def check_db_health(sessionmaker: async_sessionmaker[AsyncSession]) -> tuple[bool, float, str | None]:
    """Check database connection health.

    Returns:
        Tuple of (is_healthy, latency_ms, error_message)
        - is_healthy: True if connection succeeded
        - latency_ms: Round-trip time in milliseconds
        - error_message: Error description if unhealthy, None otherwise
    """
    start = time.time()
    try:
        async with sessionmaker() as session:
            await session.execute(text("SELECT 1"))
            latency_ms = (time.time() - start) * 1000
            return (True, latency_ms, None)
    except Exception as e:
        latency_ms = (time.time() - start) * 1000
        return (False, latency_ms, str(e))

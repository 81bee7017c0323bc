"""
Database engine and per-request sessions for the postgres repository backend.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from harbormaster.config import settings
from harbormaster.logging_config import get_logger

logger = get_logger(__name__)

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


async def init_db() -> None:
    """Create the engine sized from the repository settings and verify connectivity."""
    global _engine, _async_session_factory  # noqa: PLW0603
    repo_settings = settings.repository
    logger.info(
        "Initializing database connection",
        pool_size=repo_settings.pool_size,
        max_overflow=repo_settings.max_overflow,
    )

    _engine = create_async_engine(
        str(settings.database_url),
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=repo_settings.pool_size,
        max_overflow=repo_settings.max_overflow,
    )
    _async_session_factory = async_sessionmaker(_engine, expire_on_commit=False, autoflush=False)

    async with _engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Database connection established")


async def close_db() -> None:
    global _engine, _async_session_factory  # noqa: PLW0603
    if _engine is None:
        return
    logger.info("Closing database connection pool")
    await _engine.dispose()
    _engine = None
    _async_session_factory = None


async def get_db() -> AsyncGenerator[AsyncSession]:
    """
    Yield a session for one request.

    The session commits when the request handler returns and rolls back if
    it raises, so an infra and its first operation land together.
    """
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized: call init_db() first")

    async with _async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db_health() -> bool:
    """Readiness check: the engine exists and answers a trivial query."""
    if _engine is None:
        return False
    try:
        async with _engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False
    return True

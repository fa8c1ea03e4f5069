"""
Database Connection Management
Async SQLAlchemy engine, sessions, readiness wait and schema creation
Source: https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html
"""

import asyncio

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from pharmacy_claims.api.config import Settings, settings
from pharmacy_claims.models import Base
from pharmacy_claims.utils.errors import StorageError
from pharmacy_claims.utils.logging import get_logger

logger = get_logger(__name__)


_engine: AsyncEngine | None = None
_async_session_maker: async_sessionmaker[AsyncSession] | None = None


def create_engine_from_settings(config: Settings) -> AsyncEngine:
    """
    Build an async engine for the configured database.

    Pool parameters only apply to the default queue pool; NullPool is used
    in testing mode and SQLite URLs take the dialect's own pool.
    Source: https://docs.sqlalchemy.org/en/20/core/pooling.html
    """
    url = config.database_url
    logger.info(f"Creating database engine: {url.split('@')[-1]}")

    if config.is_testing:
        return create_async_engine(url, echo=config.DEBUG, poolclass=NullPool)
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=config.DEBUG)
    return create_async_engine(
        url,
        echo=config.DEBUG,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        pool_timeout=config.DB_POOL_TIMEOUT,
        pool_pre_ping=True,
    )


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by the gateway and the database audit sink."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Get or create the process-wide async engine."""
    global _engine

    if _engine is None:
        _engine = create_engine_from_settings(settings)
        logger.info("Database engine created successfully")

    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get or create the process-wide session maker."""
    global _async_session_maker

    if _async_session_maker is None:
        _async_session_maker = create_session_maker(get_engine())
        logger.info("Session maker created successfully")

    return _async_session_maker


async def wait_for_connection(
    engine: AsyncEngine,
    retries: int = 10,
    interval: float = 2.0,
) -> None:
    """
    Block until the database answers ``SELECT 1``.

    Raises:
        StorageError: if the database is still unreachable after ``retries``
            attempts.
    """
    last_error: Exception | None = None

    for attempt in range(1, retries + 1):
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            last_error = e
            logger.info(f"Database not ready (attempt {attempt}/{retries}): {e}")
            if attempt < retries:
                await asyncio.sleep(interval)
            continue

        logger.info("Database is ready")
        return

    raise StorageError(f"database not reachable after {retries} attempts") from last_error


async def init_models(engine: AsyncEngine) -> None:
    """
    Create missing tables and indexes.

    ``create_all`` checks for existing tables first, so running it against an
    already migrated database is a no-op.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema is up to date")


async def close_db_connection() -> None:
    """Dispose the connection pool at application shutdown."""
    global _engine, _async_session_maker

    if _engine is not None:
        logger.info("Closing database connection pool...")
        await _engine.dispose()
        _engine = None
        _async_session_maker = None
        logger.info("Database connection pool closed")


"""
Database session management.
"""
# flashquery/db/session.py
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Type, TypeVar

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from flashquery.core.config import settings
from flashquery.db.base import Base

logger = logging.getLogger("flashquery.db")


def _engine_options(database_url: str) -> Dict[str, Any]:
    # In-memory SQLite only lives as long as its single connection
    if database_url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_size": 20,
        "max_overflow": 30,
        "pool_timeout": 30,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


# Create async engine once per process
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    **_engine_options(settings.DATABASE_URL)
)

# Create async session factory
async_session_factory = sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)

# Context manager for database sessions
@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database sessions.

    Automatically handles commit/rollback and ensures session is closed.

    Usage:
        async with get_session() as session:
            # Use session here
    """
    session = async_session_factory()
    try:
        yield session
        await session.commit()
        logger.debug("Database session committed")
    except Exception as e:
        await session.rollback()
        logger.debug(f"Database session rolled back due to: {str(e)}")
        raise
    finally:
        await session.close()
        logger.debug("Database session closed")

# Create a type variable for repository types
T = TypeVar('T')

# Context manager for repositories
@asynccontextmanager
async def get_repository_context(repo_type: Type[T]) -> AsyncGenerator[T, None]:
    """
    Get a repository with managed session lifecycle.

    Usage:
        async with get_repository_context(UserRepository) as repo:
            # Use repo here
    """
    async with get_session() as session:
        yield repo_type(session)

async def create_tables() -> None:
    """Create any missing tables for the registered models."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def initialize_database() -> None:
    """
    Initialize the database connection pool and run any startup tasks.

    This should be called during application startup.
    """
    logger.info("Initializing database connection pool")

    # Test database connection
    async with get_session() as session:
        try:
            await session.execute(text("SELECT 1"))
            logger.info("Database connection successful")
        except Exception as e:
            logger.error(f"Database connection failed: {e}")
            raise

    if settings.DB_CREATE_TABLES:
        await create_tables()
        logger.info("Database tables verified")

    logger.info("Database initialization complete")


async def close_database_connections() -> None:
    """
    Close all database connections in the pool.

    This should be called during application shutdown.
    """
    logger.info("Closing database connections")

    # Dispose the engine to close all connections in the pool
    await engine.dispose()

    logger.info("Database connections closed")

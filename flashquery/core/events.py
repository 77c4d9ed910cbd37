"""
Event handlers for application lifecycle events.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from flashquery.core.config import settings

logger = logging.getLogger("flashquery")


async def startup_event_handler() -> None:
    """
    Handle application startup.

    Verify the database connection and create missing tables.
    """
    logger.info(f"Starting {settings.PROJECT_NAME}")

    from flashquery.db.session import initialize_database
    await initialize_database()

    logger.info(f"{settings.PROJECT_NAME} v{settings.VERSION} startup complete")


async def shutdown_event_handler() -> None:
    """Close the database connection pool."""
    logger.info(f"Shutting down {settings.PROJECT_NAME}")

    try:
        from flashquery.db.session import close_database_connections
        await close_database_connections()
    except Exception as e:
        logger.error(f"Error closing database connections: {e}")

    logger.info("Shutdown complete")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await startup_event_handler()
    yield
    await shutdown_event_handler()

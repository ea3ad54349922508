"""
Event handlers for application lifecycle events.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.core.config import settings

logger = logging.getLogger("prospectr")


async def startup_event_handler() -> None:
    """
    Handle application startup.

    Verifies the database connection before serving requests.
    """
    logger.info(f"Starting {settings.PROJECT_NAME} application")

    from app.db.session import initialize_database
    await initialize_database()

    logger.info(f"{settings.PROJECT_NAME} v{settings.VERSION} startup complete")


async def shutdown_event_handler() -> None:
    """
    Handle application shutdown.

    Closes pooled database connections.
    """
    logger.info(f"Shutting down {settings.PROJECT_NAME} application")

    from app.db.session import close_database_connections
    await close_database_connections()

    logger.info("Application shutdown complete")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the startup and shutdown handlers around the application's lifetime."""
    await startup_event_handler()
    try:
        yield
    finally:
        await shutdown_event_handler()

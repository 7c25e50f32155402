# /botengine/utils/lifecycle.py

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from botengine.config.settings import settings, validate_environment
from botengine.utils.logging import setup_logging
from botengine.services.db_service import db_service
from botengine.services.cache_service import cache_service

# This file manages the application's lifespan: logging and environment
# checks plus index creation on startup, closing connections on shutdown.

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    setup_logging()
    validate_environment(settings)

    logger.info("Bot engine starting up...")

    await db_service.create_indexes()

    logger.info("Bot engine startup complete. Ready to accept requests.")

    yield  # Application is now running

    logger.info("Bot engine shutting down...")

    await cache_service.close()
    if db_service.client:
        db_service.client.close()

import logging
from typing import Optional

from app.core.config import Settings
from .mongodb import init_mongodb, close_mongo_connection, check_mongo_connection, get_database

logger = logging.getLogger(__name__)


async def init_databases(settings: Settings):
    """Initialize storage for the configured backend"""
    if settings.storage_backend != "mongodb":
        logger.info("In-memory storage selected, skipping MongoDB initialization")
        return

    try:
        await init_mongodb(settings)
        logger.info("MongoDB initialization completed")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise


async def close_databases():
    """Close all database connections"""
    await close_mongo_connection()
    logger.info("All database connections closed")


async def check_database_health(settings: Optional[Settings] = None):
    """Check health of the configured storage backend"""
    if settings is not None and settings.storage_backend != "mongodb":
        return {"mongodb": None, "overall": True}

    mongo_status = await check_mongo_connection()
    return {
        "mongodb": mongo_status,
        "overall": mongo_status
    }

__all__ = [
    "init_databases",
    "close_databases",
    "check_database_health",
    "get_database"
]

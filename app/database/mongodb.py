"""
MongoDB 연결 및 Beanie ODM 초기화

chat_rooms / messages 컬렉션은 Beanie 문서로, products / users / orders 컬렉션은
같은 database 객체로 직접 조회합니다 (MongoCatalog).
"""

import logging
from typing import List, Optional

from beanie import Document, init_beanie
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from app.core.config import Settings, settings as default_settings
from app.models import ChatRoomDocument, MessageDocument

logger = logging.getLogger(__name__)

client: Optional[AsyncIOMotorClient] = None
database: Optional[AsyncIOMotorDatabase] = None

DOCUMENT_MODELS: List[type[Document]] = [ChatRoomDocument, MessageDocument]


async def init_mongodb(settings: Optional[Settings] = None):
    """클라이언트 생성 후 Beanie 초기화 (문서 인덱스 생성 포함)"""
    global client, database
    settings = settings or default_settings

    client = AsyncIOMotorClient(
        settings.mongo_url,
        maxPoolSize=10,
        minPoolSize=1,
        maxIdleTimeMS=30000,
        serverSelectionTimeoutMS=5000,
    )
    database = client[settings.mongodb_db_name]

    try:
        await init_beanie(database=database, document_models=DOCUMENT_MODELS)
    except Exception as e:
        logger.error(f"Failed to initialize MongoDB ({settings.mongodb_db_name}): {e}")
        await close_mongo_connection()
        raise
    logger.info(f"MongoDB initialized with Beanie: {settings.mongodb_db_name}")


async def check_mongo_connection() -> bool:
    if client is None:
        return False
    try:
        await client.admin.command('ping')
        return True
    except Exception as e:
        logger.error(f"MongoDB connection check failed: {e}")
        return False


async def close_mongo_connection():
    global client, database
    if client is not None:
        client.close()
        client = None
        database = None
        logger.info("MongoDB connection closed")


def get_database() -> AsyncIOMotorDatabase:
    if database is None:
        raise RuntimeError("MongoDB not initialized. Call init_mongodb() first.")
    return database

"""MongoDB database connection using Motor (async driver)."""

import logging
from contextlib import contextmanager
from typing import Iterator

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from support_chat.core.config import settings
from support_chat.core.exceptions import StorageError

logger = logging.getLogger(__name__)

CHATS_COLLECTION = "chats"
USERS_COLLECTION = "users"

# Global MongoDB client and database instances
mongodb_client: AsyncIOMotorClient | None = None
mongodb_db: AsyncIOMotorDatabase | None = None


async def connect_mongodb() -> None:
    """Connect to MongoDB."""
    global mongodb_client, mongodb_db

    mongodb_client = AsyncIOMotorClient(
        settings.mongodb_url,
        tz_aware=True,
        maxPoolSize=50,
        minPoolSize=10,
        maxIdleTimeMS=30000,
        connectTimeoutMS=5000,
        serverSelectionTimeoutMS=5000,
    )
    mongodb_db = mongodb_client[settings.mongodb_database]

    try:
        await mongodb_client.admin.command("ping")
        logger.info("Connected to MongoDB: %s", settings.mongodb_database)
    except Exception as e:
        logger.error("Failed to connect to MongoDB: %s", e)
        raise

    await ensure_indexes(mongodb_db)


async def close_mongodb() -> None:
    """Close MongoDB connection."""
    global mongodb_client, mongodb_db

    if mongodb_client:
        mongodb_client.close()
        mongodb_client = None
        mongodb_db = None
        logger.info("MongoDB connection closed")


def get_mongodb() -> AsyncIOMotorDatabase:
    """
    Get MongoDB database instance.

    Usage:
        @app.get("/")
        async def endpoint(db: AsyncIOMotorDatabase = Depends(get_mongodb)):
            collection = db["chats"]
            ...
    """
    if mongodb_db is None:
        raise RuntimeError("MongoDB is not connected")
    return mongodb_db


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes the chat and user queries rely on."""
    chats = db[CHATS_COLLECTION]
    await chats.create_index("participants.user_id")
    await chats.create_index([("status", ASCENDING), ("last_activity", DESCENDING)])
    await chats.create_index([("assigned_to", ASCENDING), ("status", ASCENDING)])
    await chats.create_index([("status", ASCENDING), ("priority", ASCENDING)])

    users = db[USERS_COLLECTION]
    await users.create_index("email", unique=True)

    logger.info("MongoDB indexes ensured")


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Re-raise driver failures as ``StorageError`` so they surface classified."""
    try:
        yield
    except PyMongoError as e:
        logger.error("MongoDB %s failed: %s", operation, e)
        raise StorageError(f"Database operation failed: {operation}") from e

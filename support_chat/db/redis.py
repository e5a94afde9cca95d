"""Redis connection for rate limiting and realtime fan-out across workers."""

import logging

import redis.asyncio as redis

from support_chat.core.config import settings

logger = logging.getLogger(__name__)

# Global Redis client
redis_client: redis.Redis | None = None


async def connect_redis() -> None:
    """Connect to Redis."""
    global redis_client

    redis_client = redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=50,
        socket_timeout=5.0,
        socket_connect_timeout=5.0,
        retry_on_timeout=True,
    )

    try:
        await redis_client.ping()
        logger.info("Connected to Redis: %s", settings.redis_url)
    except Exception as e:
        logger.error("Failed to connect to Redis: %s", e)
        raise


async def close_redis() -> None:
    """Close Redis connection."""
    global redis_client

    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")


def get_redis() -> redis.Redis:
    """Get Redis client instance."""
    if redis_client is None:
        raise RuntimeError("Redis is not connected")
    return redis_client

"""Database module - MongoDB and Redis connections."""

from support_chat.db.mongodb import get_mongodb
from support_chat.db.redis import get_redis

__all__ = [
    "get_mongodb",
    "get_redis",
]

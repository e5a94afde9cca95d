"""User repository - data access layer for MongoDB."""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from support_chat.db.mongodb import USERS_COLLECTION, storage_errors
from support_chat.domains.user.models import User, UserRole


class UserRepositoryInterface(ABC):
    """User repository interface (Port)."""

    @abstractmethod
    async def get_by_id(self, user_id: str) -> User | None:
        """Get user by ID."""
        pass

    @abstractmethod
    async def get_by_email(self, email: str) -> User | None:
        """Get user by email."""
        pass

    @abstractmethod
    async def get_many(self, user_ids: list[str]) -> dict[str, User]:
        """Get users keyed by ID. Unknown IDs are omitted."""
        pass

    @abstractmethod
    async def find_or_create_by_email(
        self,
        name: str,
        email: str,
        password_hash: str,
    ) -> User:
        """Return the user with this email, creating it if absent."""
        pass

    @abstractmethod
    async def upsert_admin(self, name: str, email: str, password_hash: str) -> User:
        """Create an admin account, or promote and reset an existing one."""
        pass


def _to_user(doc: dict) -> User:
    doc["_id"] = str(doc["_id"])
    return User(**doc)


class MongoUserRepository(UserRepositoryInterface):
    """MongoDB implementation of user repository (Adapter)."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db
        self._collection = db[USERS_COLLECTION]

    async def get_by_id(self, user_id: str) -> User | None:
        if not ObjectId.is_valid(user_id):
            return None

        with storage_errors("get user"):
            doc = await self._collection.find_one({"_id": ObjectId(user_id)})

        return _to_user(doc) if doc else None

    async def get_by_email(self, email: str) -> User | None:
        with storage_errors("get user by email"):
            doc = await self._collection.find_one({"email": email.strip().lower()})

        return _to_user(doc) if doc else None

    async def get_many(self, user_ids: list[str]) -> dict[str, User]:
        object_ids = [ObjectId(uid) for uid in set(user_ids) if ObjectId.is_valid(uid)]
        if not object_ids:
            return {}

        users: dict[str, User] = {}
        with storage_errors("get users"):
            async for doc in self._collection.find({"_id": {"$in": object_ids}}):
                user = _to_user(doc)
                users[user.id] = user
        return users

    async def find_or_create_by_email(
        self,
        name: str,
        email: str,
        password_hash: str,
    ) -> User:
        """Atomic upsert keyed by the (unique) lower-cased email."""
        now = datetime.now(timezone.utc)
        new_user = User(
            email=email.strip().lower(),
            name=name.strip(),
            role=UserRole.USER,
            password_hash=password_hash,
            created_at=now,
            updated_at=now,
        )

        with storage_errors("find or create user"):
            doc = await self._collection.find_one_and_update(
                {"email": new_user.email},
                {"$setOnInsert": new_user.model_dump(exclude={"id"})},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )

        return _to_user(doc)

    async def upsert_admin(self, name: str, email: str, password_hash: str) -> User:
        now = datetime.now(timezone.utc)

        with storage_errors("upsert admin"):
            doc = await self._collection.find_one_and_update(
                {"email": email.strip().lower()},
                {
                    "$set": {
                        "name": name.strip(),
                        "role": UserRole.ADMIN.value,
                        "password_hash": password_hash,
                        "email_verified": True,
                        "updated_at": now,
                    },
                    "$setOnInsert": {"created_at": now},
                },
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )

        return _to_user(doc)

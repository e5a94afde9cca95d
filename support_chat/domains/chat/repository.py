"""Chat repository - data access layer for MongoDB.

Each mutating method is a single ``find_one_and_update`` against one chat
document, so concurrent writers never lose each other's updates and the
caller receives the document exactly as its own write left it.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument

from support_chat.db.mongodb import CHATS_COLLECTION, storage_errors
from support_chat.domains.chat.access import ChatScope
from support_chat.domains.chat.models import (
    Chat,
    ChatPriority,
    ChatStatus,
    Message,
    Participant,
)

HIGH_PRIORITIES = [ChatPriority.HIGH.value, ChatPriority.URGENT.value]


class ChatRepositoryInterface(ABC):
    """Chat repository interface (Port)."""

    @abstractmethod
    async def create(self, chat: Chat) -> Chat:
        """Insert a new chat."""
        pass

    @abstractmethod
    async def get(self, chat_id: str, scope: ChatScope) -> Chat | None:
        """Get a chat by ID if it is inside ``scope``."""
        pass

    @abstractmethod
    async def find_active_for_participant(self, user_id: str) -> Chat | None:
        """Most recently active chat with status active that the user participates in."""
        pass

    @abstractmethod
    async def list_chats(self, scope: ChatScope) -> list[Chat]:
        """Chats inside ``scope``, most recently active first."""
        pass

    @abstractmethod
    async def append_message(
        self,
        chat_id: str,
        scope: ChatScope,
        message: Message,
        join: Participant | None = None,
    ) -> Chat | None:
        """
        Append ``message`` in one atomic update.

        The store assigns ``seq`` and ``sent_at``, advances ``last_activity``
        and, when ``join`` is given, adds that participant if absent.
        Returns None when the chat does not exist inside ``scope``.
        """
        pass

    @abstractmethod
    async def mark_read(self, chat_id: str, scope: ChatScope, user_id: str) -> Chat | None:
        """Add a read marker for ``user_id`` to every message lacking one."""
        pass

    @abstractmethod
    async def update_status(
        self,
        chat_id: str,
        status: ChatStatus | None = None,
        assigned_to: str | None = None,
    ) -> Chat | None:
        """Set status and/or assignee."""
        pass

    @abstractmethod
    async def get_statistics(self, recent_limit: int = 5) -> dict[str, Any]:
        """Dashboard counters plus the most recently active chats."""
        pass


def _to_chat(doc: dict) -> Chat:
    doc["_id"] = str(doc["_id"])
    return Chat(**doc)


def _scope_query(chat_id: str, scope: ChatScope) -> dict[str, Any] | None:
    """Build the single-chat filter, or None for IDs that cannot exist."""
    if not ObjectId.is_valid(chat_id):
        return None

    query: dict[str, Any] = {"_id": ObjectId(chat_id)}
    if scope.participant_id is not None:
        query["participants.user_id"] = scope.participant_id
    return query


def _list_query(scope: ChatScope) -> dict[str, Any]:
    if scope.participant_id is None:
        return {}
    return {"participants.user_id": scope.participant_id}


class MongoChatRepository(ChatRepositoryInterface):
    """MongoDB implementation of chat repository (Adapter)."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db
        self._collection = db[CHATS_COLLECTION]

    async def create(self, chat: Chat) -> Chat:
        chat_dict = chat.model_dump(exclude={"id"}, by_alias=True)

        with storage_errors("create chat"):
            result = await self._collection.insert_one(chat_dict)

        chat.id = str(result.inserted_id)
        return chat

    async def get(self, chat_id: str, scope: ChatScope) -> Chat | None:
        query = _scope_query(chat_id, scope)
        if query is None:
            return None

        with storage_errors("get chat"):
            doc = await self._collection.find_one(query)

        return _to_chat(doc) if doc else None

    async def find_active_for_participant(self, user_id: str) -> Chat | None:
        with storage_errors("find active chat"):
            doc = await self._collection.find_one(
                {"participants.user_id": user_id, "status": ChatStatus.ACTIVE.value},
                sort=[("last_activity", DESCENDING)],
            )

        return _to_chat(doc) if doc else None

    async def list_chats(self, scope: ChatScope) -> list[Chat]:
        chats = []
        with storage_errors("list chats"):
            cursor = self._collection.find(_list_query(scope)).sort("last_activity", DESCENDING)
            async for doc in cursor:
                chats.append(_to_chat(doc))
        return chats

    async def append_message(
        self,
        chat_id: str,
        scope: ChatScope,
        message: Message,
        join: Participant | None = None,
    ) -> Chat | None:
        query = _scope_query(chat_id, scope)
        if query is None:
            return None

        # Pipeline update: every "$field" below reads the pre-update document,
        # and $$NOW is one server timestamp for the whole write, so seq,
        # sent_at and last_activity are allocated together in commit order.
        # sent_at never goes below last_activity, which may come from the app clock.
        next_seq = {"$add": [{"$ifNull": ["$message_seq", 0]}, 1]}
        sent_at = {"$max": ["$last_activity", "$$NOW"]}
        message_doc = message.model_dump(exclude={"seq", "sent_at"})
        stage: dict[str, Any] = {
            "message_seq": next_seq,
            "last_activity": sent_at,
            "updated_at": "$$NOW",
            "messages": {
                "$concatArrays": [
                    {"$ifNull": ["$messages", []]},
                    [
                        {
                            "$mergeObjects": [
                                {"$literal": message_doc},
                                {"seq": next_seq, "sent_at": sent_at},
                            ]
                        }
                    ],
                ]
            },
        }

        if join is not None:
            stage["participants"] = self._join_expression(join)

        with storage_errors("append message"):
            doc = await self._collection.find_one_and_update(
                query,
                [{"$set": stage}],
                return_document=ReturnDocument.AFTER,
            )

        return _to_chat(doc) if doc else None

    @staticmethod
    def _join_expression(join: Participant) -> dict[str, Any]:
        """Participants with ``join`` appended unless (user_id, role) is present."""
        participants = {"$ifNull": ["$participants", []]}
        already_joined = {
            "$anyElementTrue": [
                {
                    "$map": {
                        "input": participants,
                        "as": "p",
                        "in": {
                            "$and": [
                                {"$eq": ["$$p.user_id", {"$literal": join.user_id}]},
                                {"$eq": ["$$p.role", {"$literal": join.role}]},
                            ]
                        },
                    }
                }
            ]
        }
        new_participant = {
            "$mergeObjects": [
                {"$literal": join.model_dump(exclude={"joined_at"})},
                {"joined_at": "$$NOW"},
            ]
        }
        return {
            "$cond": [
                already_joined,
                participants,
                {"$concatArrays": [participants, [new_participant]]},
            ]
        }

    async def mark_read(self, chat_id: str, scope: ChatScope, user_id: str) -> Chat | None:
        query = _scope_query(chat_id, scope)
        if query is None:
            return None

        marker = {"user_id": user_id, "read_at": datetime.now(timezone.utc)}

        with storage_errors("mark read"):
            doc = await self._collection.find_one_and_update(
                query,
                {"$push": {"messages.$[unread].read_by": marker}},
                array_filters=[{"unread.read_by.user_id": {"$ne": user_id}}],
                return_document=ReturnDocument.AFTER,
            )

        return _to_chat(doc) if doc else None

    async def update_status(
        self,
        chat_id: str,
        status: ChatStatus | None = None,
        assigned_to: str | None = None,
    ) -> Chat | None:
        query = _scope_query(chat_id, ChatScope())
        if query is None:
            return None

        update: dict[str, Any] = {"updated_at": datetime.now(timezone.utc)}
        if status:
            update["status"] = status.value if isinstance(status, ChatStatus) else status
        if assigned_to:
            update["assigned_to"] = assigned_to

        with storage_errors("update chat status"):
            doc = await self._collection.find_one_and_update(
                query,
                {"$set": update},
                return_document=ReturnDocument.AFTER,
            )

        return _to_chat(doc) if doc else None

    async def get_statistics(self, recent_limit: int = 5) -> dict[str, Any]:
        active = ChatStatus.ACTIVE.value

        with storage_errors("chat statistics"):
            total = await self._collection.count_documents({})
            active_count = await self._collection.count_documents({"status": active})
            closed_count = await self._collection.count_documents(
                {"status": ChatStatus.CLOSED.value}
            )
            unassigned = await self._collection.count_documents(
                {"status": active, "assigned_to": None}
            )
            high_priority = await self._collection.count_documents(
                {"status": active, "priority": {"$in": HIGH_PRIORITIES}}
            )

            recent = []
            cursor = (
                self._collection.find({"status": active}, {"messages": 0})
                .sort("last_activity", DESCENDING)
                .limit(recent_limit)
            )
            async for doc in cursor:
                recent.append(_to_chat(doc))

        return {
            "total_chats": total,
            "active_chats": active_count,
            "closed_chats": closed_count,
            "unassigned_chats": unassigned,
            "high_priority_chats": high_priority,
            "recent_chats": recent,
        }

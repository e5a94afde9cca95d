"""MongoChatRepository query-shape tests with a mocked collection."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from support_chat.core.exceptions import StorageError
from support_chat.domains.chat.access import ChatScope
from support_chat.domains.chat.models import ChatStatus, Message, Participant
from support_chat.domains.chat.repository import MongoChatRepository

CHAT_ID = str(ObjectId())


def _doc(**overrides) -> dict:
    now = datetime.now(timezone.utc)
    doc = {
        "_id": ObjectId(CHAT_ID),
        "participants": [{"user_id": "u1", "role": "user", "joined_at": now}],
        "messages": [
            {
                "id": str(ObjectId()),
                "seq": 1,
                "sender_id": "u1",
                "sender_role": "user",
                "content": "Hello",
                "sent_at": now,
            }
        ],
        "message_seq": 1,
        "status": "active",
        "priority": "medium",
        "subject": "Support Request",
        "last_activity": now,
        "created_at": now,
        "updated_at": now,
    }
    doc.update(overrides)
    return doc


@pytest.fixture
def collection() -> MagicMock:
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=_doc())
    collection.find_one_and_update = AsyncMock(return_value=_doc())
    return collection


@pytest.fixture
def repository(collection) -> MongoChatRepository:
    return MongoChatRepository({"chats": collection})


async def test_get_applies_participant_scope(repository, collection):
    chat = await repository.get(CHAT_ID, ChatScope(participant_id="u1"))

    assert chat.id == CHAT_ID
    collection.find_one.assert_awaited_once_with(
        {"_id": ObjectId(CHAT_ID), "participants.user_id": "u1"}
    )


async def test_invalid_id_is_not_queried(repository, collection):
    assert await repository.get("not-an-object-id", ChatScope()) is None
    assert await repository.mark_read("not-an-object-id", ChatScope(), "u1") is None
    collection.find_one.assert_not_awaited()
    collection.find_one_and_update.assert_not_awaited()


async def test_append_is_single_pipeline_update(repository, collection):
    message = Message(sender_id="u1", sender_role="user", content="Second")

    await repository.append_message(CHAT_ID, ChatScope(participant_id="u1"), message)

    call = collection.find_one_and_update.await_args
    query, pipeline = call.args
    assert query == {"_id": ObjectId(CHAT_ID), "participants.user_id": "u1"}
    assert call.kwargs["return_document"] == ReturnDocument.AFTER

    assert isinstance(pipeline, list) and len(pipeline) == 1
    stage = pipeline[0]["$set"]
    assert stage["last_activity"] == {"$max": ["$last_activity", "$$NOW"]}
    assert stage["updated_at"] == "$$NOW"
    assert stage["message_seq"] == {"$add": [{"$ifNull": ["$message_seq", 0]}, 1]}
    assert "participants" not in stage

    appended = stage["messages"]["$concatArrays"][1][0]["$mergeObjects"]
    assert appended[0]["$literal"]["content"] == "Second"
    assert "seq" not in appended[0]["$literal"]
    assert appended[1] == {"seq": stage["message_seq"], "sent_at": stage["last_activity"]}


async def test_append_with_join_adds_participant_conditionally(repository, collection):
    message = Message(sender_id="a1", sender_role="admin", content="Hi")
    join = Participant(user_id="a1", role="admin")

    await repository.append_message(CHAT_ID, ChatScope(), message, join)

    stage = collection.find_one_and_update.await_args.args[1][0]["$set"]
    condition, unchanged, extended = stage["participants"]["$cond"]
    assert unchanged == {"$ifNull": ["$participants", []]}
    assert extended["$concatArrays"][1][0]["$mergeObjects"][0] == {
        "$literal": {"user_id": "a1", "role": "admin"}
    }
    assert "$anyElementTrue" in condition


async def test_append_to_missing_chat(repository, collection):
    collection.find_one_and_update.return_value = None
    message = Message(sender_id="u1", sender_role="user", content="Hi")

    assert await repository.append_message(CHAT_ID, ChatScope(), message) is None


async def test_mark_read_uses_array_filter(repository, collection):
    await repository.mark_read(CHAT_ID, ChatScope(participant_id="u1"), "u1")

    call = collection.find_one_and_update.await_args
    update = call.args[1]
    marker = update["$push"]["messages.$[unread].read_by"]
    assert marker["user_id"] == "u1"
    assert call.kwargs["array_filters"] == [{"unread.read_by.user_id": {"$ne": "u1"}}]


async def test_update_status(repository, collection):
    collection.find_one_and_update.return_value = _doc(status="closed")

    chat = await repository.update_status(CHAT_ID, status=ChatStatus.CLOSED)

    update = collection.find_one_and_update.await_args.args[1]
    assert update["$set"]["status"] == "closed"
    assert "assigned_to" not in update["$set"]
    assert chat.status == ChatStatus.CLOSED


async def test_driver_errors_become_storage_errors(repository, collection):
    collection.find_one_and_update.side_effect = PyMongoError("connection reset")
    message = Message(sender_id="u1", sender_role="user", content="Hi")

    with pytest.raises(StorageError) as exc_info:
        await repository.append_message(CHAT_ID, ChatScope(), message)
    assert exc_info.value.error_code == "STORAGE_FAILURE"

"""Service factories for FastAPI dependency injection."""

from typing import Annotated

from fastapi import Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from support_chat.db.mongodb import get_mongodb
from support_chat.domains.chat.fanout import BroadcastFanout
from support_chat.domains.chat.repository import MongoChatRepository
from support_chat.domains.chat.schemas import RequestContext
from support_chat.domains.chat.service import ChatService
from support_chat.domains.user.repository import MongoUserRepository
from support_chat.domains.user.service import UserService
from support_chat.integrations.storage import get_attachment_storage
from support_chat.middlewares.security import get_client_ip
from support_chat.sockets.server import get_fanout


def get_user_service(
    db: AsyncIOMotorDatabase = Depends(get_mongodb),
) -> UserService:
    """Create UserService with its repository."""
    return UserService(MongoUserRepository(db))


def get_chat_service(
    db: AsyncIOMotorDatabase = Depends(get_mongodb),
    user_service: UserService = Depends(get_user_service),
    fanout: BroadcastFanout = Depends(get_fanout),
) -> ChatService:
    """Create ChatService with repositories and collaborators."""
    return ChatService(
        chat_repository=MongoChatRepository(db),
        user_service=user_service,
        fanout=fanout,
        attachment_storage=get_attachment_storage(),
    )


def get_request_context(request: Request) -> RequestContext:
    """Client details recorded in the metadata of new chats."""
    return RequestContext(
        user_agent=request.headers.get("user-agent"),
        ip_address=get_client_ip(request),
    )


ChatServiceDep = Annotated[ChatService, Depends(get_chat_service)]
UserServiceDep = Annotated[UserService, Depends(get_user_service)]
RequestContextDep = Annotated[RequestContext, Depends(get_request_context)]

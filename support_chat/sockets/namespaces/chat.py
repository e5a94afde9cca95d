"""Chat namespace - realtime subscriptions to support chats."""

import logging
from typing import Callable

import socketio

from support_chat.db.mongodb import get_mongodb
from support_chat.domains.chat.access import ChatScope, resolve_viewer
from support_chat.domains.chat.fanout import ADMIN_CHANNEL, get_chat_channel
from support_chat.domains.chat.repository import (
    ChatRepositoryInterface,
    MongoChatRepository,
)
from support_chat.sockets.server import SocketAuth, connected_clients

logger = logging.getLogger(__name__)


def _mongo_repository() -> ChatRepositoryInterface:
    return MongoChatRepository(get_mongodb())


class ChatNamespace(socketio.AsyncNamespace):
    """
    Chat namespace.

    Handles:
    - Optional JWT authentication (guests connect without a token)
    - Staff subscription to new-session notifications
    - Joining/leaving chat rooms
    - Typing indicators

    Messages are not sent over the socket; clients post them over HTTP and
    receive them back through the room.
    """

    def __init__(
        self,
        namespace: str,
        repository_factory: Callable[[], ChatRepositoryInterface] = _mongo_repository,
    ):
        super().__init__(namespace)
        self._repository_factory = repository_factory

    async def on_connect(self, sid, environ, auth=None):
        """Handle client connection."""
        accepted, identity = SocketAuth.authenticate(auth)
        if not accepted:
            return False

        connected_clients[sid] = identity

        if identity and identity.is_admin:
            await self.enter_room(sid, ADMIN_CHANNEL)

        logger.info("[Chat] Connected: %s (%s)", sid, identity.id if identity else "guest")
        return True

    async def on_disconnect(self, sid, reason=None):
        """Handle client disconnection."""
        identity = connected_clients.pop(sid, None)
        logger.info("[Chat] Disconnected: %s (%s)", sid, identity.id if identity else "guest")

    async def on_join_chat(self, sid, data):
        """
        Join a chat room.

        Data: { chat_id: string }
        """
        if sid not in connected_clients:
            return {"error": "Not connected"}

        chat_id = (data or {}).get("chat_id")
        if not chat_id:
            return {"error": "chat_id required"}

        identity = connected_clients[sid]
        scope = resolve_viewer(identity).visibility_filter() if identity else ChatScope()

        chat = await self._repository_factory().get(chat_id, scope)
        if chat is None:
            return {"error": "Chat not found"}

        await self.enter_room(sid, get_chat_channel(chat_id))
        logger.debug("[Chat] %s joined chat room %s", sid, chat_id)
        return {"success": True, "chat_id": chat_id}

    async def on_leave_chat(self, sid, data):
        """
        Leave a chat room.

        Data: { chat_id: string }
        """
        chat_id = (data or {}).get("chat_id")
        if not chat_id:
            return {"error": "chat_id required"}

        await self.leave_room(sid, get_chat_channel(chat_id))
        return {"success": True}

    async def on_typing_start(self, sid, data):
        """Data: { chat_id: string }"""
        await self._relay_typing(sid, data, is_typing=True)

    async def on_typing_stop(self, sid, data):
        """Data: { chat_id: string }"""
        await self._relay_typing(sid, data, is_typing=False)

    async def _relay_typing(self, sid, data, is_typing: bool) -> None:
        if sid not in connected_clients:
            return

        chat_id = (data or {}).get("chat_id")
        if not chat_id:
            return

        room = get_chat_channel(chat_id)
        if room not in self.rooms(sid):
            return

        identity = connected_clients[sid]
        await self.emit(
            "typing",
            {
                "chat_id": chat_id,
                "user_id": identity.id if identity else None,
                "role": identity.role if identity else "user",
                "is_typing": is_typing,
            },
            room=room,
            skip_sid=sid,
        )

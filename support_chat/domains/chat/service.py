"""Chat domain service - support session lifecycle.

Covers session resolution (open a new chat vs. continue the active one),
message append, read tracking and admin status updates. Writes are delegated
to the repository's atomic primitives; realtime events are handed to the
fanout only after the write returned.
"""

import logging
from datetime import datetime, timezone

from support_chat.core.config import settings
from support_chat.core.exceptions import (
    InvalidInputError,
    MessageTooLongError,
    NotFoundError,
)
from support_chat.domains.chat.access import ChatScope, Viewer
from support_chat.domains.chat.fanout import (
    NEW_MESSAGE_EVENT,
    STATUS_CHANGED_EVENT,
    BroadcastFanout,
)
from support_chat.domains.chat.models import (
    Chat,
    ChatMetadata,
    ChatPriority,
    ChatSource,
    Message,
    MessageType,
    Participant,
    ParticipantRole,
)
from support_chat.domains.chat.repository import ChatRepositoryInterface
from support_chat.domains.chat.schemas import (
    ChatCreate,
    ChatStatistics,
    ChatStatusUpdate,
    ChatSummary,
    ChatView,
    MessageCreate,
    MessageView,
    ParticipantView,
    PublicChatCreate,
    PublicMessageCreate,
    RequestContext,
)
from support_chat.domains.user.models import UserSummary
from support_chat.domains.user.service import UserService
from support_chat.integrations.storage import AttachmentStorage

logger = logging.getLogger(__name__)


class ChatService:
    """Chat lifecycle service."""

    def __init__(
        self,
        chat_repository: ChatRepositoryInterface,
        user_service: UserService,
        fanout: BroadcastFanout,
        attachment_storage: AttachmentStorage | None = None,
    ):
        self._chat_repo = chat_repository
        self._users = user_service
        self._fanout = fanout
        self._storage = attachment_storage

    # ============================================================
    # Session resolution
    # ============================================================

    async def create_or_append(
        self,
        viewer: Viewer,
        data: ChatCreate,
        context: RequestContext | None = None,
    ) -> tuple[ChatView, bool]:
        """
        Open a support chat, or continue the requester's active one.

        Customers have at most one active chat: when one exists the message is
        appended to it instead. Admins always open a new chat.

        Args:
            viewer: Requester capability
            data: Initial message, subject and priority
            context: Client details for the chat metadata

        Returns:
            Tuple of (chat, created) where ``created`` is False if the message
            went to an existing chat

        Raises:
            InvalidInputError: If the message content is empty
        """
        content = self._require_content(data.message)

        if not viewer.is_admin:
            existing = await self._chat_repo.find_active_for_participant(viewer.user_id)
            if existing:
                chat = await self._append(
                    existing.id,
                    viewer.visibility_filter(),
                    Message(
                        sender_id=viewer.user_id,
                        sender_role=viewer.role,
                        content=content,
                    ),
                )
                return chat, False

        chat = await self._open_chat(
            user_id=viewer.user_id,
            role=viewer.role,
            content=content,
            subject=data.subject,
            priority=data.priority,
            context=context,
            source=ChatSource.DIRECT_CHAT,
        )
        return chat, True

    async def create_public_session(
        self,
        data: PublicChatCreate,
        context: RequestContext | None = None,
    ) -> ChatView:
        """
        Open a chat from the public widget.

        The guest is resolved to a durable user by email. Every public inquiry
        opens a new chat, even when the same email already has an active one.

        Raises:
            InvalidInputError: If name, email or message is missing
        """
        missing = [
            field
            for field in ("name", "email", "message")
            if not (getattr(data, field) or "").strip()
        ]
        if missing:
            raise InvalidInputError(
                "Name, email, and message are required",
                details={"missing": missing},
            )

        content = self._require_content(data.message)
        user = await self._users.find_or_create_by_email(data.name, data.email)

        return await self._open_chat(
            user_id=user.id,
            role=ParticipantRole.USER,
            content=content,
            subject=data.subject,
            priority=data.priority,
            context=context,
            source=ChatSource.PUBLIC_CHAT,
        )

    async def _open_chat(
        self,
        user_id: str,
        role: ParticipantRole,
        content: str,
        subject: str | None,
        priority: ChatPriority,
        context: RequestContext | None,
        source: ChatSource,
    ) -> ChatView:
        now = datetime.now(timezone.utc)
        context = context or RequestContext()

        chat = Chat(
            participants=[Participant(user_id=user_id, role=role, joined_at=now)],
            messages=[
                Message(
                    seq=1,
                    sender_id=user_id,
                    sender_role=role,
                    content=content,
                    sent_at=now,
                )
            ],
            message_seq=1,
            subject=(subject or "").strip() or settings.default_chat_subject,
            priority=priority,
            metadata=ChatMetadata(
                user_agent=context.user_agent,
                ip_address=context.ip_address,
                source=source,
            ),
            last_activity=now,
            created_at=now,
            updated_at=now,
        )

        chat = await self._chat_repo.create(chat)
        logger.info("Opened chat %s for user %s (%s)", chat.id, user_id, chat.metadata.source)

        view = await self._present(chat)
        self._fanout.publish_new_session(
            chat.id,
            {
                "chat_id": chat.id,
                "chat": view.model_dump(mode="json"),
                "message": view.messages[-1].model_dump(mode="json"),
            },
        )
        return view

    # ============================================================
    # Message append
    # ============================================================

    async def append_message(
        self,
        viewer: Viewer,
        chat_id: str,
        data: MessageCreate,
    ) -> ChatView:
        """
        Append a message to a chat visible to the viewer.

        An admin replying to a chat joins it as participant in the same write.

        Raises:
            InvalidInputError: If the content is empty
            NotFoundError: If the chat does not exist or is not visible
        """
        content = self._require_content(data.content)
        message = Message(
            sender_id=viewer.user_id,
            sender_role=viewer.role,
            content=content,
            message_type=data.message_type,
            attachments=data.attachments or [],
        )
        return await self._append(
            chat_id,
            viewer.visibility_filter(),
            message,
            join=self._admin_join(viewer),
        )

    async def append_public_message(
        self,
        chat_id: str,
        data: PublicMessageCreate,
    ) -> ChatView:
        """
        Append a guest reply without a bearer identity.

        The sender is always the chat's customer participant; a chat without
        one cannot receive anonymous replies.

        Raises:
            NotFoundError: If the chat or its customer participant is missing
        """
        content = self._require_content(data.content)

        chat = await self._chat_repo.get(chat_id, ChatScope())
        if not chat:
            raise NotFoundError("Chat", chat_id)

        participant = chat.first_participant(ParticipantRole.USER)
        if not participant:
            raise NotFoundError("Participant")

        message = Message(
            sender_id=participant.user_id,
            sender_role=ParticipantRole.USER,
            content=content,
        )
        return await self._append(
            chat_id,
            ChatScope(participant_id=participant.user_id),
            message,
        )

    async def append_message_with_attachment(
        self,
        viewer: Viewer,
        chat_id: str,
        content: str | None,
        data: bytes,
        filename: str,
        mimetype: str,
    ) -> ChatView:
        """
        Store an upload and append a message referencing it.

        Raises:
            NotFoundError: If the chat does not exist or is not visible
            FileTooLargeError / UnsupportedFileTypeError: From the storage
        """
        if self._storage is None:
            raise RuntimeError("Attachment storage is not configured")

        scope = viewer.visibility_filter()
        if await self._chat_repo.get(chat_id, scope) is None:
            raise NotFoundError("Chat", chat_id)

        attachment = await self._storage.save(data, filename, mimetype)

        message_type = MessageType.IMAGE if mimetype.startswith("image/") else MessageType.FILE
        text = (content or "").strip() or f"Sent a file: {attachment.original_name}"
        self._check_length(text)

        message = Message(
            sender_id=viewer.user_id,
            sender_role=viewer.role,
            content=text,
            message_type=message_type,
            attachments=[attachment],
        )

        try:
            return await self._append(chat_id, scope, message, join=self._admin_join(viewer))
        except Exception:
            await self._storage.delete(attachment)
            raise

    async def _append(
        self,
        chat_id: str,
        scope: ChatScope,
        message: Message,
        join: Participant | None = None,
    ) -> ChatView:
        chat = await self._chat_repo.append_message(chat_id, scope, message, join)
        if chat is None:
            raise NotFoundError("Chat", chat_id)

        # Take the channel slot before any further await so events follow commit order
        appended = next(m for m in chat.messages if m.id == message.id)
        self._fanout.publish(
            chat.id,
            NEW_MESSAGE_EVENT,
            lambda: self._new_message_event(chat.id, appended),
        )
        return await self._present(chat)

    async def _new_message_event(self, chat_id: str, message: Message) -> dict:
        users = await self._users.get_summaries([message.sender_id])
        view = _message_view(message, users)
        return {
            "chat_id": chat_id,
            "message": view.model_dump(mode="json"),
            "sender": view.sender.model_dump(mode="json"),
        }

    @staticmethod
    def _admin_join(viewer: Viewer) -> Participant | None:
        if viewer.is_admin:
            return Participant(user_id=viewer.user_id, role=ParticipantRole.ADMIN)
        return None

    # ============================================================
    # Read paths
    # ============================================================

    async def list_chats(self, viewer: Viewer) -> list[ChatView]:
        """
        Chats visible to the viewer, most recently active first.

        Listing never marks messages read, so ``unread_count`` reflects the
        last time each chat was opened.
        """
        chats = await self._chat_repo.list_chats(viewer.visibility_filter())
        return await self._present_many(chats, viewer)

    async def get_chat(self, viewer: Viewer, chat_id: str) -> ChatView:
        """
        Full single-chat view. Opening a chat marks all of it read for the viewer.

        Raises:
            NotFoundError: If the chat does not exist or is not visible
        """
        return await self.mark_as_read(viewer, chat_id)

    async def mark_as_read(self, viewer: Viewer, chat_id: str) -> ChatView:
        """Add the viewer's read marker to every message that lacks one."""
        chat = await self._chat_repo.mark_read(
            chat_id,
            viewer.visibility_filter(),
            viewer.user_id,
        )
        if chat is None:
            raise NotFoundError("Chat", chat_id)
        return await self._present(chat, viewer)

    async def unread_count(self, viewer: Viewer, chat_id: str) -> int:
        """Unread messages for the viewer, computed from the stored chat."""
        chat = await self._chat_repo.get(chat_id, viewer.visibility_filter())
        if chat is None:
            raise NotFoundError("Chat", chat_id)
        return chat.unread_count(viewer.user_id)

    # ============================================================
    # Admin operations
    # ============================================================

    async def update_status(
        self,
        viewer: Viewer,
        chat_id: str,
        data: ChatStatusUpdate,
    ) -> ChatView:
        """
        Change status and/or assignee.

        Raises:
            AuthorizationError: If the viewer is not an admin
            InvalidInputError: If neither status nor assignee is given
            NotFoundError: If the chat does not exist
        """
        viewer.require_admin()

        if not data.status and not data.assigned_to:
            raise InvalidInputError("Status or assigned_to is required")

        chat = await self._chat_repo.update_status(
            chat_id,
            status=data.status,
            assigned_to=data.assigned_to,
        )
        if chat is None:
            raise NotFoundError("Chat", chat_id)

        logger.info(
            "Chat %s updated by %s: status=%s assigned_to=%s",
            chat.id,
            viewer.user_id,
            chat.status,
            chat.assigned_to,
        )
        self._fanout.publish(
            chat.id,
            STATUS_CHANGED_EVENT,
            {
                "chat_id": chat.id,
                "status": chat.status,
                "assigned_to": chat.assigned_to,
            },
        )
        return await self._present(chat)

    async def get_stats(self, viewer: Viewer) -> ChatStatistics:
        """Dashboard counters. Admin only."""
        viewer.require_admin()

        stats = await self._chat_repo.get_statistics(settings.recent_chats_limit)
        recent: list[Chat] = stats.pop("recent_chats")
        users = await self._users.get_summaries(_user_ids(recent))

        return ChatStatistics(
            **stats,
            recent_chats=[_summary(chat, users) for chat in recent],
        )

    # ============================================================
    # Helpers
    # ============================================================

    @staticmethod
    def _check_length(content: str) -> None:
        if len(content) > settings.max_message_length:
            raise MessageTooLongError(settings.max_message_length, len(content))

    def _require_content(self, content: str | None) -> str:
        content = (content or "").strip()
        if not content:
            raise InvalidInputError("Message content is required")
        self._check_length(content)
        return content

    async def _present(self, chat: Chat, viewer: Viewer | None = None) -> ChatView:
        users = await self._users.get_summaries(_user_ids([chat]))
        return _view(chat, users, viewer)

    async def _present_many(self, chats: list[Chat], viewer: Viewer) -> list[ChatView]:
        users = await self._users.get_summaries(_user_ids(chats))
        return [_view(chat, users, viewer) for chat in chats]


def _user_ids(chats: list[Chat]) -> list[str]:
    ids: set[str] = set()
    for chat in chats:
        ids.update(p.user_id for p in chat.participants)
        ids.update(m.sender_id for m in chat.messages)
        if chat.assigned_to:
            ids.add(chat.assigned_to)
    return list(ids)


def _user(user_id: str, users: dict[str, UserSummary]) -> UserSummary:
    return users.get(user_id) or UserSummary(id=user_id)


def _participants(chat: Chat, users: dict[str, UserSummary]) -> list[ParticipantView]:
    return [
        ParticipantView(user=_user(p.user_id, users), role=p.role, joined_at=p.joined_at)
        for p in chat.participants
    ]


def _message_view(message: Message, users: dict[str, UserSummary]) -> MessageView:
    return MessageView(
        id=message.id,
        seq=message.seq,
        sender=_user(message.sender_id, users),
        sender_role=message.sender_role,
        content=message.content,
        message_type=message.message_type,
        attachments=message.attachments,
        read_by=message.read_by,
        sent_at=message.sent_at,
        edited_at=message.edited_at,
        is_deleted=message.is_deleted,
    )


def _view(chat: Chat, users: dict[str, UserSummary], viewer: Viewer | None) -> ChatView:
    return ChatView(
        id=chat.id,
        subject=chat.subject,
        status=chat.status,
        priority=chat.priority,
        participants=_participants(chat, users),
        messages=[_message_view(m, users) for m in chat.messages],
        message_count=len(chat.messages),
        assigned_to=_user(chat.assigned_to, users) if chat.assigned_to else None,
        tags=chat.tags,
        metadata=chat.metadata,
        last_activity=chat.last_activity,
        created_at=chat.created_at,
        updated_at=chat.updated_at,
        unread_count=chat.unread_count(viewer.user_id) if viewer else None,
    )


def _summary(chat: Chat, users: dict[str, UserSummary]) -> ChatSummary:
    return ChatSummary(
        id=chat.id,
        subject=chat.subject,
        status=chat.status,
        priority=chat.priority,
        participants=_participants(chat, users),
        assigned_to=_user(chat.assigned_to, users) if chat.assigned_to else None,
        message_count=chat.message_seq,
        last_activity=chat.last_activity,
    )

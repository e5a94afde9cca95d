"""Chat domain schemas - request/response models."""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from support_chat.domains.chat.models import (
    Attachment,
    ChatMetadata,
    ChatPriority,
    ChatStatus,
    MessageType,
    ParticipantRole,
    ReadMarker,
)
from support_chat.domains.user.models import UserSummary

T = TypeVar("T")


# ============================================================
# Envelope
# ============================================================


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope shared by every chat endpoint."""

    success: bool = True
    data: T
    count: int | None = None


# ============================================================
# Request Schemas
# ============================================================


class RequestContext(BaseModel):
    """Client details stamped into the metadata of new chats."""

    user_agent: str | None = None
    ip_address: str | None = None


class ChatCreate(BaseModel):
    """Schema for opening a chat (or continuing the active one)."""

    message: str | None = Field(None, description="Initial message content")
    subject: str | None = None
    priority: ChatPriority = ChatPriority.MEDIUM


class PublicChatCreate(BaseModel):
    """Schema for opening a chat from the public widget (no login)."""

    name: str | None = None
    email: str | None = None
    message: str | None = None
    subject: str | None = None
    priority: ChatPriority = ChatPriority.MEDIUM


class MessageCreate(BaseModel):
    """Schema for sending a message to a chat."""

    content: str | None = None
    message_type: MessageType = MessageType.TEXT
    attachments: list[Attachment] | None = None


class PublicMessageCreate(BaseModel):
    """Schema for a guest reply from the public widget."""

    content: str | None = None


class ChatStatusUpdate(BaseModel):
    """Schema for the admin status/assignment update."""

    status: ChatStatus | None = None
    assigned_to: str | None = None


# ============================================================
# Response Schemas
# ============================================================


class ParticipantView(BaseModel):
    """Participant with display fields resolved."""

    user: UserSummary
    role: ParticipantRole
    joined_at: datetime


class MessageView(BaseModel):
    """Message with sender display fields resolved."""

    id: str
    seq: int
    sender: UserSummary
    sender_role: ParticipantRole
    content: str
    message_type: MessageType
    attachments: list[Attachment]
    read_by: list[ReadMarker]
    sent_at: datetime
    edited_at: datetime | None = None
    is_deleted: bool = False


class ChatView(BaseModel):
    """Full chat returned by fetch and write endpoints."""

    id: str
    subject: str
    status: ChatStatus
    priority: ChatPriority
    participants: list[ParticipantView]
    messages: list[MessageView]
    message_count: int
    assigned_to: UserSummary | None = None
    tags: list[str]
    metadata: ChatMetadata
    last_activity: datetime
    created_at: datetime
    updated_at: datetime
    unread_count: int | None = None


class ChatSummary(BaseModel):
    """Chat projection without message bodies."""

    id: str
    subject: str
    status: ChatStatus
    priority: ChatPriority
    participants: list[ParticipantView]
    assigned_to: UserSummary | None = None
    message_count: int
    last_activity: datetime


class ChatStatistics(BaseModel):
    """Dashboard counters."""

    total_chats: int
    active_chats: int
    closed_chats: int
    unassigned_chats: int
    high_priority_chats: int
    recent_chats: list[ChatSummary]


class UnreadCountResponse(BaseModel):
    """Unread message count of one chat for the requester."""

    chat_id: str
    unread_count: int

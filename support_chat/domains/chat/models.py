"""Chat domain models for MongoDB.

A chat is a single document holding its participants and its ordered message
log. Every mutation of a chat is one atomic update of that document.
"""

from datetime import datetime, timezone
from enum import Enum

from bson import ObjectId
from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChatStatus(str, Enum):
    """Chat status enum."""

    ACTIVE = "active"
    CLOSED = "closed"
    ARCHIVED = "archived"


class ChatPriority(str, Enum):
    """Chat priority enum."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ParticipantRole(str, Enum):
    """Role a user holds inside a chat."""

    USER = "user"
    ADMIN = "admin"


class MessageType(str, Enum):
    """Message type enum."""

    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class ChatSource(str, Enum):
    """Where a chat was opened from."""

    DIRECT_CHAT = "direct_chat"
    PUBLIC_CHAT = "public_chat"
    CONTACT_FORM = "contact_form"
    WEBSITE = "website"


class Attachment(BaseModel):
    """Descriptor of a stored upload. File bytes never live in the chat."""

    filename: str
    original_name: str
    mimetype: str
    size: int  # bytes
    storage_path: str


class ReadMarker(BaseModel):
    """Record that a user has observed a message."""

    user_id: str
    read_at: datetime = Field(default_factory=_utcnow)


class Participant(BaseModel):
    """A (user, role) pairing granting visibility into a chat."""

    user_id: str
    role: ParticipantRole
    joined_at: datetime = Field(default_factory=_utcnow)

    class Config:
        use_enum_values = True


class Message(BaseModel):
    """Message embedded in a chat document."""

    id: str = Field(default_factory=lambda: str(ObjectId()))
    seq: int = 0  # Assigned by the store on append
    sender_id: str
    sender_role: ParticipantRole
    content: str
    message_type: MessageType = MessageType.TEXT
    attachments: list[Attachment] = Field(default_factory=list)
    read_by: list[ReadMarker] = Field(default_factory=list)
    sent_at: datetime = Field(default_factory=_utcnow)
    edited_at: datetime | None = None
    is_deleted: bool = False

    class Config:
        use_enum_values = True

    def is_read_by(self, user_id: str) -> bool:
        return any(marker.user_id == user_id for marker in self.read_by)


class ChatMetadata(BaseModel):
    """Request context captured when the chat was opened."""

    user_agent: str | None = None
    ip_address: str | None = None
    source: ChatSource = ChatSource.DIRECT_CHAT

    class Config:
        use_enum_values = True


class Chat(BaseModel):
    """Chat document model for MongoDB."""

    id: str | None = Field(None, alias="_id")

    participants: list[Participant] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    message_seq: int = 0

    status: ChatStatus = ChatStatus.ACTIVE
    priority: ChatPriority = ChatPriority.MEDIUM
    subject: str = "Support Request"
    assigned_to: str | None = None
    tags: list[str] = Field(default_factory=list)

    metadata: ChatMetadata = Field(default_factory=ChatMetadata)

    last_activity: datetime = Field(default_factory=_utcnow)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    class Config:
        populate_by_name = True
        use_enum_values = True

    def has_participant(self, user_id: str, role: ParticipantRole | str | None = None) -> bool:
        return any(
            p.user_id == user_id and (role is None or p.role == role)
            for p in self.participants
        )

    def first_participant(self, role: ParticipantRole) -> Participant | None:
        return next((p for p in self.participants if p.role == role), None)

    def unread_count(self, user_id: str) -> int:
        """Messages from other senders that the user has not read yet."""
        return sum(
            1
            for message in self.messages
            if message.sender_id != user_id and not message.is_read_by(user_id)
        )

    @property
    def last_message(self) -> Message | None:
        return self.messages[-1] if self.messages else None

"""Chat access control.

The requester's capability is resolved once per request into a viewer object.
Queries go through ``visibility_filter()`` and admin-only mutations through
``can_mutate_status()``; nothing else in the chat domain branches on roles.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from support_chat.core.exceptions import AuthorizationError
from support_chat.domains.chat.models import ParticipantRole
from support_chat.domains.user.models import Identity, UserRole


class ChatScope(BaseModel):
    """Restriction applied to chat queries.

    ``participant_id=None`` means every chat is visible.
    """

    participant_id: str | None = None

    class Config:
        frozen = True

    def allows(self, chat) -> bool:
        return self.participant_id is None or chat.has_participant(self.participant_id)


class Viewer(ABC):
    """Effective capability set of the requester."""

    role: ParticipantRole

    def __init__(self, identity: Identity):
        self.identity = identity

    @property
    def user_id(self) -> str:
        return self.identity.id

    @property
    def is_admin(self) -> bool:
        return self.role == ParticipantRole.ADMIN

    @abstractmethod
    def visibility_filter(self) -> ChatScope:
        """Scope of chats this viewer may list, fetch and append to."""
        pass

    @abstractmethod
    def can_mutate_status(self) -> bool:
        """Whether this viewer may change status or assignment."""
        pass

    def require_admin(self) -> None:
        if not self.can_mutate_status():
            raise AuthorizationError(
                f"User role '{self.identity.role}' is not authorized to access this route"
            )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(user_id={self.user_id!r})"


class AdminViewer(Viewer):
    """Staff member: sees and manages every chat."""

    role = ParticipantRole.ADMIN

    def visibility_filter(self) -> ChatScope:
        return ChatScope()

    def can_mutate_status(self) -> bool:
        return True


class ParticipantViewer(Viewer):
    """Customer: sees only chats they participate in."""

    role = ParticipantRole.USER

    def visibility_filter(self) -> ChatScope:
        return ChatScope(participant_id=self.user_id)

    def can_mutate_status(self) -> bool:
        return False


def resolve_viewer(identity: Identity) -> Viewer:
    """Derive the viewer capability for an authenticated identity."""
    if identity.role == UserRole.ADMIN:
        return AdminViewer(identity)
    return ParticipantViewer(identity)

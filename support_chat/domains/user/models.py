"""User domain models for MongoDB.

Users are both the staff (admins) and the customers who open support chats.
Customers arriving through the public chat widget are provisioned here by
email.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class UserRole(str, Enum):
    """User role enum."""

    USER = "user"
    ADMIN = "admin"


class User(BaseModel):
    """User document model for MongoDB."""

    id: str | None = Field(None, alias="_id")
    email: str
    name: str
    role: UserRole = UserRole.USER
    password_hash: str
    email_verified: bool = False

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Config:
        populate_by_name = True
        use_enum_values = True


class UserSummary(BaseModel):
    """Display fields of a user embedded in chat responses."""

    id: str
    name: str | None = None
    email: str | None = None


class Identity(BaseModel):
    """Authenticated requester as supplied by the bearer token."""

    id: str
    role: UserRole
    name: str | None = None
    email: str | None = None

    class Config:
        use_enum_values = True

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

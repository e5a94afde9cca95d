"""Auth domain schemas."""

from pydantic import BaseModel, EmailStr, Field

from support_chat.domains.user.models import UserSummary


class LoginRequest(BaseModel):
    """Schema for login request."""

    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    """Schema for login response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    role: str
    user: UserSummary

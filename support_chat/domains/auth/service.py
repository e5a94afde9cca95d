"""Auth domain service - token issuance."""

from support_chat.core.config import settings
from support_chat.core.security import create_access_token
from support_chat.domains.auth.schemas import LoginResponse
from support_chat.domains.user.models import UserSummary
from support_chat.domains.user.service import UserService


class AuthService:
    """Authentication service."""

    def __init__(self, user_service: UserService):
        self._users = user_service

    async def login(self, email: str, password: str) -> LoginResponse:
        """
        Authenticate with email and password.

        Returns:
            Access token carrying the user's id, role and display fields

        Raises:
            InvalidCredentialsError: If credentials are invalid
        """
        user = await self._users.authenticate(email, password)

        access_token = create_access_token(
            {
                "sub": user.id,
                "role": user.role,
                "name": user.name,
                "email": user.email,
            }
        )

        return LoginResponse(
            access_token=access_token,
            expires_in=settings.jwt_access_token_expire_minutes * 60,
            role=user.role,
            user=UserSummary(id=user.id, name=user.name, email=user.email),
        )

"""User domain service - identity lookups and guest provisioning."""

import logging

from support_chat.core.config import settings
from support_chat.core.exceptions import InvalidCredentialsError
from support_chat.core.security import hash_password, verify_password
from support_chat.domains.user.models import User, UserSummary
from support_chat.domains.user.repository import UserRepositoryInterface

logger = logging.getLogger(__name__)


class UserService:
    """Identity collaborator used by the chat domain and the auth endpoints."""

    def __init__(self, repository: UserRepositoryInterface):
        self._repository = repository

    async def find_or_create_by_email(self, name: str, email: str) -> User:
        """
        Resolve the durable user behind a public chat request.

        New users get the configured guest default password so the account
        can log in later.
        """
        existing = await self._repository.get_by_email(email)
        if existing:
            return existing

        user = await self._repository.find_or_create_by_email(
            name=name,
            email=email,
            password_hash=hash_password(settings.guest_default_password),
        )
        logger.info("Provisioned guest account %s", user.id)
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """
        Check email/password credentials.

        Raises:
            InvalidCredentialsError: If the user is unknown or the password is wrong
        """
        user = await self._repository.get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        return user

    async def get_summaries(self, user_ids: list[str]) -> dict[str, UserSummary]:
        """Display fields for the given users, keyed by ID."""
        users = await self._repository.get_many(user_ids)
        return {
            user_id: UserSummary(id=user_id, name=user.name, email=user.email)
            for user_id, user in users.items()
        }

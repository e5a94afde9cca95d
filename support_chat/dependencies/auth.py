"""Authentication dependencies for FastAPI."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from support_chat.core.exceptions import AuthenticationError, InvalidTokenError
from support_chat.core.security import verify_access_token
from support_chat.domains.chat.access import Viewer, resolve_viewer
from support_chat.domains.user.models import Identity, UserRole


# JWT Bearer scheme
bearer_scheme = HTTPBearer(auto_error=False)


def identity_from_token(token: str) -> Identity:
    """
    Build the requester identity from an access token.

    Raises:
        InvalidTokenError: If the token is invalid or lacks a subject/role
    """
    payload = verify_access_token(token)

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or role not in {r.value for r in UserRole}:
        raise InvalidTokenError("Invalid token payload")

    return Identity(
        id=user_id,
        role=role,
        name=payload.get("name"),
        email=payload.get("email"),
    )


async def get_current_identity(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Identity:
    """
    Verify the bearer token and return the requester identity.

    Returns:
        Identity with id, role, name, email
    """
    if not credentials:
        raise AuthenticationError("Not authorized to access this route")

    return identity_from_token(credentials.credentials)


async def get_current_viewer(
    identity: Annotated[Identity, Depends(get_current_identity)],
) -> Viewer:
    """Resolve the requester's chat capability once per request."""
    return resolve_viewer(identity)


# Type aliases for cleaner dependency injection
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
CurrentViewer = Annotated[Viewer, Depends(get_current_viewer)]

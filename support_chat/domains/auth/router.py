"""Auth API router - login and current identity."""

from fastapi import APIRouter

from support_chat.dependencies.auth import CurrentIdentity
from support_chat.dependencies.services import UserServiceDep
from support_chat.domains.auth.schemas import LoginRequest, LoginResponse
from support_chat.domains.auth.service import AuthService
from support_chat.domains.user.models import Identity

router = APIRouter()


@router.post("/login", response_model=LoginResponse)
async def login(
    request: LoginRequest,
    user_service: UserServiceDep,
):
    """
    Login with email and password.

    Guest accounts created by the public chat can log in with the guest
    default password.
    """
    service = AuthService(user_service)
    return await service.login(email=request.email, password=request.password)


@router.get("/me", response_model=Identity)
async def me(identity: CurrentIdentity):
    """Identity carried by the bearer token."""
    return identity

"""Pytest configuration and shared fixtures."""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Imported before any namespace module so the Socket.IO server registers first
from support_chat.main import create_app

from support_chat.dependencies.services import get_chat_service, get_user_service
from support_chat.domains.chat.access import AdminViewer, ParticipantViewer
from support_chat.domains.chat.fanout import BroadcastFanout
from support_chat.domains.chat.service import ChatService
from support_chat.domains.user.models import Identity, User, UserRole
from support_chat.domains.user.service import UserService
from support_chat.integrations.storage import LocalAttachmentStorage
from tests.fakes import InMemoryChatRepository, InMemoryUserRepository, RecordingTransport


@pytest.fixture
def chat_repo() -> InMemoryChatRepository:
    return InMemoryChatRepository()


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def fanout(transport) -> BroadcastFanout:
    return BroadcastFanout(transport)


@pytest.fixture
def storage(tmp_path) -> LocalAttachmentStorage:
    return LocalAttachmentStorage(
        upload_dir=tmp_path / "uploads",
        max_size_bytes=1024,
        allowed_extensions=["png", "jpg", "pdf", "txt"],
    )


@pytest.fixture
def user_service(user_repo) -> UserService:
    return UserService(user_repo)


@pytest.fixture
def chat_service(chat_repo, user_service, fanout, storage) -> ChatService:
    return ChatService(
        chat_repository=chat_repo,
        user_service=user_service,
        fanout=fanout,
        attachment_storage=storage,
    )


# ============================================================
# Users
# ============================================================


@pytest.fixture
def alice(user_repo) -> User:
    return user_repo.add("Alice", "alice@test.com")


@pytest.fixture
def bob(user_repo) -> User:
    return user_repo.add("Bob", "bob@test.com")


@pytest.fixture
def admin(user_repo) -> User:
    return user_repo.add("Support Admin", "admin@test.com", role=UserRole.ADMIN)


def _identity(user: User) -> Identity:
    return Identity(id=user.id, role=user.role, name=user.name, email=user.email)


@pytest.fixture
def alice_viewer(alice) -> ParticipantViewer:
    return ParticipantViewer(_identity(alice))


@pytest.fixture
def bob_viewer(bob) -> ParticipantViewer:
    return ParticipantViewer(_identity(bob))


@pytest.fixture
def admin_viewer(admin) -> AdminViewer:
    return AdminViewer(_identity(admin))


# ============================================================
# HTTP
# ============================================================


@pytest.fixture
def app(chat_service, user_service):
    """Application wired to the in-memory repositories."""
    app = create_app()
    app.dependency_overrides[get_chat_service] = lambda: chat_service
    app.dependency_overrides[get_user_service] = lambda: user_service
    return app


@pytest_asyncio.fixture(scope="function")
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

"""Socket.IO server configuration and utilities."""

import logging

import socketio

from support_chat.core.config import settings
from support_chat.core.exceptions import AuthenticationError
from support_chat.dependencies.auth import identity_from_token
from support_chat.domains.chat.fanout import BroadcastFanout, SocketIOTransport
from support_chat.domains.user.models import Identity

logger = logging.getLogger(__name__)

CHAT_NAMESPACE = "/chat"


def _client_manager() -> socketio.AsyncManager | None:
    """Redis-backed manager so rooms span every worker process."""
    if settings.socketio_use_redis:
        return socketio.AsyncRedisManager(settings.redis_url)
    return None


# Create Socket.IO async server
sio = socketio.AsyncServer(
    async_mode="asgi",
    client_manager=_client_manager(),
    cors_allowed_origins=settings.cors_origins if settings.is_production else "*",
    logger=settings.is_development,
    engineio_logger=False,
    ping_timeout=60,
    ping_interval=25,
)

# Fan-out used by the chat service to reach connected viewers
fanout = BroadcastFanout(SocketIOTransport(sio, namespace=CHAT_NAMESPACE))


def get_fanout() -> BroadcastFanout:
    """Get the process-wide broadcast fanout."""
    return fanout


# Session storage for connected clients
# Maps sid -> Identity, or None for guests of the public widget
connected_clients: dict[str, Identity | None] = {}


class SocketAuth:
    """Socket authentication utilities."""

    @staticmethod
    def authenticate(auth_data: dict | None) -> tuple[bool, Identity | None]:
        """
        Authenticate a connecting client.

        Args:
            auth_data: dict with optional 'token' key

        Returns:
            Tuple of (accepted, identity). Clients without a token are
            accepted as guests; clients with an invalid token are rejected.
        """
        token = (auth_data or {}).get("token")
        if not token:
            return True, None

        try:
            return True, identity_from_token(token)
        except AuthenticationError as e:
            logger.info("Rejected socket connection: %s", e.message)
            return False, None


# Import and register namespaces
from support_chat.sockets.namespaces.chat import ChatNamespace  # noqa: E402

sio.register_namespace(ChatNamespace(CHAT_NAMESPACE))

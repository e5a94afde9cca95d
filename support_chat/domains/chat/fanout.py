"""Broadcast fan-out of chat events to connected realtime subscribers.

Delivery is push-based, best-effort and at-most-once: nothing is buffered for
subscribers that are offline at publish time, they reconcile on their next
fetch. Publishing is scheduled after the store committed the write and is
never awaited by the request that produced it.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

import socketio

logger = logging.getLogger(__name__)

ADMIN_CHANNEL = "support:admins"

Payload = dict[str, Any] | Callable[[], Awaitable[dict[str, Any]]]

NEW_CHAT_EVENT = "new_chat"
NEW_MESSAGE_EVENT = "new_message"
STATUS_CHANGED_EVENT = "chat_status_changed"


def get_chat_channel(chat_id: str) -> str:
    """Channel (room) name for a chat."""
    return f"chat:{chat_id}"


class RealtimeTransport(ABC):
    """Transport that pushes an event to every subscriber of a channel."""

    @abstractmethod
    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        """Push ``event`` with ``payload`` to ``channel``."""
        pass


class SocketIOTransport(RealtimeTransport):
    """Socket.IO rooms as channels."""

    def __init__(self, server: socketio.AsyncServer, namespace: str = "/chat"):
        self._server = server
        self._namespace = namespace

    async def publish(self, channel: str, event: str, payload: dict[str, Any]) -> None:
        await self._server.emit(event, payload, room=channel, namespace=self._namespace)


class BroadcastFanout:
    """
    Fire-and-forget publisher used by the chat service.

    Each publish runs as its own task. Deliveries on the same channel are
    chained so subscribers observe them in publish order; failures are logged
    and never reach the caller.

    The payload may be a coroutine function. It is awaited inside the
    delivery, so a writer can take its channel slot right after commit and
    resolve display fields later without losing its place.
    """

    def __init__(self, transport: RealtimeTransport):
        self._transport = transport
        self._tails: dict[str, asyncio.Task] = {}
        self._pending: set[asyncio.Task] = set()

    def publish(self, chat_id: str, event: str, payload: Payload) -> None:
        """Schedule ``event`` on the chat's channel."""
        self._schedule(get_chat_channel(chat_id), event, payload)

    def publish_new_session(self, chat_id: str, payload: dict[str, Any]) -> None:
        """Announce a newly created chat to its channel and to staff."""
        self._schedule(get_chat_channel(chat_id), NEW_CHAT_EVENT, payload)
        self._schedule(ADMIN_CHANNEL, NEW_CHAT_EVENT, payload)

    async def drain(self) -> None:
        """Wait for every in-flight delivery to finish."""
        while self._pending:
            await asyncio.wait(list(self._pending))

    @property
    def pending(self) -> int:
        return len(self._pending)

    def _schedule(self, channel: str, event: str, payload: Payload) -> None:
        previous = self._tails.get(channel)
        task = asyncio.get_running_loop().create_task(
            self._deliver(previous, channel, event, payload)
        )
        self._tails[channel] = task
        self._pending.add(task)
        task.add_done_callback(lambda done: self._forget(channel, done))

    def _forget(self, channel: str, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if self._tails.get(channel) is task:
            del self._tails[channel]

    async def _deliver(
        self,
        previous: asyncio.Task | None,
        channel: str,
        event: str,
        payload: Payload,
    ) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        try:
            if callable(payload):
                payload = await payload()
            await self._transport.publish(channel, event, payload)
        except Exception:
            logger.exception("Failed to publish %s on %s", event, channel)

"""Connection registry and Redis fan-out for the realtime notifier.

Each socket gets a ``Connection`` with a bounded outbox. Deltas from the
in-process manager or from Redis pub/sub are pushed into the outbox; a single
writer task per socket sends the snapshot first and then drains the outbox,
so deltas that arrive while the snapshot is built are never sent before it.
"""

import asyncio
import json
from typing import Any

from fastapi import WebSocket
from redis.asyncio import Redis
from redis.asyncio.client import PubSub

from osmod.core.logging import get_logger
from osmod.core.redis import (
    global_updates_channel,
    system_updates_channel,
    user_updates_channel,
)


logger = get_logger(__name__)


class _Resync:
    """Outbox marker: send a full snapshot instead of the next delta."""

    def __repr__(self) -> str:
        return "RESYNC"


RESYNC = _Resync()


class Connection:
    """One notifier socket and its pending messages."""

    def __init__(self, user_id: str, websocket: WebSocket, queue_size: int = 1000):
        self.user_id = user_id
        self.websocket = websocket
        self.outbox: asyncio.Queue[dict[str, Any] | _Resync] = asyncio.Queue(
            maxsize=queue_size
        )

    def push(self, message: dict[str, Any] | _Resync) -> None:
        """Queue a message without blocking.

        On overflow the pending deltas are discarded and replaced by a resync.
        """
        try:
            self.outbox.put_nowait(message)
        except asyncio.QueueFull:
            dropped = self.outbox.qsize()
            while not self.outbox.empty():
                self.outbox.get_nowait()
            self.outbox.put_nowait(RESYNC)
            logger.warning(
                "notifier_outbox_overflow", user_id=self.user_id, dropped=dropped
            )

    def request_resync(self) -> None:
        self.push(RESYNC)


class ConnectionManager:
    """Manage notifier connections by user."""

    def __init__(self) -> None:
        # user_id -> list of active connections
        self.active_connections: dict[str, list[Connection]] = {}

    def register(self, connection: Connection) -> None:
        """Register an accepted connection."""
        self.active_connections.setdefault(connection.user_id, []).append(connection)
        logger.info("notifier_connected", user_id=connection.user_id)

    def unregister(self, connection: Connection) -> None:
        """Remove a connection."""
        connections = self.active_connections.get(connection.user_id)
        if connections is None:
            return
        if connection in connections:
            connections.remove(connection)
        if not connections:
            del self.active_connections[connection.user_id]
        logger.info("notifier_disconnected", user_id=connection.user_id)

    def broadcast(self, message: dict[str, Any]) -> None:
        """Queue a message for every connection."""
        for connections in self.active_connections.values():
            for connection in connections:
                connection.push(message)

    def send_to_user(self, user_id: str, message: dict[str, Any]) -> None:
        """Queue a message for all connections of a user."""
        for connection in self.active_connections.get(user_id, []):
            connection.push(message)

    def get_connected_users(self) -> list[str]:
        """Get list of currently connected user IDs."""
        return list(self.active_connections.keys())

    def connection_count(self) -> int:
        return sum(len(c) for c in self.active_connections.values())


def channels_for(user_id: str) -> list[str]:
    """Pub/Sub channels a user's sockets listen to."""
    return [
        system_updates_channel(),
        global_updates_channel(),
        user_updates_channel(user_id),
    ]


async def subscribe(redis_client: Redis, user_id: str) -> PubSub:
    """Subscribe to a user's update channels.

    Returns once the subscription is active, so the caller can build the
    snapshot knowing no later delta will be missed.
    """
    pubsub = redis_client.pubsub()
    await pubsub.subscribe(*channels_for(user_id))
    logger.debug("notifier_subscribed", user_id=user_id)
    return pubsub


async def forward_updates(pubsub: PubSub, connection: Connection) -> None:
    """Push Redis pub/sub messages into a connection's outbox.

    Runs until cancelled; returns early if the subscription breaks.
    """
    try:
        while True:
            message = await pubsub.get_message(
                ignore_subscribe_messages=True, timeout=1.0
            )
            if message and message["type"] == "message":
                try:
                    connection.push(json.loads(message["data"]))
                except json.JSONDecodeError:
                    logger.warning(
                        "notifier_invalid_update",
                        user_id=connection.user_id,
                        channel=message.get("channel"),
                    )
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning(
            "notifier_subscriber_error", user_id=connection.user_id, error=str(e)
        )
    finally:
        await pubsub.unsubscribe()
        await pubsub.aclose()

"""Tests for notifier connections, the connection manager and Redis fan-out."""

import asyncio
import json
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

from osmod.notifier.hub import (
    RESYNC,
    Connection,
    ConnectionManager,
    channels_for,
    forward_updates,
    subscribe,
)
from osmod.notifier.websocket_router import send_updates


SNAPSHOT = [
    {"type": "system", "data": {}},
    {"type": "global", "data": {}},
    {"type": "user", "data": {}},
]

DELTA = {"type": "article-update", "data": {"articles": [{"id": "a1"}]}}


def fake_pubsub(*messages: dict | None) -> Mock:
    """PubSub that yields ``messages`` and then loses its connection."""
    pubsub = Mock()
    pubsub.get_message = AsyncMock(
        side_effect=[*messages, ConnectionError("connection lost")]
    )
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()
    return pubsub


def redis_message(payload: str, channel: str = "updates:global") -> dict:
    return {"type": "message", "channel": channel, "data": payload}


class TestConnection:
    """Tests for the bounded outbox."""

    def test_push(self) -> None:
        connection = Connection("u1", Mock(), queue_size=2)
        connection.push({"type": "ping"})
        assert connection.outbox.get_nowait() == {"type": "ping"}

    def test_overflow_is_replaced_by_resync(self) -> None:
        connection = Connection("u1", Mock(), queue_size=2)
        connection.push({"n": 1})
        connection.push({"n": 2})
        connection.push({"n": 3})

        assert connection.outbox.qsize() == 1
        assert connection.outbox.get_nowait() is RESYNC

    def test_request_resync(self) -> None:
        connection = Connection("u1", Mock())
        connection.request_resync()
        assert connection.outbox.get_nowait() is RESYNC


class TestConnectionManager:
    """Tests for ConnectionManager."""

    def test_broadcast_and_send_to_user(self) -> None:
        manager = ConnectionManager()
        first = Connection("u1", Mock())
        second = Connection("u1", Mock())
        other = Connection("u2", Mock())
        for connection in (first, second, other):
            manager.register(connection)

        manager.broadcast({"type": "system"})
        manager.send_to_user("u1", {"type": "user"})

        assert first.outbox.qsize() == 2
        assert second.outbox.qsize() == 2
        assert other.outbox.qsize() == 1
        assert manager.connection_count() == 3
        assert sorted(manager.get_connected_users()) == ["u1", "u2"]

    def test_unregister(self) -> None:
        manager = ConnectionManager()
        connection = Connection("u1", Mock())
        manager.register(connection)

        manager.unregister(connection)
        manager.unregister(connection)

        assert manager.connection_count() == 0
        assert manager.get_connected_users() == []

    def test_send_to_unknown_user(self) -> None:
        ConnectionManager().send_to_user("nobody", {"type": "user"})


def test_channels_for() -> None:
    assert channels_for("u1") == [
        "updates:system",
        "updates:global",
        "updates:user:u1",
    ]


class TestRedisFanOut:
    """Tests for subscribing and forwarding Redis updates."""

    async def test_subscribe(self) -> None:
        pubsub = fake_pubsub()
        redis_client = Mock()
        redis_client.pubsub.return_value = pubsub

        assert await subscribe(redis_client, "u1") is pubsub
        pubsub.subscribe.assert_awaited_once_with(*channels_for("u1"))

    async def test_forward_updates(self) -> None:
        connection = Connection("u1", Mock())
        pubsub = fake_pubsub(
            None,
            redis_message(json.dumps(DELTA)),
            redis_message("{not json"),
        )

        await forward_updates(pubsub, connection)

        assert connection.outbox.qsize() == 1
        assert connection.outbox.get_nowait() == DELTA
        pubsub.unsubscribe.assert_awaited_once()
        pubsub.aclose.assert_awaited_once()

    async def test_delta_during_snapshot_is_sent_after_it(self) -> None:
        connection = Connection(str(uuid4()), Mock())
        pubsub = fake_pubsub(redis_message(json.dumps(DELTA)))

        async def build_snapshot(_user_id):
            # A delta arrives while the snapshot is being built
            await forward_updates(pubsub, connection)
            return SNAPSHOT

        notifier = Mock()
        notifier.snapshot = AsyncMock(side_effect=build_snapshot)

        sent: list[dict] = []
        all_sent = asyncio.Event()

        async def send_json(message: dict) -> None:
            sent.append(message)
            if len(sent) == 4:
                all_sent.set()

        websocket = Mock()
        websocket.send_json = send_json

        task = asyncio.create_task(send_updates(websocket, connection, notifier))
        try:
            await asyncio.wait_for(all_sent.wait(), timeout=2.0)
        finally:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        assert [m["type"] for m in sent] == [
            "system",
            "global",
            "user",
            "article-update",
        ]

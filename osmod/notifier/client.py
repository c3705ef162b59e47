"""Client for the realtime notifier socket.

Used by tools and integration code that mirror moderation state outside the
browser. The client connects to ``/services/updates/summary``, routes each
message type to a handler and reports the sync status:

- ``up`` once system, global and user data have all arrived
- ``down`` when an established socket closes (the client reconnects)
- ``reset`` when the server rejects the socket (close code 1005 or 4001, or
  a close before any message); the token must be renewed, so the client stops
"""

import asyncio
import inspect
import json
import random
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any
from urllib.parse import urlencode

import aiohttp

from osmod.core.logging import get_logger

from .messages import SNAPSHOT_TYPES, MessageType


logger = get_logger(__name__)


Handler = Callable[[Any], Awaitable[None] | None]


class SyncStatus(str, Enum):
    """Sync status reported to the status handler."""

    UP = "up"
    DOWN = "down"
    RESET = "reset"


# 1005: closed without a status, seen when the server rejects the request
RESET_CLOSE_CODES = frozenset({1005, 4001})

LIVENESS_INTERVAL = 10.0


class SyncTracker:
    """Tracks the snapshot messages received on the current socket."""

    def __init__(self) -> None:
        self.received: set[str] = set()
        self.is_up = False

    def reset(self) -> None:
        """Forget everything; called for each new socket."""
        self.received = set()
        self.is_up = False

    def on_message(self, message_type: str) -> SyncStatus | None:
        """Record a message; returns ``UP`` the first time the snapshot is complete."""
        if message_type in {t.value for t in SNAPSHOT_TYPES}:
            self.received.add(message_type)
        if not self.is_up and len(self.received) == len(SNAPSHOT_TYPES):
            self.is_up = True
            return SyncStatus.UP
        return None

    def on_close(self, code: int | None) -> SyncStatus:
        """Status after the socket closed with ``code``."""
        never_synced = not self.received
        self.is_up = False
        if code in RESET_CLOSE_CODES or never_synced:
            return SyncStatus.RESET
        return SyncStatus.DOWN


class NotifierClient:
    """Reconnecting notifier client.

    Reconnects with exponential backoff and jitter, never waiting longer than
    the liveness interval, until ``close()`` is called or the server resets
    the session.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        on_status: Handler | None = None,
        on_system: Handler | None = None,
        on_global: Handler | None = None,
        on_article_update: Handler | None = None,
        on_user: Handler | None = None,
        session: aiohttp.ClientSession | None = None,
        liveness_interval: float = LIVENESS_INTERVAL,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.on_status = on_status
        self.handlers: dict[str, Handler | None] = {
            MessageType.SYSTEM.value: on_system,
            MessageType.GLOBAL.value: on_global,
            MessageType.ARTICLE_UPDATE.value: on_article_update,
            MessageType.USER.value: on_user,
        }
        self.liveness_interval = liveness_interval
        self.tracker = SyncTracker()
        self._session = session
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._closed = False

    @property
    def url(self) -> str:
        """Socket URL: the http(s) base turned into ws(s), with the token."""
        base = self.base_url
        if base.startswith("http"):
            base = "ws" + base[len("http") :]
        query = urlencode({"token": self.token})
        return f"{base}/services/updates/summary?{query}"

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def run(self) -> SyncStatus:
        """Keep the socket alive until closed or reset.

        Returns:
            The last status reported
        """
        backoff = 1.0
        status = SyncStatus.DOWN
        session = self._session or aiohttp.ClientSession()
        try:
            while not self._closed:
                try:
                    status = await self.connect_once(session)
                except (aiohttp.ClientError, OSError) as e:
                    status = SyncStatus.DOWN
                    logger.warning("notifier_client_connect_failed", error=str(e))

                if status is SyncStatus.RESET or self._closed:
                    break

                if self.tracker.received:
                    backoff = 1.0
                delay = min(self.liveness_interval, backoff) + random.uniform(0, 0.5)
                logger.info("notifier_client_reconnecting", delay_seconds=round(delay, 2))
                await asyncio.sleep(delay)
                backoff = min(self.liveness_interval, backoff * 2)
        finally:
            if self._session is None:
                await session.close()
        return status

    async def connect_once(self, session: aiohttp.ClientSession) -> SyncStatus:
        """Open one socket, consume it until it closes, report the status."""
        self.tracker.reset()
        async with session.ws_connect(self.url) as ws:
            self._ws = ws
            logger.info("notifier_client_connected", url=self.base_url)
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    await self.handle_text(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    logger.warning("notifier_client_socket_error", error=str(ws.exception()))
                    break
            code = ws.close_code
        self._ws = None

        status = self.tracker.on_close(code)
        logger.info("notifier_client_closed", code=code, status=status.value)
        await self._call(self.on_status, status)
        return status

    async def handle_text(self, text: str) -> None:
        """Route one text frame to its handler."""
        try:
            body = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("notifier_client_invalid_message")
            return
        if not isinstance(body, dict):
            return

        message_type = body.get("type")
        await self._call(self.handlers.get(message_type), body.get("data"))

        if self.tracker.on_message(message_type) is SyncStatus.UP:
            await self._call(self.on_status, SyncStatus.UP)

    async def request_resync(self) -> None:
        """Ask the server to resend the snapshot."""
        if self.connected:
            await self._ws.send_json({"type": MessageType.RESYNC.value})

    async def close(self) -> None:
        """Stop reconnecting and close the current socket."""
        self._closed = True
        if self._ws is not None:
            await self._ws.close()

    async def _call(self, handler: Handler | None, value: Any) -> None:
        if handler is None:
            return
        result = handler(value)
        if inspect.isawaitable(result):
            await result

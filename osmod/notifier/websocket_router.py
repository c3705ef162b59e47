"""WebSocket API for realtime moderation updates.

Provides:
- WS /services/updates/summary - Snapshot followed by delta stream
"""

import asyncio
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from jose import JWTError
from starlette.websockets import WebSocketState

from osmod.auth.dependencies import user_from_payload
from osmod.auth.permissions import is_human_moderator
from osmod.auth.schemas import TokenUser
from osmod.auth.security import decode_access_token
from osmod.config import get_settings
from osmod.core.context import set_request_id, set_user_id
from osmod.core.logging import get_logger

from .hub import RESYNC, Connection, forward_updates, subscribe
from .messages import MessageType, ping_message, pong_message
from .service import NotifierService


logger = get_logger(__name__)

router = APIRouter(tags=["notifier-ws"])


# Close codes understood by moderation clients
CLOSE_AUTH_FAILED = 4001
CLOSE_FORBIDDEN = 4003
CLOSE_INTERNAL_ERROR = 1011


def authenticate_websocket(token: str) -> TokenUser | None:
    """Authenticate WebSocket connection using JWT token.

    Returns the principal if valid, None otherwise.
    """
    try:
        return user_from_payload(decode_access_token(token))
    except JWTError as e:
        logger.warning("websocket_auth_failed", error=str(e))
    except ValueError as e:
        logger.warning("websocket_auth_invalid_payload", error=str(e))
    return None


async def send_snapshot(
    websocket: WebSocket, notifier: NotifierService, user_id: str
) -> None:
    """Send ``system``, ``global`` and ``user`` in that order."""
    for message in await notifier.snapshot(UUID(user_id)):
        await websocket.send_json(message)


async def send_updates(
    websocket: WebSocket, connection: Connection, notifier: NotifierService
) -> None:
    """Writer: the snapshot first, then everything queued in the outbox."""
    await send_snapshot(websocket, notifier, connection.user_id)
    logger.debug("notifier_snapshot_sent", user_id=connection.user_id)

    while True:
        message = await connection.outbox.get()
        if message is RESYNC:
            await send_snapshot(websocket, notifier, connection.user_id)
            logger.info("notifier_resynced", user_id=connection.user_id)
        else:
            await websocket.send_json(message)


async def send_pings(connection: Connection, ping_interval: float) -> None:
    """Queue a server ping every ``ping_interval`` seconds."""
    while True:
        await asyncio.sleep(ping_interval)
        connection.push(ping_message())


async def receive_messages(websocket: WebSocket, connection: Connection) -> None:
    """Reader: answers client pings and resync requests."""
    while True:
        try:
            message: Any = await websocket.receive_json()
        except ValueError:
            logger.debug("notifier_invalid_client_message", user_id=connection.user_id)
            continue

        message_type = message.get("type") if isinstance(message, dict) else None
        if message_type == MessageType.PING.value:
            connection.push(pong_message())
        elif message_type == MessageType.RESYNC.value:
            connection.request_resync()


@router.websocket("/services/updates/summary")
async def updates_websocket(
    websocket: WebSocket,
    token: str = Query(..., description="JWT access token"),
) -> None:
    """WebSocket endpoint for realtime moderation updates.

    Connect with: ws://host/services/updates/summary?token=<jwt_token>

    Messages received:
    - {"type": "system", "data": {...}} - Users, tags, sensitivities, rules, preselects
    - {"type": "global", "data": {...}} - Categories and articles
    - {"type": "user", "data": {...}} - Per-user assignment counts
    - {"type": "article-update", "data": {...}} - Changed articles/categories
    - {"type": "ping"} - Keep-alive ping

    Messages you can send:
    - {"type": "ping"} - Answered with {"type": "pong"}
    - {"type": "resync"} - Resend system, global and user
    """
    await websocket.accept()

    user = authenticate_websocket(token)
    if user is None:
        await websocket.close(code=CLOSE_AUTH_FAILED, reason="Authentication failed")
        return
    if not is_human_moderator(user.group):
        await websocket.close(code=CLOSE_FORBIDDEN, reason="Insufficient permissions")
        return

    notifier: NotifierService | None = getattr(
        websocket.app.state, "notifier_service", None
    )
    if notifier is None:
        await websocket.close(code=CLOSE_INTERNAL_ERROR, reason="Notifier not available")
        return

    set_request_id(websocket.headers.get("x-request-id"))
    set_user_id(user.id)

    settings = get_settings()
    user_id = str(user.id)
    connection = Connection(user_id, websocket, settings.notifier_queue_size)

    # Subscribe before the snapshot is built so no delta falls in between.
    # With Redis configured, deltas only arrive through the subscription.
    pubsub = None
    if notifier.redis is not None:
        try:
            pubsub = await subscribe(notifier.redis, user_id)
        except Exception as e:
            logger.warning("notifier_subscribe_failed", user_id=user_id, error=str(e))
            await websocket.close(
                code=CLOSE_INTERNAL_ERROR, reason="Updates not available"
            )
            return
    notifier.manager.register(connection)

    tasks = [
        asyncio.create_task(send_updates(websocket, connection, notifier)),
        asyncio.create_task(receive_messages(websocket, connection)),
        asyncio.create_task(send_pings(connection, settings.notifier_ping_interval)),
    ]
    if pubsub is not None:
        tasks.append(asyncio.create_task(forward_updates(pubsub, connection)))

    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.warning("websocket_error", user_id=user_id, error=str(error))
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        notifier.manager.unregister(connection)

    if (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    ):
        await websocket.close(code=CLOSE_INTERNAL_ERROR)

"""Realtime notifier module.

Keeps connected moderation clients in sync:
- NotifierService: snapshot builder and delta publisher (Redis pub/sub fan-out)
- ConnectionManager: in-process registry of sockets and their outboxes
- NotifierClient: reconnecting aiohttp client with sync status tracking

Note: Router is not exported here to avoid circular imports.
Import directly from osmod.notifier.websocket_router when needed.
"""

from .client import NotifierClient, SyncStatus, SyncTracker
from .hub import Connection, ConnectionManager
from .messages import MessageType
from .service import NotifierService


__all__ = [
    "Connection",
    "ConnectionManager",
    "MessageType",
    "NotifierClient",
    "NotifierService",
    "SyncStatus",
    "SyncTracker",
]

# ruff: noqa: PLW0603
"""Redis connection management.

Provides async Redis client for:
- Pub/Sub fan-out of realtime updates across API processes
- Text size cache
- Work queue counters
"""

import redis.asyncio as redis

from osmod.config import get_settings
from osmod.core.logging import get_logger


logger = get_logger(__name__)

# Global Redis client
_redis_client: redis.Redis | None = None


async def init_redis() -> redis.Redis:
    """Initialize Redis connection pool."""
    global _redis_client

    settings = get_settings()

    _redis_client = redis.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_connect_timeout,
        retry_on_timeout=settings.redis_retry_on_timeout,
        health_check_interval=settings.redis_health_check_interval,
        decode_responses=True,
    )

    try:
        await _redis_client.ping()
        logger.info("redis_connected", url=settings.redis_url)
    except redis.ConnectionError as e:
        logger.warning("redis_connection_failed", error=str(e))
        _redis_client = None
        raise

    return _redis_client


async def shutdown_redis() -> None:
    """Close Redis connection."""
    global _redis_client

    if _redis_client:
        await _redis_client.aclose()
        logger.info("redis_disconnected")
        _redis_client = None


# Pub/Sub channel names for the realtime notifier
def system_updates_channel() -> str:
    """Channel carrying full system snapshots (users, tags, rules...)."""
    return "updates:system"


def global_updates_channel() -> str:
    """Channel carrying article/category deltas for every moderator."""
    return "updates:global"


def user_updates_channel(user_id: str) -> str:
    """Channel carrying per-user data (assignment counts)."""
    return f"updates:user:{user_id}"


def text_size_key(width: int) -> str:
    """Hash holding cached comment heights for one pixel width."""
    return f"text_sizes:{width}"

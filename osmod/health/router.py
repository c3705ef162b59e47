"""Health check endpoints."""

from typing import Any

from fastapi import APIRouter, Request

from osmod.config import get_settings


router = APIRouter(prefix="/health", tags=["health"])


# Services the API needs before it can serve moderation traffic
REQUIRED_SERVICES = (
    "user_service",
    "comment_service",
    "article_service",
    "scoring_service",
    "moderation_service",
    "rule_service",
    "notifier_service",
    "dispatcher",
)


@router.get("/live")
async def liveness() -> dict[str, str]:
    """Liveness probe - checks if the application is running."""
    return {"status": "alive"}


@router.get("/ready")
async def readiness(request: Request) -> dict[str, Any]:
    """Readiness probe - reports database, Redis and work queue state."""
    settings = get_settings()
    state = request.app.state

    missing = [name for name in REQUIRED_SERVICES if not getattr(state, name, None)]
    dispatcher = getattr(state, "dispatcher", None)
    notifier = getattr(state, "notifier_service", None)

    return {
        "status": "ready" if not missing else "degraded",
        "environment": settings.environment,
        "debug": settings.debug,
        "missing_services": missing,
        "redis": getattr(state, "redis", None) is not None,
        "workqueue": {
            "running": dispatcher.is_running,
            "queue_length": dispatcher.queue_length,
        }
        if dispatcher
        else None,
        "notifier_connections": notifier.manager.connection_count() if notifier else 0,
    }


@router.get("")
async def health() -> dict[str, str]:
    """General health check endpoint."""
    settings = get_settings()
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
    }

"""FastAPI dependencies for the realtime notifier."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import NotifierService


async def get_notifier_service(request: Request) -> NotifierService:
    """Get notifier service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "notifier_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notifier not available",
        )
    return app_state.notifier_service


NotifierServiceDep = Annotated[NotifierService, Depends(get_notifier_service)]

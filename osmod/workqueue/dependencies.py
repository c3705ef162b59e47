"""FastAPI dependencies for the work queue."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .dispatcher import WorkQueueDispatcher, WorkQueueError
from .textsize import TextSizeService


async def get_dispatcher(request: Request) -> WorkQueueDispatcher:
    """Get the work queue dispatcher from app state."""
    app_state = request.app.state
    if not getattr(app_state, "dispatcher", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Work queue not available",
        )
    return app_state.dispatcher


async def get_text_size_service(request: Request) -> TextSizeService:
    """Get text size service from app state."""
    app_state = request.app.state
    if not getattr(app_state, "text_size_service", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Text size service not available",
        )
    return app_state.text_size_service


DispatcherDep = Annotated[WorkQueueDispatcher, Depends(get_dispatcher)]
TextSizeServiceDep = Annotated[TextSizeService, Depends(get_text_size_service)]


def handle_workqueue_error(error: WorkQueueError) -> HTTPException:
    """Convert work queue errors to HTTP exceptions."""
    status_map = {
        "unknown_trigger": status.HTTP_404_NOT_FOUND,
        "unknown_job_type": status.HTTP_400_BAD_REQUEST,
    }

    return HTTPException(
        status_code=status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=error.message,
    )

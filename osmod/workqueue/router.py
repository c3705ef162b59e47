"""Work queue API endpoints.

Provides routes for:
- Admin triggers (scoring sweep, count recalculation)
- Text size lookups
- Queue statistics
"""

from typing import Any

import structlog
from fastapi import APIRouter, HTTPException, Query, status

from osmod.auth.dependencies import AdminUser, ModeratorUser
from osmod.comments.schemas import IdListRequest

from .dependencies import DispatcherDep, TextSizeServiceDep, handle_workqueue_error
from .dispatcher import WorkQueueError
from .textsize import MAX_WIDTH, MIN_WIDTH


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/services", tags=["workqueue"])


@router.get(
    "/processing/trigger/{trigger}",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Trigger background processing",
)
async def trigger_processing(
    trigger: str,
    dispatcher: DispatcherDep,
    user: AdminUser,
) -> dict[str, Any]:
    """Queue the scoring sweep (``scoring``) or a full recount (``counts``)."""
    try:
        job = dispatcher.trigger(trigger)
    except WorkQueueError as e:
        raise handle_workqueue_error(e) from e

    if job is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Work queue is full",
        )
    return {"data": job.to_dict()}


@router.post(
    "/textSizes",
    summary="Get comment text heights",
)
async def get_text_sizes(
    data: IdListRequest,
    text_size_service: TextSizeServiceDep,
    user: ModeratorUser,
    width: int = Query(..., ge=MIN_WIDTH, le=MAX_WIDTH),
) -> dict[str, Any]:
    """Rendered height in pixels of each comment at ``width`` pixels."""
    heights = await text_size_service.get_heights(data.data, width)
    return {"data": heights}


@router.get(
    "/processing/stats",
    summary="Get work queue statistics",
)
async def get_stats(
    dispatcher: DispatcherDep,
    user: AdminUser,
) -> dict[str, Any]:
    """Counters, queue length and the most recent failed jobs."""
    stats = dispatcher.get_stats()
    stats["recent_failures"] = [job.to_dict() for job in dispatcher.dead_letters[-20:]]
    return {"data": stats}

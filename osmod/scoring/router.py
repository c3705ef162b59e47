"""Score ingestion API endpoints.

Provides routes for:
- The scorer callback (asynchronous scores)
- Comment scores and moderator score actions
- Tag and tagging sensitivity administration
"""

from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, status

from osmod.auth.dependencies import AdminUser, MachineUser, ModeratorUser
from osmod.comments.dependencies import handle_comment_error
from osmod.comments.schemas import MessageResponse
from osmod.comments.service import CommentError
from osmod.notifier.dependencies import NotifierServiceDep

from .dependencies import ScoringServiceDep, handle_scoring_error
from .models import create_sensitivity, create_tag
from .schemas import (
    ScoresPayload,
    SensitivityRequest,
    TagCommentRequest,
    TagRequest,
    UpdateTagRequest,
)
from .service import ScoringError


logger = structlog.get_logger(__name__)


router = APIRouter(tags=["scoring"])
admin_router = APIRouter(prefix="/rest", tags=["scoring-admin"])


# ==============================================================================
# Scorer callback
# ==============================================================================


@router.post(
    "/assistant/scores/{comment_id}",
    response_model=MessageResponse,
    summary="Post comment scores",
)
async def post_scores(
    comment_id: UUID,
    data: ScoresPayload,
    scoring_service: ScoringServiceDep,
    user: MachineUser,
) -> MessageResponse:
    """Callback for scorers that answered ``202`` to the scoring request.

    The scorer is identified by its token.
    """
    if data.error:
        logger.warning(
            "scorer_reported_error",
            comment_id=str(comment_id),
            scorer_id=str(user.id),
            error=data.error,
        )
        return MessageResponse(message="Scorer error recorded")

    try:
        completed = await scoring_service.process_machine_score(
            comment_id, user.id, data.to_payload()
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    except ScoringError as e:
        raise handle_scoring_error(e) from e

    return MessageResponse(
        message="Scoring complete" if completed else "Scores stored"
    )


# ==============================================================================
# Comment scores
# ==============================================================================


@router.get(
    "/services/simple/comment/{comment_id}/scores",
    summary="List comment scores",
)
async def list_scores(
    comment_id: UUID,
    scoring_service: ScoringServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    """Span scores and summary scores of a comment."""
    scores = await scoring_service.list_scores(comment_id)
    summary = await scoring_service.list_summary_scores(comment_id)
    return {
        "data": {
            "scores": [s.to_wire() for s in scores],
            "summaryScores": [s.to_wire() for s in summary],
        }
    }


@router.post(
    "/services/commentActions/{comment_id}/scores",
    status_code=status.HTTP_201_CREATED,
    summary="Tag comment",
)
async def tag_comment(
    comment_id: UUID,
    data: TagCommentRequest,
    scoring_service: ScoringServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    """Moderator tags a comment or a span of its text."""
    try:
        score = await scoring_service.tag_comment(
            comment_id,
            data.tag_id,
            user.id,
            annotation_start=data.annotation_start,
            annotation_end=data.annotation_end,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e
    except ScoringError as e:
        raise handle_scoring_error(e) from e

    return {"data": score.to_wire()}


async def _set_score_confirmation(
    scoring_service: ScoringServiceDep,
    comment_id: UUID,
    score_id: UUID,
    is_confirmed: bool | None,
    user_id: UUID,
) -> dict[str, Any]:
    try:
        score = await scoring_service.set_score_confirmation(
            comment_id, score_id, is_confirmed, user_id
        )
    except ScoringError as e:
        raise handle_scoring_error(e) from e
    return {"data": score.to_wire()}


@router.post(
    "/services/commentActions/{comment_id}/scores/{score_id}/confirm",
    summary="Confirm score",
)
async def confirm_score(
    comment_id: UUID,
    score_id: UUID,
    scoring_service: ScoringServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    return await _set_score_confirmation(
        scoring_service, comment_id, score_id, True, user.id
    )


@router.post(
    "/services/commentActions/{comment_id}/scores/{score_id}/reject",
    summary="Reject score",
)
async def reject_score(
    comment_id: UUID,
    score_id: UUID,
    scoring_service: ScoringServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    return await _set_score_confirmation(
        scoring_service, comment_id, score_id, False, user.id
    )


@router.post(
    "/services/commentActions/{comment_id}/scores/{score_id}/reset",
    summary="Reset score confirmation",
)
async def reset_score(
    comment_id: UUID,
    score_id: UUID,
    scoring_service: ScoringServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    return await _set_score_confirmation(
        scoring_service, comment_id, score_id, None, user.id
    )


@router.delete(
    "/services/commentActions/{comment_id}/scores/{score_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete score",
)
async def delete_score(
    comment_id: UUID,
    score_id: UUID,
    scoring_service: ScoringServiceDep,
    user: ModeratorUser,
) -> None:
    try:
        await scoring_service.delete_score(comment_id, score_id)
    except ScoringError as e:
        raise handle_scoring_error(e) from e


@router.post(
    "/services/commentActions/{comment_id}/summaryScores/{tag_id}/confirm",
    summary="Confirm summary score",
)
async def confirm_summary_score(
    comment_id: UUID,
    tag_id: UUID,
    scoring_service: ScoringServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    try:
        summary = await scoring_service.set_summary_confirmation(
            comment_id, tag_id, True, user.id
        )
    except ScoringError as e:
        raise handle_scoring_error(e) from e
    return {"data": summary.to_wire()}


@router.post(
    "/services/commentActions/{comment_id}/summaryScores/{tag_id}/reject",
    summary="Reject summary score",
)
async def reject_summary_score(
    comment_id: UUID,
    tag_id: UUID,
    scoring_service: ScoringServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    try:
        summary = await scoring_service.set_summary_confirmation(
            comment_id, tag_id, False, user.id
        )
    except ScoringError as e:
        raise handle_scoring_error(e) from e
    return {"data": summary.to_wire()}


# ==============================================================================
# Tags (admin)
# ==============================================================================


@admin_router.get("/tags", summary="List tags")
async def list_tags(
    scoring_service: ScoringServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    return {"data": [t.to_wire() for t in await scoring_service.list_tags()]}


@admin_router.post(
    "/tags",
    status_code=status.HTTP_201_CREATED,
    summary="Create tag",
)
async def create_tag_route(
    data: TagRequest,
    scoring_service: ScoringServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> dict[str, Any]:
    tag = create_tag(
        data.key,
        data.label,
        color=data.color,
        description=data.description,
        in_summary_score=data.in_summary_score,
        is_taggable=data.is_taggable,
        is_in_batch_view=data.is_in_batch_view,
    )
    try:
        tag = await scoring_service.save_tag(tag)
    except ScoringError as e:
        raise handle_scoring_error(e) from e

    await notifier.publish_system()
    return {"data": tag.to_wire()}


@admin_router.patch("/tags/{tag_id}", summary="Update tag")
async def update_tag(
    tag_id: UUID,
    data: UpdateTagRequest,
    scoring_service: ScoringServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> dict[str, Any]:
    try:
        tag = await scoring_service.get_tag(tag_id)
        for name, value in data.model_dump(exclude_none=True).items():
            setattr(tag, name, value)
        tag = await scoring_service.save_tag(tag)
    except ScoringError as e:
        raise handle_scoring_error(e) from e

    await notifier.publish_system()
    return {"data": tag.to_wire()}


@admin_router.delete(
    "/tags/{tag_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete tag",
)
async def delete_tag(
    tag_id: UUID,
    scoring_service: ScoringServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> None:
    try:
        await scoring_service.delete_tag(tag_id)
    except ScoringError as e:
        raise handle_scoring_error(e) from e

    await notifier.publish_system()


# ==============================================================================
# Tagging sensitivities (admin)
# ==============================================================================


@admin_router.get("/tagging_sensitivities", summary="List tagging sensitivities")
async def list_sensitivities(
    scoring_service: ScoringServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    sensitivities = await scoring_service.list_sensitivities()
    return {"data": [s.to_wire() for s in sensitivities]}


@admin_router.post(
    "/tagging_sensitivities",
    status_code=status.HTTP_201_CREATED,
    summary="Create tagging sensitivity",
)
async def create_sensitivity_route(
    data: SensitivityRequest,
    scoring_service: ScoringServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> dict[str, Any]:
    sensitivity = create_sensitivity(
        data.lower_threshold,
        data.upper_threshold,
        category_id=data.category_id,
        tag_id=data.tag_id,
    )
    try:
        sensitivity = await scoring_service.save_sensitivity(sensitivity)
    except ScoringError as e:
        raise handle_scoring_error(e) from e

    await notifier.publish_system()
    return {"data": sensitivity.to_wire()}


@admin_router.delete(
    "/tagging_sensitivities/{sensitivity_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete tagging sensitivity",
)
async def delete_sensitivity(
    sensitivity_id: UUID,
    scoring_service: ScoringServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> None:
    await scoring_service.delete_sensitivity(sensitivity_id)
    await notifier.publish_system()

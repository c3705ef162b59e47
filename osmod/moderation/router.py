"""Moderation API endpoints.

Provides routes for:
- Moderation and flag actions on comments (immediate or queued)
- Tagging comments in bulk
- Moderation rule and preselect administration
"""

from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, HTTPException, status
from fastapi.responses import ORJSONResponse

from osmod.auth.dependencies import AdminUser, ModeratorUser
from osmod.comments.models import ModerationAction
from osmod.notifier.dependencies import NotifierServiceDep
from osmod.scoring.dependencies import ScoringServiceDep, handle_scoring_error
from osmod.scoring.service import ScoringError
from osmod.workqueue.dependencies import DispatcherDep
from osmod.workqueue.models import JobType

from .dependencies import (
    ModerationServiceDep,
    RuleServiceDep,
    handle_moderation_error,
)
from .models import FlagAction, create_preselect, create_rule
from .rules import RuleValidationError
from .schemas import (
    ActionResultResponse,
    CommentActionRequest,
    PreselectRequest,
    QueuedActionResponse,
    RuleRequest,
    UpdateRuleRequest,
)
from .service import ActionResult, ModerationError


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/services/commentActions", tags=["moderation"])
admin_router = APIRouter(prefix="/rest", tags=["moderation-admin"])


def _parse_action(action: str) -> ModerationAction | FlagAction:
    for enum in (ModerationAction, FlagAction):
        try:
            return enum(action)
        except ValueError:
            continue
    raise HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Unknown comment action {action}",
    )


def _action_response(result: ActionResult) -> ActionResultResponse:
    return ActionResultResponse(
        action=result.action, processed=result.processed, missing=result.missing
    )


def _queue_action(
    dispatcher: DispatcherDep,
    comment_ids: list[UUID],
    payload: dict[str, Any],
) -> ORJSONResponse:
    job = dispatcher.enqueue(
        JobType.COMMENT_ACTION,
        {**payload, "items": [str(cid) for cid in comment_ids]},
    )
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Work queue is full",
        )
    response = QueuedActionResponse(
        action=payload["action"], job_id=job.job_id, queued=len(comment_ids)
    )
    return ORJSONResponse(
        status_code=status.HTTP_202_ACCEPTED, content=response.model_dump(mode="json")
    )


# ==============================================================================
# Comment actions
# ==============================================================================


@router.post(
    "/tag/{tag_id}",
    response_model=ActionResultResponse,
    summary="Tag comments",
)
async def tag_comments(
    tag_id: UUID,
    data: CommentActionRequest,
    moderation_service: ModerationServiceDep,
    scoring_service: ScoringServiceDep,
    dispatcher: DispatcherDep,
    user: ModeratorUser,
) -> Any:
    """Apply a tag to several comments."""
    try:
        await scoring_service.get_tag(tag_id)
    except ScoringError as e:
        raise handle_scoring_error(e) from e

    if not data.run_immediately:
        return _queue_action(
            dispatcher,
            data.data,
            {"action": "tag", "tag_id": str(tag_id), "user_id": str(user.id)},
        )

    result = await moderation_service.tag_comments(data.data, tag_id, user.id)
    return _action_response(result)


@router.post(
    "/{action}",
    response_model=ActionResultResponse,
    summary="Moderate comments",
)
async def comment_action(
    action: str,
    data: CommentActionRequest,
    moderation_service: ModerationServiceDep,
    dispatcher: DispatcherDep,
    user: ModeratorUser,
) -> Any:
    """Approve, reject, defer, highlight or reset comments, or act on flags.

    Actions are queued for the workers (``202``) unless ``runImmediately`` is
    set, in which case they are applied before the response.
    """
    parsed = _parse_action(action)

    if not data.run_immediately:
        return _queue_action(
            dispatcher, data.data, {"action": parsed.value, "user_id": str(user.id)}
        )

    if isinstance(parsed, FlagAction):
        result = await moderation_service.apply_flag_action(data.data, parsed, user.id)
    else:
        result = await moderation_service.apply_action(data.data, parsed, user.id)
    return _action_response(result)


# ==============================================================================
# Moderation rules (admin)
# ==============================================================================


@admin_router.get("/moderation_rules", summary="List moderation rules")
async def list_rules(
    rule_service: RuleServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    return {"data": [r.to_wire() for r in await rule_service.list_rules()]}


@admin_router.post(
    "/moderation_rules",
    status_code=status.HTTP_201_CREATED,
    summary="Create moderation rule",
)
async def create_rule_route(
    data: RuleRequest,
    rule_service: RuleServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> dict[str, Any]:
    rule = create_rule(
        data.action,
        data.lower_threshold,
        data.upper_threshold,
        category_id=data.category_id,
        tag_id=data.tag_id,
        created_by=user.id,
    )
    try:
        rule = await rule_service.save_rule(rule)
    except RuleValidationError as e:
        raise handle_moderation_error(e) from e

    await notifier.publish_system()
    return {"data": rule.to_wire()}


@admin_router.patch("/moderation_rules/{rule_id}", summary="Update moderation rule")
async def update_rule(
    rule_id: UUID,
    data: UpdateRuleRequest,
    rule_service: RuleServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> dict[str, Any]:
    try:
        rule = await rule_service.get_rule(rule_id)
        for name, value in data.model_dump(exclude_none=True).items():
            setattr(rule, name, value)
        rule = await rule_service.save_rule(rule)
    except (ModerationError, RuleValidationError) as e:
        raise handle_moderation_error(e) from e

    await notifier.publish_system()
    return {"data": rule.to_wire()}


@admin_router.delete(
    "/moderation_rules/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete moderation rule",
)
async def delete_rule(
    rule_id: UUID,
    rule_service: RuleServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> None:
    try:
        await rule_service.delete_rule(rule_id)
    except ModerationError as e:
        raise handle_moderation_error(e) from e

    await notifier.publish_system()


# ==============================================================================
# Preselects (admin)
# ==============================================================================


@admin_router.get("/preselects", summary="List preselects")
async def list_preselects(
    rule_service: RuleServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    return {"data": [p.to_wire() for p in await rule_service.list_preselects()]}


@admin_router.post(
    "/preselects",
    status_code=status.HTTP_201_CREATED,
    summary="Create preselect",
)
async def create_preselect_route(
    data: PreselectRequest,
    rule_service: RuleServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> dict[str, Any]:
    preselect = create_preselect(
        data.lower_threshold,
        data.upper_threshold,
        category_id=data.category_id,
        tag_id=data.tag_id,
        created_by=user.id,
    )
    try:
        preselect = await rule_service.save_preselect(preselect)
    except RuleValidationError as e:
        raise handle_moderation_error(e) from e

    await notifier.publish_system()
    return {"data": preselect.to_wire()}


@admin_router.delete(
    "/preselects/{preselect_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete preselect",
)
async def delete_preselect(
    preselect_id: UUID,
    rule_service: RuleServiceDep,
    notifier: NotifierServiceDep,
    user: AdminUser,
) -> None:
    try:
        await rule_service.delete_preselect(preselect_id)
    except ModerationError as e:
        raise handle_moderation_error(e) from e

    await notifier.publish_system()

"""Comment API endpoints.

Provides routes for:
- Comment ingestion from publisher integrations
- Bulk comment lookups for moderation clients
- User flags
- Text edits (which trigger a rescore)
"""

from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, status

from osmod.articles.dependencies import ArticleServiceDep
from osmod.auth.dependencies import MachineUser, ModeratorUser
from osmod.workqueue.dependencies import DispatcherDep
from osmod.workqueue.models import JobType

from .dependencies import CommentServiceDep, handle_comment_error
from .models import create_comment
from .schemas import (
    AddFlagRequest,
    CreatedCommentsResponse,
    IdListRequest,
    MessageResponse,
    PublisherCommentsRequest,
    UpdateTextRequest,
)
from .service import CommentError


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/services", tags=["comments"])


@router.post(
    "/publisher/comments",
    response_model=CreatedCommentsResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest comments",
)
async def ingest_comments(
    data: PublisherCommentsRequest,
    comment_service: CommentServiceDep,
    article_service: ArticleServiceDep,
    dispatcher: DispatcherDep,
    user: MachineUser,
) -> CreatedCommentsResponse:
    """Store comments pushed by a publisher and queue them for scoring.

    Comments for unknown articles are rejected by index; the rest of the
    batch is still stored.
    """
    known_articles: dict[UUID, bool] = {}
    created: list[UUID] = []
    rejected: list[int] = []

    try:
        for index, item in enumerate(data.data):
            if item.article_id not in known_articles:
                article = await article_service.find_article(item.article_id)
                known_articles[item.article_id] = article is not None
            if not known_articles[item.article_id]:
                rejected.append(index)
                continue

            comment = await comment_service.create_comment(
                create_comment(
                    article_id=item.article_id,
                    text=item.text,
                    source_id=item.source_id,
                    author_source_id=item.author_source_id,
                    author_name=item.author.name,
                    author_location=item.author.location,
                    source_created_at=item.source_created_at,
                )
            )
            created.append(comment.comment_id)
    except CommentError as e:
        raise handle_comment_error(e) from e

    if created:
        items = [str(cid) for cid in created]
        article_ids = [str(aid) for aid, known in known_articles.items() if known]
        dispatcher.enqueue(JobType.SEND_FOR_SCORING, {"items": items})
        dispatcher.enqueue(JobType.TEXT_SIZES, {"items": items})
        dispatcher.enqueue(JobType.UPDATE_ARTICLE_COUNTS, {"items": article_ids})

    logger.info(
        "comments_ingested",
        publisher_id=user.id,
        created=len(created),
        rejected=len(rejected),
    )
    return CreatedCommentsResponse(comments=created, rejected=rejected)


@router.post(
    "/simple/comment/get",
    summary="Get comments",
)
async def get_comments(
    data: IdListRequest,
    comment_service: CommentServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    """Get comments by ID; unknown IDs are left out."""
    comments = await comment_service.get_comments(data.data)
    return {"data": [c.to_wire() for c in comments]}


@router.get(
    "/simple/comment/{comment_id}/flags",
    summary="List comment flags",
)
async def list_flags(
    comment_id: UUID,
    comment_service: CommentServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    """All flags of a comment, resolved ones included."""
    try:
        await comment_service.get_comment(comment_id)
    except CommentError as e:
        raise handle_comment_error(e) from e

    flags = await comment_service.list_flags(comment_id)
    return {"data": [f.to_wire() for f in flags]}


@router.post(
    "/simple/comment/{comment_id}/flags",
    status_code=status.HTTP_201_CREATED,
    summary="Flag comment",
)
async def add_flag(
    comment_id: UUID,
    data: AddFlagRequest,
    comment_service: CommentServiceDep,
    dispatcher: DispatcherDep,
    user: MachineUser,
) -> dict[str, Any]:
    """Record a user flag forwarded by the publisher."""
    try:
        comment = await comment_service.get_comment(comment_id)
        flag = await comment_service.add_flag(
            comment,
            label=data.label,
            detail=data.detail,
            is_recommendation=data.is_recommendation,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    dispatcher.enqueue(
        JobType.UPDATE_ARTICLE_COUNTS, {"items": [str(comment.article_id)]}
    )
    return {"data": flag.to_wire()}


@router.post(
    "/simple/comment/{comment_id}/text",
    response_model=MessageResponse,
    summary="Edit comment text",
)
async def update_text(
    comment_id: UUID,
    data: UpdateTextRequest,
    comment_service: CommentServiceDep,
    dispatcher: DispatcherDep,
    user: MachineUser,
) -> MessageResponse:
    """Replace the text of a comment and queue it for rescoring."""
    author = data.author
    try:
        comment = await comment_service.get_comment(comment_id)
        await comment_service.update_text(
            comment,
            data.text,
            author_name=author.name if author else None,
            author_location=author.location if author else None,
        )
    except CommentError as e:
        raise handle_comment_error(e) from e

    dispatcher.enqueue(JobType.RESCORE, {"items": [str(comment_id)]})
    dispatcher.enqueue(JobType.TEXT_SIZES, {"items": [str(comment_id)]})
    return MessageResponse(message="Comment queued for rescoring")

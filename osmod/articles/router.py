"""Article API endpoints."""

from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, status

from osmod.auth.dependencies import MachineUser, ModeratorUser
from osmod.comments.schemas import IdListRequest
from osmod.notifier.dependencies import NotifierServiceDep

from .dependencies import ArticleServiceDep, handle_article_error
from .models import create_article
from .schemas import (
    CreatedArticlesResponse,
    PublisherArticlesRequest,
    UpdateArticleRequest,
)
from .service import ArticleError


logger = structlog.get_logger(__name__)


router = APIRouter(prefix="/services", tags=["articles"])


@router.post(
    "/publisher/articles",
    response_model=CreatedArticlesResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Ingest articles",
)
async def ingest_articles(
    data: PublisherArticlesRequest,
    article_service: ArticleServiceDep,
    notifier: NotifierServiceDep,
    user: MachineUser,
) -> CreatedArticlesResponse:
    """Store articles pushed by a publisher integration."""
    articles = []
    try:
        for item in data.data:
            if item.category_id is not None:
                await article_service.get_category(item.category_id)
            article = create_article(
                title=item.title,
                category_id=item.category_id,
                source_id=item.source_id,
                text=item.text,
                url=item.url,
            )
            article.source_created_at = item.source_created_at
            articles.append(await article_service.save_article(article))
    except ArticleError as e:
        raise handle_article_error(e) from e

    await notifier.publish_article_update(articles)
    return CreatedArticlesResponse(articles=[a.article_id for a in articles])


@router.post(
    "/simple/article/get",
    summary="Get articles",
)
async def get_articles(
    data: IdListRequest,
    article_service: ArticleServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    """Get articles by ID; unknown IDs are left out."""
    articles = await article_service.get_articles(data.data)
    return {"data": [a.to_wire() for a in articles]}


@router.get(
    "/simple/article/{article_id}/text",
    summary="Get article text",
)
async def get_article_text(
    article_id: UUID,
    article_service: ArticleServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    """Full article text, which is left out of the notifier payloads."""
    try:
        article = await article_service.get_article(article_id)
    except ArticleError as e:
        raise handle_article_error(e) from e

    return {"data": {"id": str(article.article_id), "text": article.text}}


@router.post(
    "/simple/article/update/{article_id}",
    summary="Update article settings",
)
async def update_article(
    article_id: UUID,
    data: UpdateArticleRequest,
    article_service: ArticleServiceDep,
    notifier: NotifierServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    """Toggle commenting and automatic moderation on an article."""
    try:
        article = await article_service.get_article(article_id)
        article = await article_service.update_settings(
            article,
            is_commenting_enabled=data.is_commenting_enabled,
            is_auto_moderated=data.is_auto_moderated,
        )
    except ArticleError as e:
        raise handle_article_error(e) from e

    await notifier.publish_article_update([article])
    return {"data": article.to_wire()}


@router.post(
    "/assignments/article/{article_id}",
    summary="Assign moderators",
)
async def assign_moderators(
    article_id: UUID,
    data: IdListRequest,
    article_service: ArticleServiceDep,
    notifier: NotifierServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    """Replace the moderators assigned to an article."""
    try:
        article = await article_service.get_article(article_id)
        changed = await article_service.set_moderators(article, set(data.data))
    except ArticleError as e:
        raise handle_article_error(e) from e

    await notifier.publish_article_update([article])
    # Users removed from the article are not among its moderators any more
    await notifier.publish_users(changed - article.assigned_moderators)

    logger.info(
        "moderators_assigned",
        article_id=str(article_id),
        assigned_by=user.id,
        moderators=len(article.assigned_moderators),
    )
    return {"data": article.to_wire()}


@router.get(
    "/moderatedCounts/articles/{article_id}",
    summary="Get article counts",
)
async def get_article_counts(
    article_id: UUID,
    article_service: ArticleServiceDep,
    user: ModeratorUser,
) -> dict[str, Any]:
    """Comment counts of one article by moderation state."""
    try:
        article = await article_service.get_article(article_id)
    except ArticleError as e:
        raise handle_article_error(e) from e

    return {"data": article.counts.to_wire()}

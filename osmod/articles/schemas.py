"""Pydantic schemas for article endpoints."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PublisherArticleRequest(BaseModel):
    """One article pushed by a publisher integration."""

    model_config = ConfigDict(populate_by_name=True)

    source_id: str | None = Field(None, alias="sourceId", max_length=200)
    category_id: UUID | None = Field(None, alias="categoryId")
    title: str = Field(..., min_length=1, max_length=500)
    text: str | None = Field(None, max_length=200000)
    url: str | None = Field(None, max_length=2000)
    source_created_at: datetime | None = Field(None, alias="sourceCreatedAt")


class PublisherArticlesRequest(BaseModel):
    """Batch of articles pushed by a publisher integration."""

    data: list[PublisherArticleRequest] = Field(..., min_length=1, max_length=1000)


class UpdateArticleRequest(BaseModel):
    """Per-article moderation settings; omitted fields are unchanged."""

    model_config = ConfigDict(populate_by_name=True)

    is_commenting_enabled: bool | None = Field(None, alias="isCommentingEnabled")
    is_auto_moderated: bool | None = Field(None, alias="isAutoModerated")


class CreatedArticlesResponse(BaseModel):
    """IDs of the stored articles."""

    articles: list[UUID]

"""Pydantic schemas for comment ingestion and lookups.

Request bodies use the camelCase field names clients send; Python code reads
them through the snake_case attributes.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


MAX_IDS_PER_REQUEST = 1000


# ==============================================================================
# Request Schemas
# ==============================================================================


class IdListRequest(BaseModel):
    """``{"data": [ids]}`` body shared by bulk endpoints."""

    model_config = ConfigDict(populate_by_name=True)

    data: list[UUID] = Field(..., max_length=MAX_IDS_PER_REQUEST)


class AuthorPayload(BaseModel):
    """Comment author as sent by the publisher."""

    name: str | None = Field(None, max_length=200)
    location: str | None = Field(None, max_length=200)


class PublisherCommentRequest(BaseModel):
    """One comment pushed by a publisher integration."""

    model_config = ConfigDict(populate_by_name=True)

    article_id: UUID = Field(..., alias="articleId")
    source_id: str | None = Field(None, alias="sourceId", max_length=200)
    author_source_id: str | None = Field(None, alias="authorSourceId", max_length=200)
    author: AuthorPayload = Field(default_factory=AuthorPayload)
    text: str = Field(..., min_length=1, max_length=20000)
    source_created_at: datetime | None = Field(None, alias="sourceCreatedAt")

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        """Strip whitespace and validate text."""
        v = v.strip()
        if not v:
            msg = "Text cannot be empty"
            raise ValueError(msg)
        return v


class PublisherCommentsRequest(BaseModel):
    """Batch of comments pushed by a publisher integration."""

    data: list[PublisherCommentRequest] = Field(
        ..., min_length=1, max_length=MAX_IDS_PER_REQUEST
    )


class UpdateTextRequest(BaseModel):
    """Edited comment text; the comment is rescored."""

    text: str = Field(..., min_length=1, max_length=20000)
    author: AuthorPayload | None = None


class AddFlagRequest(BaseModel):
    """User flag forwarded by the publisher."""

    model_config = ConfigDict(populate_by_name=True)

    label: str = Field(..., min_length=1, max_length=100)
    detail: str | None = Field(None, max_length=1000)
    is_recommendation: bool = Field(False, alias="isRecommendation")


# ==============================================================================
# Response Schemas
# ==============================================================================


class CreatedCommentsResponse(BaseModel):
    """IDs of ingested comments and indexes of the rejected ones."""

    comments: list[UUID]
    rejected: list[int] = Field(
        default_factory=list, description="Indexes of comments whose article is unknown"
    )


class MessageResponse(BaseModel):
    """Generic message response."""

    message: str

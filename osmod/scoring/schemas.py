"""Pydantic schemas for score ingestion and tag administration.

Score payloads from scorers are untrusted: they are accepted loosely here and
cleaned by ``osmod.scoring.normalization``.
"""

from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ==============================================================================
# Scorer callback
# ==============================================================================


class ScoresPayload(BaseModel):
    """Asynchronous answer posted by a scorer."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    scores: dict[str, Any] = Field(default_factory=dict)
    summary_scores: dict[str, Any] | None = Field(None, alias="summaryScores")
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Dict in the shape the scorer sent."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ==============================================================================
# Moderator score actions
# ==============================================================================


class TagCommentRequest(BaseModel):
    """Moderator tags a comment, optionally a span of its text."""

    model_config = ConfigDict(populate_by_name=True)

    tag_id: UUID = Field(..., alias="tagId")
    annotation_start: int | None = Field(None, alias="annotationStart", ge=0)
    annotation_end: int | None = Field(None, alias="annotationEnd", ge=0)


# ==============================================================================
# Tags and sensitivities
# ==============================================================================


class TagRequest(BaseModel):
    """Create a tag."""

    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(..., min_length=1, max_length=100)
    label: str | None = Field(None, max_length=200)
    color: str | None = Field(None, max_length=50)
    description: str | None = Field(None, max_length=1000)
    in_summary_score: bool = Field(True, alias="inSummaryScore")
    is_taggable: bool = Field(True, alias="isTaggable")
    is_in_batch_view: bool = Field(False, alias="isInBatchView")


class UpdateTagRequest(BaseModel):
    """Change a tag; omitted fields are unchanged."""

    model_config = ConfigDict(populate_by_name=True)

    key: str | None = Field(None, min_length=1, max_length=100)
    label: str | None = Field(None, max_length=200)
    color: str | None = Field(None, max_length=50)
    description: str | None = Field(None, max_length=1000)
    in_summary_score: bool | None = Field(None, alias="inSummaryScore")
    is_taggable: bool | None = Field(None, alias="isTaggable")
    is_in_batch_view: bool | None = Field(None, alias="isInBatchView")


class SensitivityRequest(BaseModel):
    """Create or replace a tagging sensitivity."""

    model_config = ConfigDict(populate_by_name=True)

    category_id: UUID | None = Field(None, alias="categoryId")
    tag_id: UUID | None = Field(None, alias="tagId")
    lower_threshold: float = Field(..., alias="lowerThreshold", ge=0.0, le=1.0)
    upper_threshold: float = Field(..., alias="upperThreshold", ge=0.0, le=1.0)

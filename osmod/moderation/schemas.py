"""Pydantic schemas for moderation actions, rules and preselects."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from osmod.comments.models import ModerationAction
from osmod.comments.schemas import MAX_IDS_PER_REQUEST


class CommentActionRequest(BaseModel):
    """Comments to act on; queued unless ``runImmediately`` is set."""

    model_config = ConfigDict(populate_by_name=True)

    data: list[UUID] = Field(..., min_length=1, max_length=MAX_IDS_PER_REQUEST)
    run_immediately: bool = Field(False, alias="runImmediately")


class ActionResultResponse(BaseModel):
    """Outcome of an action that ran immediately."""

    action: str
    processed: list[UUID]
    missing: list[UUID] = Field(default_factory=list)


class QueuedActionResponse(BaseModel):
    """An action queued for the workers."""

    action: str
    job_id: str
    queued: int


class RuleRequest(BaseModel):
    """Create a moderation rule.

    Thresholds are checked by rule validation so that a bad range is
    reported with its own error code.
    """

    model_config = ConfigDict(populate_by_name=True)

    action: ModerationAction
    lower_threshold: float = Field(..., alias="lowerThreshold")
    upper_threshold: float = Field(..., alias="upperThreshold")
    category_id: UUID | None = Field(None, alias="categoryId")
    tag_id: UUID | None = Field(None, alias="tagId")


class UpdateRuleRequest(BaseModel):
    """Change a moderation rule; omitted fields are unchanged."""

    model_config = ConfigDict(populate_by_name=True)

    action: ModerationAction | None = None
    lower_threshold: float | None = Field(None, alias="lowerThreshold")
    upper_threshold: float | None = Field(None, alias="upperThreshold")


class PreselectRequest(BaseModel):
    """Create a preselect."""

    model_config = ConfigDict(populate_by_name=True)

    lower_threshold: float = Field(..., alias="lowerThreshold")
    upper_threshold: float = Field(..., alias="upperThreshold")
    category_id: UUID | None = Field(None, alias="categoryId")
    tag_id: UUID | None = Field(None, alias="tagId")

"""Database models for tags and comment scores.

Cassandra table definitions for:
- Tags: scoring attributes (``TOXICITY``...) shown to moderators
- Tagging sensitivities: score ranges at which a tag is applied
- Comment scores: span scores from scorers, moderators and users
- Comment summary scores: one score per (comment, tag)
- Scoring requests: one per (comment, scorer), tracks completion
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class ScoreSourceType(str, Enum):
    """Where a comment score came from."""

    MACHINE = "Machine"
    MODERATOR = "Moderator"
    USER = "User"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

TAG_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.tags (
    tag_id UUID PRIMARY KEY,
    key TEXT,
    label TEXT,
    color TEXT,
    description TEXT,
    in_summary_score BOOLEAN,
    is_taggable BOOLEAN,
    is_in_batch_view BOOLEAN
)
"""

TAGGING_SENSITIVITY_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.tagging_sensitivities (
    sensitivity_id UUID PRIMARY KEY,
    category_id UUID,
    tag_id UUID,
    lower_threshold DOUBLE,
    upper_threshold DOUBLE
)
"""

COMMENT_SCORE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_scores (
    comment_id UUID,
    score_id UUID,
    tag_id UUID,
    source_type TEXT,
    source_id UUID,
    score DOUBLE,
    annotation_start INT,
    annotation_end INT,
    is_confirmed BOOLEAN,
    confirmed_by UUID,
    created_at TIMESTAMP,
    PRIMARY KEY ((comment_id), score_id)
)
"""

COMMENT_SUMMARY_SCORE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_summary_scores (
    comment_id UUID,
    tag_id UUID,
    score DOUBLE,
    is_tagged BOOLEAN,
    is_confirmed BOOLEAN,
    confirmed_by UUID,
    updated_at TIMESTAMP,
    PRIMARY KEY ((comment_id), tag_id)
)
"""

SCORING_REQUEST_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.scoring_requests (
    comment_id UUID,
    user_id UUID,
    sent_at TIMESTAMP,
    done_at TIMESTAMP,
    attempts INT,
    last_error TEXT,
    PRIMARY KEY ((comment_id), user_id)
)
"""

SCORING_TABLES_CQL = [
    TAG_TABLE_CQL,
    TAGGING_SENSITIVITY_TABLE_CQL,
    COMMENT_SCORE_TABLE_CQL,
    COMMENT_SUMMARY_SCORE_TABLE_CQL,
    SCORING_REQUEST_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Tag:
    """A scoring attribute moderators can see and apply."""

    tag_id: UUID
    key: str
    label: str
    color: str | None = None
    description: str | None = None
    in_summary_score: bool = True
    is_taggable: bool = True
    is_in_batch_view: bool = False

    @classmethod
    def from_row(cls, row: Any) -> "Tag":
        """Create Tag from Cassandra row."""
        return cls(
            tag_id=row.tag_id,
            key=row.key,
            label=row.label or row.key,
            color=row.color,
            description=row.description,
            in_summary_score=bool(row.in_summary_score),
            is_taggable=bool(row.is_taggable),
            is_in_batch_view=bool(row.is_in_batch_view),
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": str(self.tag_id),
            "key": self.key,
            "label": self.label,
            "color": self.color,
            "description": self.description,
            "inSummaryScore": self.in_summary_score,
            "isTaggable": self.is_taggable,
            "isInBatchView": self.is_in_batch_view,
        }


@dataclass
class TaggingSensitivity:
    """Score range at which a tag is applied.

    ``category_id`` None means every category, ``tag_id`` None every tag.
    """

    sensitivity_id: UUID
    category_id: UUID | None
    tag_id: UUID | None
    lower_threshold: float
    upper_threshold: float

    @classmethod
    def from_row(cls, row: Any) -> "TaggingSensitivity":
        """Create TaggingSensitivity from Cassandra row."""
        return cls(
            sensitivity_id=row.sensitivity_id,
            category_id=row.category_id,
            tag_id=row.tag_id,
            lower_threshold=row.lower_threshold,
            upper_threshold=row.upper_threshold,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": str(self.sensitivity_id),
            "categoryId": str(self.category_id) if self.category_id else None,
            "tagId": str(self.tag_id) if self.tag_id else None,
            "lowerThreshold": self.lower_threshold,
            "upperThreshold": self.upper_threshold,
        }


@dataclass
class CommentScore:
    """One (optionally annotated) score of a comment for a tag."""

    score_id: UUID
    comment_id: UUID
    tag_id: UUID
    source_type: ScoreSourceType
    source_id: UUID | None
    score: float
    annotation_start: int | None = None
    annotation_end: int | None = None
    is_confirmed: bool | None = None
    confirmed_by: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "CommentScore":
        """Create CommentScore from Cassandra row."""
        return cls(
            score_id=row.score_id,
            comment_id=row.comment_id,
            tag_id=row.tag_id,
            source_type=ScoreSourceType(row.source_type),
            source_id=row.source_id,
            score=row.score,
            annotation_start=row.annotation_start,
            annotation_end=row.annotation_end,
            is_confirmed=row.is_confirmed,
            confirmed_by=row.confirmed_by,
            created_at=row.created_at,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": str(self.score_id),
            "commentId": str(self.comment_id),
            "tagId": str(self.tag_id),
            "sourceType": self.source_type.value,
            "sourceId": str(self.source_id) if self.source_id else None,
            "score": self.score,
            "annotationStart": self.annotation_start,
            "annotationEnd": self.annotation_end,
            "isConfirmed": self.is_confirmed,
        }


@dataclass
class CommentSummaryScore:
    """Comment-level score for one tag."""

    comment_id: UUID
    tag_id: UUID
    score: float
    is_tagged: bool = False
    is_confirmed: bool | None = None
    confirmed_by: UUID | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "CommentSummaryScore":
        """Create CommentSummaryScore from Cassandra row."""
        return cls(
            comment_id=row.comment_id,
            tag_id=row.tag_id,
            score=row.score,
            is_tagged=bool(row.is_tagged),
            is_confirmed=row.is_confirmed,
            confirmed_by=row.confirmed_by,
            updated_at=row.updated_at,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "commentId": str(self.comment_id),
            "tagId": str(self.tag_id),
            "score": self.score,
            "isTagged": self.is_tagged,
            "isConfirmed": self.is_confirmed,
        }


@dataclass
class ScoringRequest:
    """A comment sent to one scorer."""

    comment_id: UUID
    user_id: UUID
    sent_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    done_at: datetime | None = None
    attempts: int = 0
    last_error: str | None = None

    @property
    def is_done(self) -> bool:
        return self.done_at is not None

    @classmethod
    def from_row(cls, row: Any) -> "ScoringRequest":
        """Create ScoringRequest from Cassandra row."""
        return cls(
            comment_id=row.comment_id,
            user_id=row.user_id,
            sent_at=row.sent_at,
            done_at=row.done_at,
            attempts=row.attempts or 0,
            last_error=row.last_error,
        )


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_tag(key: str, label: str | None = None, **kwargs: Any) -> Tag:
    """Create a new tag; ``key`` is the scorer attribute name."""
    return Tag(tag_id=uuid4(), key=key.upper(), label=label or key, **kwargs)


def create_sensitivity(
    lower_threshold: float,
    upper_threshold: float,
    category_id: UUID | None = None,
    tag_id: UUID | None = None,
) -> TaggingSensitivity:
    """Create a new tagging sensitivity."""
    return TaggingSensitivity(
        sensitivity_id=uuid4(),
        category_id=category_id,
        tag_id=tag_id,
        lower_threshold=lower_threshold,
        upper_threshold=upper_threshold,
    )

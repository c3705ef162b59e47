"""Database models for comments and their moderation state.

Cassandra table definitions for:
- Comments: partitioned by article so article counts are recalculated from a
  single partition
- Comment index: comment_id -> article_id for O(1) lookups
- Comment flags: user reports awaiting resolution
- Moderation decisions: audit trail of every action applied to a comment

Moderation state of a comment:
- is_scored: every scorer has answered
- is_moderated: a decision (user, rule or service) is in effect
- is_accepted: True (approved/highlighted), False (rejected), None (undecided)
- is_deferred / is_highlighted: secondary states of a moderated comment
- is_auto_resolved: the decision came from a moderation rule
- is_batch_resolved: the decision was part of a multi-comment user action
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4


class ModerationAction(str, Enum):
    """Actions that change a comment's moderation state."""

    APPROVE = "approve"
    REJECT = "reject"
    DEFER = "defer"
    HIGHLIGHT = "highlight"
    RESET = "reset"


class DecisionSource(str, Enum):
    """Who made a moderation decision."""

    USER = "User"
    RULE = "Rule"
    SERVICE = "Service"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COMMENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comments (
    article_id UUID,
    comment_id UUID,
    source_id TEXT,
    author_source_id TEXT,
    author_name TEXT,
    author_location TEXT,
    text TEXT,
    source_created_at TIMESTAMP,
    is_scored BOOLEAN,
    is_moderated BOOLEAN,
    is_accepted BOOLEAN,
    is_deferred BOOLEAN,
    is_highlighted BOOLEAN,
    is_auto_resolved BOOLEAN,
    is_batch_resolved BOOLEAN,
    unresolved_flags_count INT,
    max_summary_score DOUBLE,
    max_summary_score_tag_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((article_id), comment_id)
)
"""

COMMENT_INDEX_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_articles (
    comment_id UUID PRIMARY KEY,
    article_id UUID
)
"""

COMMENT_FLAGS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.comment_flags (
    comment_id UUID,
    flag_id UUID,
    label TEXT,
    detail TEXT,
    is_recommendation BOOLEAN,
    is_resolved BOOLEAN,
    resolved_by UUID,
    resolved_at TIMESTAMP,
    created_at TIMESTAMP,
    PRIMARY KEY ((comment_id), flag_id)
)
"""

MODERATION_DECISIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.moderation_decisions (
    comment_id UUID,
    created_at TIMESTAMP,
    decision_id UUID,
    action TEXT,
    source TEXT,
    user_id UUID,
    rule_id UUID,
    is_current BOOLEAN,
    PRIMARY KEY ((comment_id), created_at, decision_id)
) WITH CLUSTERING ORDER BY (created_at DESC, decision_id ASC)
"""

COMMENTS_TABLES_CQL = [
    COMMENT_TABLE_CQL,
    COMMENT_INDEX_TABLE_CQL,
    COMMENT_FLAGS_TABLE_CQL,
    MODERATION_DECISIONS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Comment:
    """Comment entity with its moderation state."""

    comment_id: UUID
    article_id: UUID
    source_id: str | None
    author_source_id: str | None
    author_name: str | None
    author_location: str | None
    text: str
    source_created_at: datetime | None
    is_scored: bool = False
    is_moderated: bool = False
    is_accepted: bool | None = None
    is_deferred: bool = False
    is_highlighted: bool = False
    is_auto_resolved: bool = False
    is_batch_resolved: bool = False
    unresolved_flags_count: int = 0
    max_summary_score: float | None = None
    max_summary_score_tag_id: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Comment":
        """Create Comment from Cassandra row."""
        return cls(
            comment_id=row.comment_id,
            article_id=row.article_id,
            source_id=row.source_id,
            author_source_id=row.author_source_id,
            author_name=row.author_name,
            author_location=row.author_location,
            text=row.text or "",
            source_created_at=row.source_created_at,
            is_scored=bool(row.is_scored),
            is_moderated=bool(row.is_moderated),
            is_accepted=row.is_accepted,
            is_deferred=bool(row.is_deferred),
            is_highlighted=bool(row.is_highlighted),
            is_auto_resolved=bool(row.is_auto_resolved),
            is_batch_resolved=bool(row.is_batch_resolved),
            unresolved_flags_count=row.unresolved_flags_count or 0,
            max_summary_score=row.max_summary_score,
            max_summary_score_tag_id=row.max_summary_score_tag_id,
            created_at=row.created_at,
            updated_at=row.updated_at or row.created_at,
        )

    def apply_action(
        self,
        action: ModerationAction,
        source: DecisionSource = DecisionSource.USER,
        is_batch: bool = False,
    ) -> None:
        """Move the comment into the state ``action`` describes."""
        if action is ModerationAction.RESET:
            self.is_moderated = False
            self.is_accepted = None
            self.is_deferred = False
            self.is_highlighted = False
            self.is_auto_resolved = False
            self.is_batch_resolved = False
        else:
            self.is_moderated = True
            self.is_deferred = action is ModerationAction.DEFER
            self.is_highlighted = action is ModerationAction.HIGHLIGHT
            if action is ModerationAction.REJECT:
                self.is_accepted = False
            elif action is ModerationAction.DEFER:
                self.is_accepted = None
            else:
                self.is_accepted = True
            self.is_auto_resolved = source is DecisionSource.RULE
            self.is_batch_resolved = is_batch and source is DecisionSource.USER
        self.updated_at = datetime.now(UTC)

    def to_wire(self) -> dict[str, Any]:
        """Shape returned to moderation clients."""
        return {
            "id": str(self.comment_id),
            "articleId": str(self.article_id),
            "sourceId": self.source_id,
            "authorSourceId": self.author_source_id,
            "author": {"name": self.author_name, "location": self.author_location},
            "text": self.text,
            "sourceCreatedAt": self.source_created_at.isoformat()
            if self.source_created_at
            else None,
            "updatedAt": self.updated_at.isoformat(),
            "isScored": self.is_scored,
            "isModerated": self.is_moderated,
            "isAccepted": self.is_accepted,
            "isDeferred": self.is_deferred,
            "isHighlighted": self.is_highlighted,
            "isAutoResolved": self.is_auto_resolved,
            "isBatchResolved": self.is_batch_resolved,
            "unresolvedFlagsCount": self.unresolved_flags_count,
            "maxSummaryScore": self.max_summary_score,
            "maxSummaryScoreTagId": str(self.max_summary_score_tag_id)
            if self.max_summary_score_tag_id
            else None,
        }


@dataclass
class CommentFlag:
    """A user flag (report) on a comment."""

    flag_id: UUID
    comment_id: UUID
    label: str
    detail: str | None = None
    is_recommendation: bool = False
    is_resolved: bool = False
    resolved_by: UUID | None = None
    resolved_at: datetime | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "CommentFlag":
        """Create CommentFlag from Cassandra row."""
        return cls(
            flag_id=row.flag_id,
            comment_id=row.comment_id,
            label=row.label,
            detail=row.detail,
            is_recommendation=bool(row.is_recommendation),
            is_resolved=bool(row.is_resolved),
            resolved_by=row.resolved_by,
            resolved_at=row.resolved_at,
            created_at=row.created_at,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": str(self.flag_id),
            "commentId": str(self.comment_id),
            "label": self.label,
            "detail": self.detail,
            "isRecommendation": self.is_recommendation,
            "isResolved": self.is_resolved,
            "resolvedById": str(self.resolved_by) if self.resolved_by else None,
        }


@dataclass
class ModerationDecision:
    """Audit entry for one decision applied to a comment."""

    decision_id: UUID
    comment_id: UUID
    action: ModerationAction
    source: DecisionSource
    user_id: UUID | None
    rule_id: UUID | None
    is_current: bool
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "ModerationDecision":
        """Create ModerationDecision from Cassandra row."""
        return cls(
            decision_id=row.decision_id,
            comment_id=row.comment_id,
            action=ModerationAction(row.action),
            source=DecisionSource(row.source),
            user_id=row.user_id,
            rule_id=row.rule_id,
            is_current=bool(row.is_current),
            created_at=row.created_at,
        )


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_comment(
    article_id: UUID,
    text: str,
    source_id: str | None = None,
    author_source_id: str | None = None,
    author_name: str | None = None,
    author_location: str | None = None,
    source_created_at: datetime | None = None,
) -> Comment:
    """Create a new, unscored and unmoderated comment."""
    return Comment(
        comment_id=uuid4(),
        article_id=article_id,
        source_id=source_id,
        author_source_id=author_source_id,
        author_name=author_name,
        author_location=author_location,
        text=text,
        source_created_at=source_created_at,
    )


def create_decision(
    comment_id: UUID,
    action: ModerationAction,
    source: DecisionSource,
    user_id: UUID | None = None,
    rule_id: UUID | None = None,
) -> ModerationDecision:
    """Create the current decision for a comment."""
    return ModerationDecision(
        decision_id=uuid4(),
        comment_id=comment_id,
        action=action,
        source=source,
        user_id=user_id,
        rule_id=rule_id,
        is_current=True,
        created_at=datetime.now(UTC),
    )

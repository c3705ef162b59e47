"""Database models for moderation rules and preselects."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from osmod.comments.models import DecisionSource, ModerationAction


class FlagAction(str, Enum):
    """Actions on the user flags of a comment."""

    RESOLVE = "resolve-flags"
    APPROVE = "approve-flags"
    REJECT = "reject-flags"


# Actions a rule may take; reset is only available to humans
RULE_ACTIONS = frozenset(
    {
        ModerationAction.APPROVE,
        ModerationAction.REJECT,
        ModerationAction.DEFER,
        ModerationAction.HIGHLIGHT,
    }
)


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

MODERATION_RULE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.moderation_rules (
    rule_id UUID PRIMARY KEY,
    category_id UUID,
    tag_id UUID,
    lower_threshold DOUBLE,
    upper_threshold DOUBLE,
    action TEXT,
    created_by UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

PRESELECT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.preselects (
    preselect_id UUID PRIMARY KEY,
    category_id UUID,
    tag_id UUID,
    lower_threshold DOUBLE,
    upper_threshold DOUBLE,
    created_by UUID,
    created_at TIMESTAMP
)
"""

MODERATION_TABLES_CQL = [
    MODERATION_RULE_TABLE_CQL,
    PRESELECT_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class ModerationRule:
    """Automatic action for comments whose score falls inside a range.

    ``category_id`` None applies to every category; ``tag_id`` None compares
    against the comment's max summary score.
    """

    rule_id: UUID
    category_id: UUID | None
    tag_id: UUID | None
    lower_threshold: float
    upper_threshold: float
    action: ModerationAction
    created_by: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "ModerationRule":
        """Create ModerationRule from Cassandra row."""
        return cls(
            rule_id=row.rule_id,
            category_id=row.category_id,
            tag_id=row.tag_id,
            lower_threshold=row.lower_threshold,
            upper_threshold=row.upper_threshold,
            action=ModerationAction(row.action),
            created_by=row.created_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": str(self.rule_id),
            "categoryId": str(self.category_id) if self.category_id else None,
            "tagId": str(self.tag_id) if self.tag_id else None,
            "lowerThreshold": self.lower_threshold,
            "upperThreshold": self.upper_threshold,
            "action": self.action.value,
            "createdBy": str(self.created_by) if self.created_by else None,
        }


@dataclass
class Preselect:
    """Score range preselected in moderator views."""

    preselect_id: UUID
    category_id: UUID | None
    tag_id: UUID | None
    lower_threshold: float
    upper_threshold: float
    created_by: UUID | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Preselect":
        """Create Preselect from Cassandra row."""
        return cls(
            preselect_id=row.preselect_id,
            category_id=row.category_id,
            tag_id=row.tag_id,
            lower_threshold=row.lower_threshold,
            upper_threshold=row.upper_threshold,
            created_by=row.created_by,
            created_at=row.created_at,
        )

    def to_wire(self) -> dict[str, Any]:
        return {
            "id": str(self.preselect_id),
            "categoryId": str(self.category_id) if self.category_id else None,
            "tagId": str(self.tag_id) if self.tag_id else None,
            "lowerThreshold": self.lower_threshold,
            "upperThreshold": self.upper_threshold,
        }


def create_rule(
    action: ModerationAction,
    lower_threshold: float,
    upper_threshold: float,
    category_id: UUID | None = None,
    tag_id: UUID | None = None,
    created_by: UUID | None = None,
) -> ModerationRule:
    """Create a new moderation rule."""
    return ModerationRule(
        rule_id=uuid4(),
        category_id=category_id,
        tag_id=tag_id,
        lower_threshold=lower_threshold,
        upper_threshold=upper_threshold,
        action=action,
        created_by=created_by,
    )


def create_preselect(
    lower_threshold: float,
    upper_threshold: float,
    category_id: UUID | None = None,
    tag_id: UUID | None = None,
    created_by: UUID | None = None,
) -> Preselect:
    """Create a new preselect."""
    return Preselect(
        preselect_id=uuid4(),
        category_id=category_id,
        tag_id=tag_id,
        lower_threshold=lower_threshold,
        upper_threshold=upper_threshold,
        created_by=created_by,
    )


__all__ = [
    "MODERATION_TABLES_CQL",
    "RULE_ACTIONS",
    "DecisionSource",
    "FlagAction",
    "ModerationAction",
    "ModerationRule",
    "Preselect",
    "create_preselect",
    "create_rule",
]

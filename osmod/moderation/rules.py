"""Validation of moderation rules.

A rule's range must satisfy ``0 <= lower <= upper <= 1``, and two rules for
the same (category, tag) with different actions must not overlap, otherwise
the same score would both approve and reject a comment.
"""

from collections.abc import Iterable

from .models import RULE_ACTIONS, ModerationRule


class RuleValidationError(Exception):
    """Rule rejected by validation."""

    def __init__(self, message: str, code: str = "rule_invalid"):
        self.message = message
        self.code = code
        super().__init__(message)


def ranges_overlap(a: ModerationRule, b: ModerationRule) -> bool:
    """Check if two closed ranges share at least one score."""
    return a.lower_threshold <= b.upper_threshold and b.lower_threshold <= a.upper_threshold


def find_conflicts(
    rule: ModerationRule, existing: Iterable[ModerationRule]
) -> list[ModerationRule]:
    """Rules in the same scope with a different action and an overlapping range."""
    return [
        other
        for other in existing
        if other.rule_id != rule.rule_id
        and other.category_id == rule.category_id
        and other.tag_id == rule.tag_id
        and other.action is not rule.action
        and ranges_overlap(rule, other)
    ]


def validate_rule(rule: ModerationRule, existing: Iterable[ModerationRule]) -> None:
    """Check a new or updated rule against the rules already stored.

    Raises:
        RuleValidationError: If the action, the range or an overlap is invalid
    """
    if rule.action not in RULE_ACTIONS:
        msg = f"Rules cannot {rule.action.value} comments"
        raise RuleValidationError(msg, "rule_invalid_action")

    if not 0.0 <= rule.lower_threshold <= rule.upper_threshold <= 1.0:
        msg = (
            f"Invalid range [{rule.lower_threshold}, {rule.upper_threshold}]: "
            "expected 0 <= lower <= upper <= 1"
        )
        raise RuleValidationError(msg, "rule_invalid_range")

    conflicts = find_conflicts(rule, existing)
    if conflicts:
        ids = ", ".join(str(c.rule_id) for c in conflicts)
        msg = f"Range overlaps rules with a different action: {ids}"
        raise RuleValidationError(msg, "rule_overlap")

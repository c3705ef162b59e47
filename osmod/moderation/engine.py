"""Moderation decision engine.

Matches moderation rules against a comment's summary scores and picks one
action. The engine is pure: loading rules and applying the decision is the
job of ``ModerationService``.

Resolution when several rules match:

- nothing matched: no action
- an accept-side action (approve, highlight) and reject both matched: defer,
  a human has to look at it
- otherwise defer wins over everything, and highlight wins over approve
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from uuid import UUID

from osmod.comments.models import Comment, ModerationAction

from .models import ModerationRule


ACCEPT_ACTIONS = frozenset({ModerationAction.APPROVE, ModerationAction.HIGHLIGHT})


@dataclass
class Decision:
    """Result of running the rules for one comment."""

    action: ModerationAction | None
    rules: list[ModerationRule] = field(default_factory=list)
    reason: str = ""

    @property
    def rule_id(self) -> UUID | None:
        """Rule credited with the decision (first rule with the chosen action)."""
        for rule in self.rules:
            if rule.action is self.action:
                return rule.rule_id
        return None


def rule_matches(
    rule: ModerationRule,
    summary_scores: Mapping[UUID, float],
    max_summary_score: float | None,
    category_id: UUID | None,
) -> bool:
    """Check a single rule against a comment's scores."""
    if rule.category_id is not None and rule.category_id != category_id:
        return False

    if rule.tag_id is None:
        score = max_summary_score
    else:
        score = summary_scores.get(rule.tag_id)
    if score is None:
        return False

    return rule.lower_threshold <= score <= rule.upper_threshold


def resolve_actions(actions: set[ModerationAction]) -> tuple[ModerationAction | None, str]:
    """Pick one action out of the matched ones."""
    if not actions:
        return None, "no rule matched"
    if actions & ACCEPT_ACTIONS and ModerationAction.REJECT in actions:
        return ModerationAction.DEFER, "conflicting rules"
    if ModerationAction.DEFER in actions:
        return ModerationAction.DEFER, "defer rule matched"
    if ModerationAction.HIGHLIGHT in actions:
        return ModerationAction.HIGHLIGHT, "highlight rule matched"
    (action,) = actions
    return action, f"{action.value} rule matched"


def decide(
    summary_scores: Mapping[UUID, float],
    rules: Iterable[ModerationRule],
    category_id: UUID | None,
    max_summary_score: float | None = None,
) -> Decision:
    """Run the rules against summary scores.

    Args:
        summary_scores: Summary score per tag ID
        rules: Every configured rule
        category_id: Category of the comment's article
        max_summary_score: Score used by rules without a tag; defaults to the
            highest summary score

    Returns:
        The decision; ``action`` is None when no rule applies
    """
    if max_summary_score is None and summary_scores:
        max_summary_score = max(summary_scores.values())

    matched = [
        rule
        for rule in rules
        if rule_matches(rule, summary_scores, max_summary_score, category_id)
    ]
    action, reason = resolve_actions({rule.action for rule in matched})
    return Decision(action=action, rules=matched, reason=reason)


def skip_reason(comment: Comment, is_auto_moderated: bool) -> str | None:
    """Why rules must not run for a comment, or None if they may."""
    if not is_auto_moderated:
        return "article is not auto-moderated"
    if not comment.is_scored:
        return "scoring is not complete"
    if comment.is_moderated and not comment.is_auto_resolved:
        return "comment was moderated by a user"
    return None

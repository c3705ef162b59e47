"""Tests for moderation rule validation."""

from uuid import uuid4

import pytest

from osmod.comments.models import ModerationAction
from osmod.moderation.models import create_rule
from osmod.moderation.rules import (
    RuleValidationError,
    find_conflicts,
    ranges_overlap,
    validate_rule,
)


class TestRangesOverlap:
    """Tests for ranges_overlap."""

    @pytest.mark.parametrize(
        "a,b,expected",
        [
            ((0.0, 0.5), (0.5, 1.0), True),
            ((0.0, 0.4), (0.5, 1.0), False),
            ((0.2, 0.8), (0.3, 0.4), True),
            ((0.6, 0.9), (0.0, 0.5), False),
        ],
    )
    def test_overlap(self, a, b, expected: bool) -> None:
        first = create_rule(ModerationAction.APPROVE, *a)
        second = create_rule(ModerationAction.REJECT, *b)
        assert ranges_overlap(first, second) is expected
        assert ranges_overlap(second, first) is expected


class TestValidateRule:
    """Tests for validate_rule."""

    def test_valid_rule(self) -> None:
        validate_rule(create_rule(ModerationAction.REJECT, 0.8, 1.0), [])

    def test_reset_is_not_a_rule_action(self) -> None:
        with pytest.raises(RuleValidationError) as exc_info:
            validate_rule(create_rule(ModerationAction.RESET, 0.0, 1.0), [])
        assert exc_info.value.code == "rule_invalid_action"

    @pytest.mark.parametrize("lower,upper", [(0.6, 0.4), (-0.1, 0.5), (0.5, 1.5)])
    def test_invalid_range(self, lower: float, upper: float) -> None:
        with pytest.raises(RuleValidationError) as exc_info:
            validate_rule(create_rule(ModerationAction.APPROVE, lower, upper), [])
        assert exc_info.value.code == "rule_invalid_range"

    def test_overlap_with_other_action(self) -> None:
        existing = create_rule(ModerationAction.APPROVE, 0.0, 0.5)
        rule = create_rule(ModerationAction.REJECT, 0.4, 1.0)
        with pytest.raises(RuleValidationError) as exc_info:
            validate_rule(rule, [existing])
        assert exc_info.value.code == "rule_overlap"
        assert str(existing.rule_id) in exc_info.value.message

    def test_overlap_with_same_action_is_allowed(self) -> None:
        existing = create_rule(ModerationAction.REJECT, 0.7, 1.0)
        validate_rule(create_rule(ModerationAction.REJECT, 0.8, 1.0), [existing])

    def test_other_scopes_do_not_conflict(self) -> None:
        existing = create_rule(ModerationAction.APPROVE, 0.0, 1.0, tag_id=uuid4())
        other_category = create_rule(
            ModerationAction.APPROVE, 0.0, 1.0, category_id=uuid4()
        )
        rule = create_rule(ModerationAction.REJECT, 0.0, 1.0)
        assert find_conflicts(rule, [existing, other_category]) == []

    def test_updated_rule_does_not_conflict_with_itself(self) -> None:
        rule = create_rule(ModerationAction.APPROVE, 0.0, 0.5)
        stored = create_rule(ModerationAction.REJECT, 0.0, 0.5)
        stored.rule_id = rule.rule_id
        validate_rule(rule, [stored])

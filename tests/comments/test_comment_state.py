"""Tests for comment moderation state and the comment service."""

from unittest.mock import Mock
from uuid import uuid4

import pytest

from osmod.comments.models import (
    DecisionSource,
    ModerationAction,
    create_comment,
    create_decision,
)
from osmod.comments.service import (
    CommentNotFoundError,
    CommentService,
    CommentValidationError,
)


@pytest.fixture
def comment():
    return create_comment(uuid4(), "A perfectly civil remark", author_name="Ann")


class TestApplyAction:
    """Tests for Comment.apply_action."""

    @pytest.mark.parametrize(
        "action,accepted,deferred,highlighted",
        [
            (ModerationAction.APPROVE, True, False, False),
            (ModerationAction.REJECT, False, False, False),
            (ModerationAction.DEFER, None, True, False),
            (ModerationAction.HIGHLIGHT, True, False, True),
        ],
    )
    def test_actions(self, comment, action, accepted, deferred, highlighted) -> None:
        comment.apply_action(action)
        assert comment.is_moderated is True
        assert comment.is_accepted is accepted
        assert comment.is_deferred is deferred
        assert comment.is_highlighted is highlighted
        assert comment.is_auto_resolved is False

    def test_reset(self, comment) -> None:
        comment.apply_action(ModerationAction.HIGHLIGHT, DecisionSource.RULE)
        comment.apply_action(ModerationAction.RESET)
        assert comment.is_moderated is False
        assert comment.is_accepted is None
        assert comment.is_highlighted is False
        assert comment.is_auto_resolved is False

    def test_rule_decision_is_auto_resolved(self, comment) -> None:
        comment.apply_action(ModerationAction.REJECT, DecisionSource.RULE, is_batch=True)
        assert comment.is_auto_resolved is True
        assert comment.is_batch_resolved is False

    def test_user_batch(self, comment) -> None:
        comment.apply_action(ModerationAction.APPROVE, is_batch=True)
        assert comment.is_batch_resolved is True

    def test_later_action_replaces_earlier(self, comment) -> None:
        comment.apply_action(ModerationAction.DEFER)
        comment.apply_action(ModerationAction.APPROVE)
        assert comment.is_deferred is False
        assert comment.is_accepted is True

    def test_to_wire(self, comment) -> None:
        comment.apply_action(ModerationAction.REJECT)
        data = comment.to_wire()
        assert data["id"] == str(comment.comment_id)
        assert data["author"] == {"name": "Ann", "location": None}
        assert data["isAccepted"] is False
        assert data["maxSummaryScoreTagId"] is None


class TestCommentService:
    """Tests for CommentService."""

    @pytest.fixture
    def service(self, session: Mock) -> CommentService:
        return CommentService(session, "osmod")

    async def test_create_comment_writes_index(
        self, service: CommentService, session: Mock, comment
    ) -> None:
        await service.create_comment(comment)
        statements = [c.args[0] for c in session.aexecute.await_args_list]
        assert statements == [service._insert_comment, service._insert_index]
        assert session.aexecute.await_args.args[1] == [
            comment.comment_id,
            comment.article_id,
        ]

    @pytest.mark.parametrize("text", ["", "   ", "x" * (CommentService.MAX_TEXT_LENGTH + 1)])
    async def test_create_comment_rejects_text(
        self, service: CommentService, text: str
    ) -> None:
        with pytest.raises(CommentValidationError):
            await service.create_comment(create_comment(uuid4(), text))

    async def test_get_missing_comment(self, service: CommentService) -> None:
        with pytest.raises(CommentNotFoundError):
            await service.get_comment(uuid4())

    async def test_add_flag_counts_unresolved(
        self, service: CommentService, comment
    ) -> None:
        await service.add_flag(comment, "spam")
        await service.add_flag(comment, "fine", is_recommendation=True)
        assert comment.unresolved_flags_count == 1

    async def test_record_decision_retires_current(
        self, service: CommentService, session: Mock, comment
    ) -> None:
        previous = create_decision(
            comment.comment_id, ModerationAction.APPROVE, DecisionSource.USER
        )
        row = Mock(
            decision_id=previous.decision_id,
            comment_id=previous.comment_id,
            action="approve",
            source="User",
            user_id=None,
            rule_id=None,
            is_current=True,
            created_at=previous.created_at,
        )
        session.aexecute.return_value = [row]

        await service.record_decision(
            create_decision(comment.comment_id, ModerationAction.REJECT, DecisionSource.RULE)
        )

        statements = [c.args[0] for c in session.aexecute.await_args_list]
        assert statements == [
            service._list_decisions,
            service._retire_decision,
            service._insert_decision,
        ]

    async def test_mark_scored_applies_once(
        self, service: CommentService, session: Mock, comment
    ) -> None:
        comment.max_summary_score = 0.7
        session.aexecute.return_value = Mock(was_applied=True)

        assert await service.mark_scored(comment) is True
        assert comment.is_scored is True
        params = session.aexecute.await_args.args[1]
        assert params == [
            0.7,
            None,
            comment.updated_at,
            comment.article_id,
            comment.comment_id,
        ]

    async def test_mark_scored_lost_race(
        self, service: CommentService, session: Mock, comment
    ) -> None:
        session.aexecute.return_value = Mock(was_applied=False)

        assert await service.mark_scored(comment) is False
        assert comment.is_scored is False

"""Tests for the job handlers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest

from osmod.comments.models import ModerationAction
from osmod.comments.service import CommentNotFoundError
from osmod.moderation.models import FlagAction
from osmod.moderation.service import ActionResult
from osmod.scoring.service import SendResult
from osmod.workqueue.models import Job, JobType
from osmod.workqueue.tasks import SWEEP_CHUNK_SIZE, JobHandlers


@pytest.fixture
def handlers() -> JobHandlers:
    dispatcher = Mock()
    return JobHandlers(
        dispatcher,
        scoring_service=AsyncMock(),
        moderation_service=AsyncMock(),
        comment_service=AsyncMock(),
        article_service=AsyncMock(),
        text_size_service=AsyncMock(),
        text_size_widths=[696],
    )


class TestSendForScoring:
    """Tests for the scoring handlers."""

    async def test_failed_scorers_fail_the_item(self, handlers: JobHandlers) -> None:
        ok, failing, gone, broken = uuid4(), uuid4(), uuid4(), uuid4()

        async def send(comment_id):
            if comment_id == failing:
                return SendResult(comment_id, failed=[uuid4()])
            if comment_id == gone:
                raise CommentNotFoundError
            if comment_id == broken:
                raise RuntimeError("timeout")
            return SendResult(comment_id, sent=[uuid4()])

        handlers.scoring.send_for_scoring.side_effect = send
        job = Job(
            JobType.SEND_FOR_SCORING,
            {"items": [str(ok), str(failing), str(gone), str(broken)]},
        )

        result = await handlers.send_for_scoring(job)

        assert result.processed == [str(ok)]
        assert result.failed_items == [str(failing), str(broken)]
        assert not result.ok

    async def test_rescore(self, handlers: JobHandlers) -> None:
        comment_id = uuid4()
        handlers.scoring.rescore.return_value = SendResult(comment_id)

        result = await handlers.rescore(Job(JobType.RESCORE, {"items": [str(comment_id)]}))

        assert result.ok
        handlers.scoring.rescore.assert_awaited_once_with(comment_id)


class TestArticleCounts:
    """Tests for the article counts handler."""

    async def test_given_articles(self, handlers: JobHandlers) -> None:
        article_id = uuid4()
        handlers.moderation.refresh_articles.return_value = [
            SimpleNamespace(article_id=article_id)
        ]

        result = await handlers.update_article_counts(
            Job(JobType.UPDATE_ARTICLE_COUNTS, {"items": [str(article_id)]})
        )

        handlers.moderation.refresh_articles.assert_awaited_once_with([article_id])
        assert result.processed == [str(article_id)]

    async def test_all_articles(self, handlers: JobHandlers) -> None:
        ids = [uuid4(), uuid4()]
        handlers.articles.list_articles.return_value = [
            SimpleNamespace(article_id=i) for i in ids
        ]
        handlers.moderation.refresh_articles.return_value = []

        await handlers.update_article_counts(
            Job(JobType.UPDATE_ARTICLE_COUNTS, {"all": True})
        )

        handlers.moderation.refresh_articles.assert_awaited_once_with(ids)


class TestCommentAction:
    """Tests for queued moderation actions."""

    async def test_moderation_action(self, handlers: JobHandlers) -> None:
        comment_id, user_id = uuid4(), uuid4()
        handlers.moderation.apply_action.return_value = ActionResult(
            action="approve", processed=[comment_id]
        )

        result = await handlers.comment_action(
            Job(
                JobType.COMMENT_ACTION,
                {"action": "approve", "user_id": str(user_id), "items": [str(comment_id)]},
            )
        )

        handlers.moderation.apply_action.assert_awaited_once_with(
            [comment_id], ModerationAction.APPROVE, user_id
        )
        assert result.processed == [str(comment_id)]

    async def test_flag_action(self, handlers: JobHandlers) -> None:
        comment_id = uuid4()
        handlers.moderation.apply_flag_action.return_value = ActionResult(
            action="resolve-flags"
        )

        await handlers.comment_action(
            Job(
                JobType.COMMENT_ACTION,
                {"action": "resolve-flags", "items": [str(comment_id)]},
            )
        )

        handlers.moderation.apply_flag_action.assert_awaited_once_with(
            [comment_id], FlagAction.RESOLVE, None
        )

    async def test_tag_action(self, handlers: JobHandlers) -> None:
        comment_id, tag_id = uuid4(), uuid4()
        handlers.moderation.tag_comments.return_value = ActionResult(action="tag")

        await handlers.comment_action(
            Job(
                JobType.COMMENT_ACTION,
                {"action": "tag", "tag_id": str(tag_id), "items": [str(comment_id)]},
            )
        )

        handlers.moderation.tag_comments.assert_awaited_once_with(
            [comment_id], tag_id, None
        )


class TestOtherHandlers:
    """Tests for text sizes and the unscored sweep."""

    async def test_text_sizes_default_widths(self, handlers: JobHandlers) -> None:
        comment_id = uuid4()
        await handlers.compute_text_sizes(
            Job(JobType.TEXT_SIZES, {"items": [str(comment_id)]})
        )
        handlers.text_sizes.compute.assert_awaited_once_with([comment_id], [696])

    async def test_sweep_in_chunks(self, handlers: JobHandlers) -> None:
        ids = [uuid4() for _ in range(SWEEP_CHUNK_SIZE + 5)]
        handlers.comments.list_unscored_comment_ids.return_value = ids
        handlers.dispatcher.enqueue.return_value = Mock()

        result = await handlers.sweep_unscored(Job(JobType.SWEEP_UNSCORED))

        assert handlers.dispatcher.enqueue.call_count == 2
        first_call = handlers.dispatcher.enqueue.call_args_list[0]
        assert first_call.args[0] is JobType.SEND_FOR_SCORING
        assert len(first_call.args[1]["items"]) == SWEEP_CHUNK_SIZE
        assert len(result.processed) == len(ids)

    async def test_sweep_with_full_queue(self, handlers: JobHandlers) -> None:
        handlers.comments.list_unscored_comment_ids.return_value = [uuid4()]
        handlers.dispatcher.enqueue.return_value = None

        result = await handlers.sweep_unscored(Job(JobType.SWEEP_UNSCORED))

        assert result.processed == []

    def test_register(self, handlers: JobHandlers) -> None:
        handlers.register()
        registered = {c.args[0] for c in handlers.dispatcher.register.call_args_list}
        assert registered == set(JobType)

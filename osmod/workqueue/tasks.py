"""Job handlers.

Each handler processes the items of one job and reports the items that
failed; the dispatcher retries only those.
"""

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from osmod.comments.models import ModerationAction
from osmod.comments.service import CommentNotFoundError
from osmod.moderation.models import FlagAction

from .models import Job, JobResult, JobType


if TYPE_CHECKING:
    from osmod.articles.service import ArticleService
    from osmod.comments.service import CommentService
    from osmod.moderation.service import ModerationService
    from osmod.scoring.service import ScoringService

    from .dispatcher import WorkQueueDispatcher
    from .textsize import TextSizeService


logger = structlog.get_logger(__name__)


SWEEP_CHUNK_SIZE = 100


async def _each_item(
    job: Job, process: Callable[[UUID], Awaitable[bool | None]]
) -> JobResult:
    """Run ``process`` per item; False or an exception marks the item failed.

    Items whose comment no longer exists are dropped, not retried.
    """
    result = JobResult()
    for item in job.items:
        try:
            ok = await process(UUID(str(item)))
        except CommentNotFoundError:
            logger.info("job_item_skipped", item=str(item), reason="comment_not_found")
            continue
        except Exception as e:
            logger.warning("job_item_failed", item=str(item), error=str(e))
            result.failed_items.append(item)
            continue
        if ok is False:
            result.failed_items.append(item)
        else:
            result.processed.append(item)
    return result


class JobHandlers:
    """Handlers for every job type, bound to the application services."""

    def __init__(
        self,
        dispatcher: "WorkQueueDispatcher",
        scoring_service: "ScoringService",
        moderation_service: "ModerationService",
        comment_service: "CommentService",
        article_service: "ArticleService",
        text_size_service: "TextSizeService",
        text_size_widths: list[int],
    ):
        self.dispatcher = dispatcher
        self.scoring = scoring_service
        self.moderation = moderation_service
        self.comments = comment_service
        self.articles = article_service
        self.text_sizes = text_size_service
        self.text_size_widths = text_size_widths

    def register(self) -> None:
        """Register every handler with the dispatcher."""
        self.dispatcher.register(JobType.SEND_FOR_SCORING, self.send_for_scoring)
        self.dispatcher.register(JobType.RESCORE, self.rescore)
        self.dispatcher.register(JobType.UPDATE_ARTICLE_COUNTS, self.update_article_counts)
        self.dispatcher.register(JobType.TEXT_SIZES, self.compute_text_sizes)
        self.dispatcher.register(JobType.COMMENT_ACTION, self.comment_action)
        self.dispatcher.register(JobType.SWEEP_UNSCORED, self.sweep_unscored)

    async def send_for_scoring(self, job: Job) -> JobResult:
        """Send comments to scorers; a comment fails if any scorer failed."""

        async def process(comment_id: UUID) -> bool:
            sent = await self.scoring.send_for_scoring(comment_id)
            return not sent.failed

        return await _each_item(job, process)

    async def rescore(self, job: Job) -> JobResult:
        """Drop machine scores and score comments again."""

        async def process(comment_id: UUID) -> bool:
            sent = await self.scoring.rescore(comment_id)
            return not sent.failed

        return await _each_item(job, process)

    async def update_article_counts(self, job: Job) -> JobResult:
        """Recalculate counts of the given (or all) articles."""
        if job.payload.get("all"):
            article_ids = [a.article_id for a in await self.articles.list_articles()]
        else:
            article_ids = [UUID(str(item)) for item in job.items]

        updated = await self.moderation.refresh_articles(article_ids)
        return JobResult(processed=[str(a.article_id) for a in updated])

    async def compute_text_sizes(self, job: Job) -> JobResult:
        """Precompute text heights of comments."""
        widths = job.payload.get("widths") or self.text_size_widths
        comment_ids = [UUID(str(item)) for item in job.items]
        await self.text_sizes.compute(comment_ids, widths)
        return JobResult(processed=job.items)

    async def comment_action(self, job: Job) -> JobResult:
        """Moderation action queued with ``runImmediately`` false."""
        action: str = job.payload["action"]
        user_id = _optional_uuid(job.payload.get("user_id"))
        comment_ids = [UUID(str(item)) for item in job.items]

        if action == "tag":
            result = await self.moderation.tag_comments(
                comment_ids, UUID(job.payload["tag_id"]), user_id
            )
        elif action in {a.value for a in FlagAction}:
            result = await self.moderation.apply_flag_action(
                comment_ids, FlagAction(action), user_id
            )
        else:
            result = await self.moderation.apply_action(
                comment_ids, ModerationAction(action), user_id
            )
        return JobResult(processed=[str(cid) for cid in result.processed])

    async def sweep_unscored(self, _job: Job) -> JobResult:
        """Queue every unscored comment for scoring, in chunks."""
        comment_ids = [str(cid) for cid in await self.comments.list_unscored_comment_ids()]
        queued: list[str] = []
        for start in range(0, len(comment_ids), SWEEP_CHUNK_SIZE):
            chunk = comment_ids[start : start + SWEEP_CHUNK_SIZE]
            if self.dispatcher.enqueue(JobType.SEND_FOR_SCORING, {"items": chunk}):
                queued.extend(chunk)

        logger.info(
            "unscored_comments_swept", found=len(comment_ids), queued=len(queued)
        )
        return JobResult(processed=queued)


def _optional_uuid(value: Any) -> UUID | None:
    return UUID(str(value)) if value else None

# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Score ingestion service.

Business logic for:
- Tags and tagging sensitivities
- Sending comments to scorers and tracking scoring requests
- Storing normalized machine scores and summary scores
- Completing scoring (max summary score, then the ``on_scored`` hook)
- Moderator score actions (tag, confirm, reject, reset, delete)
"""

from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

import structlog

from osmod.articles.service import ArticleService
from osmod.auth.service import UserService
from osmod.comments.models import Comment
from osmod.comments.service import CommentService
from osmod.config.settings import Settings

from .models import (
    CommentScore,
    CommentSummaryScore,
    ScoreSourceType,
    ScoringRequest,
    Tag,
    TaggingSensitivity,
)
from .normalization import (
    find_sensitivity,
    is_tagged,
    max_summary_score,
    normalize_scores,
)
from .proxy import ScoringProxyClient, ScoringProxyError


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ScoringError(Exception):
    """Base scoring error."""

    def __init__(self, message: str, code: str = "scoring_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ScoringRequestNotFoundError(ScoringError):
    """Scores arrived for a comment that was never sent to that scorer."""

    def __init__(self, message: str = "No scoring request for this comment"):
        super().__init__(message, "scoring_request_not_found")


class ScoreNotFoundError(ScoringError):
    """Comment score not found."""

    def __init__(self, message: str = "Score not found"):
        super().__init__(message, "score_not_found")


class TagNotFoundError(ScoringError):
    """Tag not found."""

    def __init__(self, message: str = "Tag not found"):
        super().__init__(message, "tag_not_found")


class ScoringValidationError(ScoringError):
    """Invalid tag, sensitivity or score."""

    def __init__(self, message: str):
        super().__init__(message, "scoring_invalid")


def validate_range(lower: float, upper: float) -> None:
    """Require ``0 <= lower <= upper <= 1``."""
    if not 0.0 <= lower <= upper <= 1.0:
        msg = f"Invalid range [{lower}, {upper}]: expected 0 <= lower <= upper <= 1"
        raise ScoringValidationError(msg)


@dataclass
class SendResult:
    """Outcome of sending one comment to its scorers."""

    comment_id: UUID
    sent: list[UUID] = field(default_factory=list)
    failed: list[UUID] = field(default_factory=list)
    completed: bool = False


OnScored = Callable[[Comment], Awaitable[None]]


# ==============================================================================
# Scoring Service
# ==============================================================================


class ScoringService:
    """Service for tags, comment scores and the scoring lifecycle."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        settings: Settings,
        comment_service: CommentService,
        article_service: ArticleService,
        user_service: UserService,
        proxy: ScoringProxyClient,
    ):
        """Initialize with Cassandra session and collaborating services."""
        self.session = session
        self.keyspace = keyspace
        self.comments = comment_service
        self.articles = article_service
        self.users = user_service
        self.proxy = proxy
        self.default_sensitivity = (
            settings.scoring_default_sensitivity_lower,
            settings.scoring_default_sensitivity_upper,
        )
        # Called once per comment when every scorer has answered
        self.on_scored: OnScored | None = None
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        # Tags
        self._insert_tag = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.tags
            (tag_id, key, label, color, description, in_summary_score,
             is_taggable, is_in_batch_view)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._delete_tag = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.tags WHERE tag_id = ?
        """)
        self._list_tags = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.tags
        """)

        # Sensitivities
        self._insert_sensitivity = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.tagging_sensitivities
            (sensitivity_id, category_id, tag_id, lower_threshold, upper_threshold)
            VALUES (?, ?, ?, ?, ?)
        """)
        self._delete_sensitivity = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.tagging_sensitivities
            WHERE sensitivity_id = ?
        """)
        self._list_sensitivities = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.tagging_sensitivities
        """)

        # Comment scores
        self._insert_score = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comment_scores
            (comment_id, score_id, tag_id, source_type, source_id, score,
             annotation_start, annotation_end, is_confirmed, confirmed_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)
        self._list_scores = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comment_scores WHERE comment_id = ?
        """)
        self._get_score = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comment_scores
            WHERE comment_id = ? AND score_id = ?
        """)
        self._confirm_score = self.session.prepare(f"""
            UPDATE {self.keyspace}.comment_scores
            SET is_confirmed = ?, confirmed_by = ?
            WHERE comment_id = ? AND score_id = ?
        """)
        self._delete_score = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comment_scores
            WHERE comment_id = ? AND score_id = ?
        """)

        # Summary scores
        self._upsert_summary = self.session.prepare(f"""
            UPDATE {self.keyspace}.comment_summary_scores
            SET score = ?, is_tagged = ?, updated_at = ?
            WHERE comment_id = ? AND tag_id = ?
        """)
        self._confirm_summary = self.session.prepare(f"""
            UPDATE {self.keyspace}.comment_summary_scores
            SET is_confirmed = ?, is_tagged = ?, confirmed_by = ?, updated_at = ?
            WHERE comment_id = ? AND tag_id = ?
        """)
        self._list_summary = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comment_summary_scores
            WHERE comment_id = ?
        """)
        self._get_summary = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comment_summary_scores
            WHERE comment_id = ? AND tag_id = ?
        """)
        self._delete_summary = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.comment_summary_scores
            WHERE comment_id = ? AND tag_id = ?
        """)

        # Scoring requests
        self._insert_request = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.scoring_requests
            (comment_id, user_id, sent_at, done_at, attempts, last_error)
            VALUES (?, ?, ?, ?, ?, ?)
        """)
        self._list_requests = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.scoring_requests WHERE comment_id = ?
        """)
        self._finish_request = self.session.prepare(f"""
            UPDATE {self.keyspace}.scoring_requests
            SET done_at = ?, last_error = null
            WHERE comment_id = ? AND user_id = ?
        """)
        self._fail_request = self.session.prepare(f"""
            UPDATE {self.keyspace}.scoring_requests
            SET last_error = ?
            WHERE comment_id = ? AND user_id = ?
        """)
        self._delete_requests = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.scoring_requests WHERE comment_id = ?
        """)

    # ==========================================================================
    # Tags and sensitivities
    # ==========================================================================

    async def list_tags(self) -> list[Tag]:
        """List every tag."""
        result = await self.session.aexecute(self._list_tags)
        return [Tag.from_row(row) for row in result]

    async def get_tag(self, tag_id: UUID) -> Tag:
        """Get a tag by ID.

        Raises:
            TagNotFoundError: If the tag does not exist
        """
        for tag in await self.list_tags():
            if tag.tag_id == tag_id:
                return tag
        raise TagNotFoundError

    async def save_tag(self, tag: Tag) -> Tag:
        """Insert or replace a tag; keys are unique."""
        tag.key = tag.key.strip().upper()
        if not tag.key:
            raise ScoringValidationError("Tag key is required")
        for existing in await self.list_tags():
            if existing.key == tag.key and existing.tag_id != tag.tag_id:
                raise ScoringValidationError(f"Tag key {tag.key} already exists")

        await self.session.aexecute(
            self._insert_tag,
            [
                tag.tag_id,
                tag.key,
                tag.label,
                tag.color,
                tag.description,
                tag.in_summary_score,
                tag.is_taggable,
                tag.is_in_batch_view,
            ],
        )
        logger.info("tag_saved", tag_id=str(tag.tag_id), key=tag.key)
        return tag

    async def delete_tag(self, tag_id: UUID) -> None:
        """Delete a tag."""
        await self.get_tag(tag_id)
        await self.session.aexecute(self._delete_tag, [tag_id])
        logger.info("tag_deleted", tag_id=str(tag_id))

    async def list_sensitivities(self) -> list[TaggingSensitivity]:
        """List every tagging sensitivity."""
        result = await self.session.aexecute(self._list_sensitivities)
        return [TaggingSensitivity.from_row(row) for row in result]

    async def save_sensitivity(self, sensitivity: TaggingSensitivity) -> TaggingSensitivity:
        """Insert or replace a tagging sensitivity.

        Raises:
            ScoringValidationError: If the range is not well-ordered or the
                (category, tag) scope already has another sensitivity
        """
        validate_range(sensitivity.lower_threshold, sensitivity.upper_threshold)
        for existing in await self.list_sensitivities():
            if (
                existing.category_id == sensitivity.category_id
                and existing.tag_id == sensitivity.tag_id
                and existing.sensitivity_id != sensitivity.sensitivity_id
            ):
                msg = "A sensitivity already exists for this category and tag"
                raise ScoringValidationError(msg)

        await self.session.aexecute(
            self._insert_sensitivity,
            [
                sensitivity.sensitivity_id,
                sensitivity.category_id,
                sensitivity.tag_id,
                sensitivity.lower_threshold,
                sensitivity.upper_threshold,
            ],
        )
        logger.info("sensitivity_saved", sensitivity_id=str(sensitivity.sensitivity_id))
        return sensitivity

    async def delete_sensitivity(self, sensitivity_id: UUID) -> None:
        """Delete a tagging sensitivity."""
        await self.session.aexecute(self._delete_sensitivity, [sensitivity_id])
        logger.info("sensitivity_deleted", sensitivity_id=str(sensitivity_id))

    # ==========================================================================
    # Scores
    # ==========================================================================

    async def list_scores(self, comment_id: UUID) -> list[CommentScore]:
        """Span scores of a comment."""
        result = await self.session.aexecute(self._list_scores, [comment_id])
        return [CommentScore.from_row(row) for row in result]

    async def get_score(self, comment_id: UUID, score_id: UUID) -> CommentScore:
        """Get one score of a comment.

        Raises:
            ScoreNotFoundError: If the score does not exist
        """
        result = await self.session.aexecute(self._get_score, [comment_id, score_id])
        row = result.one()
        if not row:
            raise ScoreNotFoundError
        return CommentScore.from_row(row)

    async def list_summary_scores(self, comment_id: UUID) -> list[CommentSummaryScore]:
        """Summary scores of a comment."""
        result = await self.session.aexecute(self._list_summary, [comment_id])
        return [CommentSummaryScore.from_row(row) for row in result]

    async def list_requests(self, comment_id: UUID) -> list[ScoringRequest]:
        """Scoring requests of a comment."""
        result = await self.session.aexecute(self._list_requests, [comment_id])
        return [ScoringRequest.from_row(row) for row in result]

    async def _insert_scores(self, scores: Iterable[CommentScore]) -> None:
        for score in scores:
            await self.session.aexecute(
                self._insert_score,
                [
                    score.comment_id,
                    score.score_id,
                    score.tag_id,
                    score.source_type.value,
                    score.source_id,
                    score.score,
                    score.annotation_start,
                    score.annotation_end,
                    score.is_confirmed,
                    score.confirmed_by,
                    score.created_at,
                ],
            )

    # ==========================================================================
    # Scoring lifecycle
    # ==========================================================================

    async def send_for_scoring(
        self,
        comment_id: UUID,
        scorer_ids: Iterable[UUID] | None = None,
    ) -> SendResult:
        """Send a comment to every scorer that has not answered yet.

        Args:
            comment_id: Comment to score
            scorer_ids: Restrict to these scorers (retries of failed scorers)

        Returns:
            Which scorers were reached and which failed. Failures are also
            recorded on the scoring request.
        """
        comment = await self.comments.get_comment(comment_id)
        article = await self.articles.find_article(comment.article_id)
        result = SendResult(comment_id=comment_id)

        scorers = await self.users.list_scorers()
        if scorer_ids is not None:
            wanted = set(scorer_ids)
            scorers = [s for s in scorers if s.user_id in wanted]

        if not scorers and scorer_ids is None:
            # Nothing will ever score this comment
            if not comment.is_scored:
                await self.complete_scoring(comment)
            result.completed = True
            return result

        requests = {r.user_id: r for r in await self.list_requests(comment_id)}

        for scorer in scorers:
            previous = requests.get(scorer.user_id)
            if previous is not None and previous.is_done:
                continue

            request = ScoringRequest(
                comment_id=comment_id,
                user_id=scorer.user_id,
                attempts=(previous.attempts if previous else 0) + 1,
            )
            await self.session.aexecute(
                self._insert_request,
                [
                    request.comment_id,
                    request.user_id,
                    request.sent_at,
                    None,
                    request.attempts,
                    None,
                ],
            )

            try:
                payload = await self.proxy.score(scorer, comment, article)
            except ScoringProxyError as e:
                await self.session.aexecute(
                    self._fail_request, [e.message, comment_id, scorer.user_id]
                )
                result.failed.append(scorer.user_id)
                continue

            result.sent.append(scorer.user_id)
            if payload is not None:
                result.completed = await self.process_machine_score(
                    comment_id, scorer.user_id, payload
                )

        # Callbacks that raced each other can leave every request done but the
        # comment unscored
        if (
            not result.completed
            and not comment.is_scored
            and await self._all_requests_done(comment_id)
        ):
            result.completed = await self.complete_scoring(comment)

        logger.info(
            "comment_sent_for_scoring",
            comment_id=str(comment_id),
            sent=len(result.sent),
            failed=len(result.failed),
        )
        return result

    async def process_machine_score(
        self,
        comment_id: UUID,
        scorer_id: UUID,
        payload: dict[str, Any],
    ) -> bool:
        """Store one scorer's answer for a comment.

        Replaces the scorer's previous machine scores, upserts summary scores
        and marks the request done.

        Returns:
            True if this answer completed scoring of the comment

        Raises:
            ScoringRequestNotFoundError: If the comment was not sent to the scorer
        """
        comment = await self.comments.get_comment(comment_id)
        requested = {r.user_id for r in await self.list_requests(comment_id)}
        if scorer_id not in requested:
            raise ScoringRequestNotFoundError

        article = await self.articles.find_article(comment.article_id)
        category_id = article.category_id if article else None
        tags = await self.list_tags()
        normalized = normalize_scores(
            payload, {t.key: t for t in tags}, len(comment.text)
        )

        for previous in await self.list_scores(comment_id):
            if (
                previous.source_type is ScoreSourceType.MACHINE
                and previous.source_id == scorer_id
            ):
                await self.session.aexecute(
                    self._delete_score, [comment_id, previous.score_id]
                )

        await self._insert_scores(
            CommentScore(
                score_id=uuid4(),
                comment_id=comment_id,
                tag_id=span.tag_id,
                source_type=ScoreSourceType.MACHINE,
                source_id=scorer_id,
                score=span.score,
                annotation_start=span.begin,
                annotation_end=span.end,
            )
            for span in normalized.spans
        )

        now = datetime.now(UTC)
        sensitivities = await self.list_sensitivities()
        reviewed = {
            s.tag_id
            for s in await self.list_summary_scores(comment_id)
            if s.is_confirmed is not None
        }
        for tag_id, score in normalized.summary.items():
            if tag_id in reviewed:
                continue
            threshold = find_sensitivity(
                sensitivities, category_id, tag_id, self.default_sensitivity
            )
            await self.session.aexecute(
                self._upsert_summary,
                [score, is_tagged(score, threshold), now, comment_id, tag_id],
            )

        await self.session.aexecute(self._finish_request, [now, comment_id, scorer_id])
        logger.info(
            "machine_score_processed",
            comment_id=str(comment_id),
            scorer_id=str(scorer_id),
            spans=len(normalized.spans),
            summary=len(normalized.summary),
        )

        if comment.is_scored or not await self._all_requests_done(comment_id):
            return False
        return await self.complete_scoring(comment)

    async def _all_requests_done(self, comment_id: UUID) -> bool:
        requests = await self.list_requests(comment_id)
        return bool(requests) and all(r.is_done for r in requests)

    async def complete_scoring(self, comment: Comment) -> bool:
        """Mark a comment scored and hand it to the ``on_scored`` hook.

        Returns:
            False if another caller completed the comment first
        """
        tags = {t.tag_id: t for t in await self.list_tags()}
        summary = {
            s.tag_id: s.score for s in await self.list_summary_scores(comment.comment_id)
        }
        score, tag_id = max_summary_score(summary, tags)

        comment.max_summary_score = score
        comment.max_summary_score_tag_id = tag_id
        if not await self.comments.mark_scored(comment):
            logger.info(
                "scoring_already_completed", comment_id=str(comment.comment_id)
            )
            return False
        comment.is_scored = True
        logger.info(
            "scoring_completed",
            comment_id=str(comment.comment_id),
            max_summary_score=score,
        )

        if self.on_scored is not None:
            await self.on_scored(comment)
        return True

    async def rescore(self, comment_id: UUID) -> SendResult:
        """Drop machine scores and requests, then score the comment again.

        Span scores and summary scores a moderator added or reviewed are kept.
        """
        comment = await self.comments.get_comment(comment_id)

        for score in await self.list_scores(comment_id):
            if score.source_type is ScoreSourceType.MACHINE:
                await self.session.aexecute(
                    self._delete_score, [comment_id, score.score_id]
                )
        for summary in await self.list_summary_scores(comment_id):
            if summary.is_confirmed is None:
                await self.session.aexecute(
                    self._delete_summary, [comment_id, summary.tag_id]
                )
        await self.session.aexecute(self._delete_requests, [comment_id])

        comment.is_scored = False
        comment.max_summary_score = None
        comment.max_summary_score_tag_id = None
        await self.comments.save_scoring(comment)
        logger.info("comment_rescore_started", comment_id=str(comment_id))

        return await self.send_for_scoring(comment_id)

    # ==========================================================================
    # Moderator score actions
    # ==========================================================================

    async def tag_comment(
        self,
        comment_id: UUID,
        tag_id: UUID,
        user_id: UUID | None,
        annotation_start: int | None = None,
        annotation_end: int | None = None,
    ) -> CommentScore:
        """Moderator applies a tag to a comment (optionally to a text span)."""
        comment = await self.comments.get_comment(comment_id)
        await self.get_tag(tag_id)

        if annotation_start is not None or annotation_end is not None:
            if (
                annotation_start is None
                or annotation_end is None
                or not 0 <= annotation_start <= annotation_end <= len(comment.text)
            ):
                raise ScoringValidationError("Annotation is outside the comment text")

        score = CommentScore(
            score_id=uuid4(),
            comment_id=comment_id,
            tag_id=tag_id,
            source_type=ScoreSourceType.MODERATOR,
            source_id=user_id,
            score=1.0,
            annotation_start=annotation_start,
            annotation_end=annotation_end,
            is_confirmed=True,
            confirmed_by=user_id,
        )
        await self._insert_scores([score])
        await self.session.aexecute(
            self._upsert_summary, [1.0, True, datetime.now(UTC), comment_id, tag_id]
        )
        await self.session.aexecute(
            self._confirm_summary,
            [True, True, user_id, datetime.now(UTC), comment_id, tag_id],
        )
        logger.info("comment_tagged", comment_id=str(comment_id), tag_id=str(tag_id))
        return score

    async def set_score_confirmation(
        self,
        comment_id: UUID,
        score_id: UUID,
        is_confirmed: bool | None,
        user_id: UUID | None,
    ) -> CommentScore:
        """Confirm (True), reject (False) or reset (None) a span score."""
        score = await self.get_score(comment_id, score_id)
        score.is_confirmed = is_confirmed
        score.confirmed_by = user_id if is_confirmed is not None else None
        await self.session.aexecute(
            self._confirm_score,
            [score.is_confirmed, score.confirmed_by, comment_id, score_id],
        )
        return score

    async def delete_score(self, comment_id: UUID, score_id: UUID) -> None:
        """Remove a span score."""
        await self.get_score(comment_id, score_id)
        await self.session.aexecute(self._delete_score, [comment_id, score_id])
        logger.info("score_deleted", comment_id=str(comment_id), score_id=str(score_id))

    async def set_summary_confirmation(
        self,
        comment_id: UUID,
        tag_id: UUID,
        is_confirmed: bool,
        user_id: UUID | None,
    ) -> CommentSummaryScore:
        """Confirm or reject a summary score; confirming also tags the comment."""
        result = await self.session.aexecute(self._get_summary, [comment_id, tag_id])
        row = result.one()
        if not row:
            raise ScoreNotFoundError("Summary score not found")

        summary = CommentSummaryScore.from_row(row)
        summary.is_confirmed = is_confirmed
        summary.is_tagged = is_confirmed
        summary.confirmed_by = user_id
        summary.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._confirm_summary,
            [
                summary.is_confirmed,
                summary.is_tagged,
                summary.confirmed_by,
                summary.updated_at,
                comment_id,
                tag_id,
            ],
        )
        return summary

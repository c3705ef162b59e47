# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Comment storage service.

Business logic for:
- Comment ingestion and lookup by ID
- Persisting moderation state changes
- User flags and their resolution
- The moderation decision audit trail
"""

import asyncio
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from .models import Comment, CommentFlag, ModerationDecision


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CommentError(Exception):
    """Base comment error."""

    def __init__(self, message: str, code: str = "comment_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CommentNotFoundError(CommentError):
    """Comment not found."""

    def __init__(self, message: str = "Comment not found"):
        super().__init__(message, "comment_not_found")


class CommentValidationError(CommentError):
    """Comment payload rejected."""

    def __init__(self, message: str = "Invalid comment"):
        super().__init__(message, "comment_invalid")


# ==============================================================================
# Comment Service
# ==============================================================================


class CommentService:
    """Service for comment records and their moderation state."""

    MAX_TEXT_LENGTH = 20000

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_comment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comments
            (article_id, comment_id, source_id, author_source_id, author_name,
             author_location, text, source_created_at, is_scored, is_moderated,
             is_accepted, is_deferred, is_highlighted, is_auto_resolved,
             is_batch_resolved, unresolved_flags_count, max_summary_score,
             max_summary_score_tag_id, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_index = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comment_articles (comment_id, article_id)
            VALUES (?, ?)
        """)

        self._get_article_id = self.session.prepare(f"""
            SELECT article_id FROM {self.keyspace}.comment_articles
            WHERE comment_id = ?
        """)

        self._get_comment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments
            WHERE article_id = ? AND comment_id = ?
        """)

        self._list_article_comments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comments WHERE article_id = ?
        """)

        self._list_unscored = self.session.prepare(f"""
            SELECT article_id, comment_id FROM {self.keyspace}.comments
            WHERE is_scored = false ALLOW FILTERING
        """)

        self._update_state = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments
            SET is_moderated = ?, is_accepted = ?, is_deferred = ?,
                is_highlighted = ?, is_auto_resolved = ?, is_batch_resolved = ?,
                updated_at = ?
            WHERE article_id = ? AND comment_id = ?
        """)

        self._update_scoring = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments
            SET is_scored = ?, max_summary_score = ?, max_summary_score_tag_id = ?,
                updated_at = ?
            WHERE article_id = ? AND comment_id = ?
        """)

        # Lightweight transaction: only one caller flips is_scored
        self._mark_scored = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments
            SET is_scored = true, max_summary_score = ?, max_summary_score_tag_id = ?,
                updated_at = ?
            WHERE article_id = ? AND comment_id = ?
            IF is_scored = false
        """)

        self._update_text = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments
            SET text = ?, author_name = ?, author_location = ?, updated_at = ?
            WHERE article_id = ? AND comment_id = ?
        """)

        self._update_flag_count = self.session.prepare(f"""
            UPDATE {self.keyspace}.comments
            SET unresolved_flags_count = ?, updated_at = ?
            WHERE article_id = ? AND comment_id = ?
        """)

        # Flags
        self._insert_flag = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.comment_flags
            (comment_id, flag_id, label, detail, is_recommendation, is_resolved,
             resolved_by, resolved_at, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._list_flags = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.comment_flags WHERE comment_id = ?
        """)

        self._resolve_flag = self.session.prepare(f"""
            UPDATE {self.keyspace}.comment_flags
            SET is_resolved = true, resolved_by = ?, resolved_at = ?
            WHERE comment_id = ? AND flag_id = ?
        """)

        # Decisions
        self._insert_decision = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.moderation_decisions
            (comment_id, created_at, decision_id, action, source, user_id,
             rule_id, is_current)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._list_decisions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.moderation_decisions WHERE comment_id = ?
        """)

        self._retire_decision = self.session.prepare(f"""
            UPDATE {self.keyspace}.moderation_decisions
            SET is_current = false
            WHERE comment_id = ? AND created_at = ? AND decision_id = ?
        """)

    # ==========================================================================
    # Comments
    # ==========================================================================

    async def create_comment(self, comment: Comment) -> Comment:
        """Store a new comment and its ID lookup row."""
        if not comment.text.strip():
            raise CommentValidationError("Comment text is empty")
        if len(comment.text) > self.MAX_TEXT_LENGTH:
            raise CommentValidationError("Comment text is too long")

        await self.session.aexecute(
            self._insert_comment,
            [
                comment.article_id,
                comment.comment_id,
                comment.source_id,
                comment.author_source_id,
                comment.author_name,
                comment.author_location,
                comment.text,
                comment.source_created_at,
                comment.is_scored,
                comment.is_moderated,
                comment.is_accepted,
                comment.is_deferred,
                comment.is_highlighted,
                comment.is_auto_resolved,
                comment.is_batch_resolved,
                comment.unresolved_flags_count,
                comment.max_summary_score,
                comment.max_summary_score_tag_id,
                comment.created_at,
                comment.updated_at,
            ],
        )
        await self.session.aexecute(
            self._insert_index, [comment.comment_id, comment.article_id]
        )
        logger.info(
            "comment_created",
            comment_id=str(comment.comment_id),
            article_id=str(comment.article_id),
        )
        return comment

    async def find_comment(self, comment_id: UUID) -> Comment | None:
        """Get a comment by ID, or None."""
        result = await self.session.aexecute(self._get_article_id, [comment_id])
        index_row = result.one()
        if not index_row:
            return None

        result = await self.session.aexecute(
            self._get_comment, [index_row.article_id, comment_id]
        )
        row = result.one()
        return Comment.from_row(row) if row else None

    async def get_comment(self, comment_id: UUID) -> Comment:
        """Get a comment by ID.

        Raises:
            CommentNotFoundError: If the comment does not exist
        """
        comment = await self.find_comment(comment_id)
        if comment is None:
            raise CommentNotFoundError
        return comment

    async def get_comments(self, comment_ids: Iterable[UUID]) -> list[Comment]:
        """Get several comments, skipping IDs that do not exist."""
        found = await asyncio.gather(*(self.find_comment(cid) for cid in comment_ids))
        return [c for c in found if c is not None]

    async def list_article_comments(self, article_id: UUID) -> list[Comment]:
        """All comments of one article."""
        result = await self.session.aexecute(self._list_article_comments, [article_id])
        return [Comment.from_row(row) for row in result]

    async def list_unscored_comment_ids(self) -> list[UUID]:
        """IDs of comments still waiting for scores."""
        result = await self.session.aexecute(self._list_unscored)
        return [row.comment_id for row in result]

    async def save_state(self, comment: Comment) -> None:
        """Persist the moderation state flags of a comment."""
        await self.session.aexecute(
            self._update_state,
            [
                comment.is_moderated,
                comment.is_accepted,
                comment.is_deferred,
                comment.is_highlighted,
                comment.is_auto_resolved,
                comment.is_batch_resolved,
                comment.updated_at,
                comment.article_id,
                comment.comment_id,
            ],
        )

    async def save_scoring(self, comment: Comment) -> None:
        """Persist scoring completion and the max summary score."""
        comment.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._update_scoring,
            [
                comment.is_scored,
                comment.max_summary_score,
                comment.max_summary_score_tag_id,
                comment.updated_at,
                comment.article_id,
                comment.comment_id,
            ],
        )

    async def mark_scored(self, comment: Comment) -> bool:
        """Flip ``is_scored`` once, storing the max summary score with it.

        Returns:
            False if another caller already marked the comment scored
        """
        comment.updated_at = datetime.now(UTC)
        result = await self.session.aexecute(
            self._mark_scored,
            [
                comment.max_summary_score,
                comment.max_summary_score_tag_id,
                comment.updated_at,
                comment.article_id,
                comment.comment_id,
            ],
        )
        if not result.was_applied:
            return False
        comment.is_scored = True
        return True

    async def update_text(
        self,
        comment: Comment,
        text: str,
        author_name: str | None = None,
        author_location: str | None = None,
    ) -> Comment:
        """Replace a comment's text (the caller is expected to rescore it)."""
        text = text.strip()
        if not text:
            raise CommentValidationError("Comment text is empty")
        if len(text) > self.MAX_TEXT_LENGTH:
            raise CommentValidationError("Comment text is too long")

        comment.text = text
        if author_name is not None:
            comment.author_name = author_name
        if author_location is not None:
            comment.author_location = author_location
        comment.updated_at = datetime.now(UTC)

        await self.session.aexecute(
            self._update_text,
            [
                comment.text,
                comment.author_name,
                comment.author_location,
                comment.updated_at,
                comment.article_id,
                comment.comment_id,
            ],
        )
        logger.info("comment_text_updated", comment_id=str(comment.comment_id))
        return comment

    # ==========================================================================
    # Flags
    # ==========================================================================

    async def add_flag(
        self,
        comment: Comment,
        label: str,
        detail: str | None = None,
        is_recommendation: bool = False,
    ) -> CommentFlag:
        """Record a user flag and bump the unresolved count."""
        flag = CommentFlag(
            flag_id=uuid4(),
            comment_id=comment.comment_id,
            label=label,
            detail=detail,
            is_recommendation=is_recommendation,
        )
        await self.session.aexecute(
            self._insert_flag,
            [
                flag.comment_id,
                flag.flag_id,
                flag.label,
                flag.detail,
                flag.is_recommendation,
                flag.is_resolved,
                flag.resolved_by,
                flag.resolved_at,
                flag.created_at,
            ],
        )
        if not is_recommendation:
            comment.unresolved_flags_count += 1
            await self._save_flag_count(comment)
        return flag

    async def list_flags(self, comment_id: UUID) -> list[CommentFlag]:
        """All flags of a comment."""
        result = await self.session.aexecute(self._list_flags, [comment_id])
        return [CommentFlag.from_row(row) for row in result]

    async def resolve_flags(self, comment: Comment, user_id: UUID | None) -> int:
        """Resolve every open flag of a comment; returns how many were open."""
        now = datetime.now(UTC)
        flags = await self.list_flags(comment.comment_id)
        open_flags = [f for f in flags if not f.is_resolved]
        for flag in open_flags:
            await self.session.aexecute(
                self._resolve_flag, [user_id, now, comment.comment_id, flag.flag_id]
            )
        comment.unresolved_flags_count = 0
        await self._save_flag_count(comment)
        return len(open_flags)

    async def _save_flag_count(self, comment: Comment) -> None:
        comment.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._update_flag_count,
            [
                comment.unresolved_flags_count,
                comment.updated_at,
                comment.article_id,
                comment.comment_id,
            ],
        )

    # ==========================================================================
    # Decisions
    # ==========================================================================

    async def list_decisions(self, comment_id: UUID) -> list[ModerationDecision]:
        """Decision history of a comment, newest first."""
        result = await self.session.aexecute(self._list_decisions, [comment_id])
        return [ModerationDecision.from_row(row) for row in result]

    async def record_decision(self, decision: ModerationDecision) -> None:
        """Insert a decision and retire the previously current one(s)."""
        for previous in await self.list_decisions(decision.comment_id):
            if previous.is_current:
                await self.session.aexecute(
                    self._retire_decision,
                    [previous.comment_id, previous.created_at, previous.decision_id],
                )

        await self.session.aexecute(
            self._insert_decision,
            [
                decision.comment_id,
                decision.created_at,
                decision.decision_id,
                decision.action.value,
                decision.source.value,
                decision.user_id,
                decision.rule_id,
                decision.is_current,
            ],
        )

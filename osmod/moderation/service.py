# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Moderation service.

Business logic for:
- Moderation rules and preselects (storage and validation)
- Applying moderation actions to comments (users, rules, services)
- Flag actions (resolve, approve, reject)
- Running the decision engine once scoring completes
- Recalculating article counts and publishing article updates
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from osmod.articles.models import Article
from osmod.articles.service import ArticleService
from osmod.comments.models import Comment, create_decision
from osmod.comments.service import CommentService
from osmod.notifier.service import NotifierService
from osmod.scoring.service import ScoringService

from .engine import decide, skip_reason
from .models import (
    DecisionSource,
    FlagAction,
    ModerationAction,
    ModerationRule,
    Preselect,
)
from .rules import RuleValidationError, validate_rule


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ModerationError(Exception):
    """Base moderation error."""

    def __init__(self, message: str, code: str = "moderation_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class RuleNotFoundError(ModerationError):
    """Moderation rule not found."""

    def __init__(self, message: str = "Rule not found"):
        super().__init__(message, "rule_not_found")


class PreselectNotFoundError(ModerationError):
    """Preselect not found."""

    def __init__(self, message: str = "Preselect not found"):
        super().__init__(message, "preselect_not_found")


@dataclass
class ActionResult:
    """Outcome of a moderation action over several comments."""

    action: str
    processed: list[UUID] = field(default_factory=list)
    missing: list[UUID] = field(default_factory=list)
    articles: list[UUID] = field(default_factory=list)


# ==============================================================================
# Rule Service
# ==============================================================================


class RuleService:
    """Storage for moderation rules and preselects."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_rule = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.moderation_rules
            (rule_id, category_id, tag_id, lower_threshold, upper_threshold,
             action, created_by, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._list_rules = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.moderation_rules
        """)

        self._delete_rule = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.moderation_rules WHERE rule_id = ?
        """)

        self._insert_preselect = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.preselects
            (preselect_id, category_id, tag_id, lower_threshold, upper_threshold,
             created_by, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """)

        self._list_preselects = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.preselects
        """)

        self._delete_preselect = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.preselects WHERE preselect_id = ?
        """)

    async def list_rules(self) -> list[ModerationRule]:
        """List every moderation rule."""
        result = await self.session.aexecute(self._list_rules)
        return [ModerationRule.from_row(row) for row in result]

    async def get_rule(self, rule_id: UUID) -> ModerationRule:
        """Get a rule by ID.

        Raises:
            RuleNotFoundError: If the rule does not exist
        """
        for rule in await self.list_rules():
            if rule.rule_id == rule_id:
                return rule
        raise RuleNotFoundError

    async def save_rule(self, rule: ModerationRule) -> ModerationRule:
        """Validate and store a new or updated rule.

        Raises:
            RuleValidationError: If the range is invalid or overlaps a rule
                with a different action in the same scope
        """
        validate_rule(rule, await self.list_rules())
        rule.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._insert_rule,
            [
                rule.rule_id,
                rule.category_id,
                rule.tag_id,
                rule.lower_threshold,
                rule.upper_threshold,
                rule.action.value,
                rule.created_by,
                rule.created_at,
                rule.updated_at,
            ],
        )
        logger.info(
            "moderation_rule_saved",
            rule_id=str(rule.rule_id),
            action=rule.action.value,
            lower=rule.lower_threshold,
            upper=rule.upper_threshold,
        )
        return rule

    async def delete_rule(self, rule_id: UUID) -> None:
        """Delete a rule."""
        await self.get_rule(rule_id)
        await self.session.aexecute(self._delete_rule, [rule_id])
        logger.info("moderation_rule_deleted", rule_id=str(rule_id))

    async def list_preselects(self) -> list[Preselect]:
        """List every preselect."""
        result = await self.session.aexecute(self._list_preselects)
        return [Preselect.from_row(row) for row in result]

    async def save_preselect(self, preselect: Preselect) -> Preselect:
        """Store a preselect; its range must be well-ordered."""
        if not 0.0 <= preselect.lower_threshold <= preselect.upper_threshold <= 1.0:
            msg = "Invalid range: expected 0 <= lower <= upper <= 1"
            raise RuleValidationError(msg, "rule_invalid_range")

        await self.session.aexecute(
            self._insert_preselect,
            [
                preselect.preselect_id,
                preselect.category_id,
                preselect.tag_id,
                preselect.lower_threshold,
                preselect.upper_threshold,
                preselect.created_by,
                preselect.created_at,
            ],
        )
        return preselect

    async def delete_preselect(self, preselect_id: UUID) -> None:
        """Delete a preselect."""
        if not any(p.preselect_id == preselect_id for p in await self.list_preselects()):
            raise PreselectNotFoundError
        await self.session.aexecute(self._delete_preselect, [preselect_id])


# ==============================================================================
# Moderation Service
# ==============================================================================


class ModerationService:
    """Applies moderation decisions and keeps article counts in sync."""

    def __init__(
        self,
        comment_service: CommentService,
        article_service: ArticleService,
        scoring_service: ScoringService,
        rule_service: RuleService,
        notifier: NotifierService,
    ):
        self.comments = comment_service
        self.articles = article_service
        self.scoring = scoring_service
        self.rules = rule_service
        self.notifier = notifier

    async def _record(
        self,
        comment: Comment,
        action: ModerationAction,
        source: DecisionSource,
        user_id: UUID | None = None,
        rule_id: UUID | None = None,
        is_batch: bool = False,
    ) -> None:
        comment.apply_action(action, source, is_batch)
        await self.comments.save_state(comment)
        await self.comments.record_decision(
            create_decision(comment.comment_id, action, source, user_id, rule_id)
        )

    async def apply_action(
        self,
        comment_ids: Iterable[UUID],
        action: ModerationAction,
        user_id: UUID | None = None,
        source: DecisionSource = DecisionSource.USER,
    ) -> ActionResult:
        """Apply one action to several comments.

        More than one comment makes it a batch decision. Articles of the
        affected comments are recounted and published once at the end.
        """
        comment_ids = list(dict.fromkeys(comment_ids))
        comments = await self.comments.get_comments(comment_ids)
        found = {c.comment_id for c in comments}
        is_batch = len(comment_ids) > 1

        result = ActionResult(action=action.value)
        result.missing = [cid for cid in comment_ids if cid not in found]

        for comment in comments:
            await self._record(comment, action, source, user_id, is_batch=is_batch)
            result.processed.append(comment.comment_id)

        result.articles = list(dict.fromkeys(c.article_id for c in comments))
        await self.refresh_articles(result.articles, moderated=True)

        logger.info(
            "moderation_action_applied",
            action=action.value,
            source=source.value,
            processed=len(result.processed),
            missing=len(result.missing),
        )
        return result

    async def apply_flag_action(
        self,
        comment_ids: Iterable[UUID],
        flag_action: FlagAction,
        user_id: UUID | None = None,
    ) -> ActionResult:
        """Resolve flags, optionally approving or rejecting the comments too."""
        comment_ids = list(dict.fromkeys(comment_ids))
        comments = await self.comments.get_comments(comment_ids)
        found = {c.comment_id for c in comments}
        is_batch = len(comment_ids) > 1

        action = {
            FlagAction.APPROVE: ModerationAction.APPROVE,
            FlagAction.REJECT: ModerationAction.REJECT,
        }.get(flag_action)

        result = ActionResult(action=flag_action.value)
        result.missing = [cid for cid in comment_ids if cid not in found]

        for comment in comments:
            await self.comments.resolve_flags(comment, user_id)
            if action is not None:
                await self._record(
                    comment, action, DecisionSource.USER, user_id, is_batch=is_batch
                )
            result.processed.append(comment.comment_id)

        result.articles = list(dict.fromkeys(c.article_id for c in comments))
        await self.refresh_articles(result.articles, moderated=True)

        logger.info(
            "flag_action_applied",
            action=flag_action.value,
            processed=len(result.processed),
        )
        return result

    async def tag_comments(
        self,
        comment_ids: Iterable[UUID],
        tag_id: UUID,
        user_id: UUID | None = None,
    ) -> ActionResult:
        """Moderator tags several comments."""
        result = ActionResult(action="tag")
        for comment in await self.comments.get_comments(comment_ids):
            await self.scoring.tag_comment(comment.comment_id, tag_id, user_id)
            result.processed.append(comment.comment_id)
        return result

    async def process_scored_comment(self, comment: Comment) -> Comment:
        """Run the rules for a freshly scored comment and publish its article.

        Registered as the scoring service's ``on_scored`` hook.
        """
        article = await self.articles.find_article(comment.article_id)
        if article is None:
            logger.warning("scored_comment_without_article", comment_id=str(comment.comment_id))
            return comment

        reason = skip_reason(comment, article.is_auto_moderated)
        if reason is None:
            summary = {
                s.tag_id: s.score
                for s in await self.scoring.list_summary_scores(comment.comment_id)
            }
            decision = decide(
                summary,
                await self.rules.list_rules(),
                article.category_id,
                comment.max_summary_score,
            )
            if decision.action is not None:
                await self._record(
                    comment,
                    decision.action,
                    DecisionSource.RULE,
                    rule_id=decision.rule_id,
                )
            elif comment.is_auto_resolved:
                # Rescored text no longer matches the rule that resolved it
                await self._record(comment, ModerationAction.RESET, DecisionSource.RULE)
            logger.info(
                "rules_evaluated",
                comment_id=str(comment.comment_id),
                action=decision.action.value if decision.action else None,
                reason=decision.reason,
                matched=len(decision.rules),
            )
        else:
            logger.debug(
                "rules_skipped", comment_id=str(comment.comment_id), reason=reason
            )

        await self.refresh_articles([article.article_id])
        return comment

    async def refresh_articles(
        self,
        article_ids: Iterable[UUID],
        moderated: bool = False,
    ) -> list[Article]:
        """Recalculate counts of the given articles and publish one update."""
        updated = []
        for article_id in dict.fromkeys(article_ids):
            article = await self.articles.find_article(article_id)
            if article is None:
                continue
            comments = await self.comments.list_article_comments(article_id)
            updated.append(
                await self.articles.update_counts(article, comments, moderated)
            )

        await self.notifier.publish_article_update(updated)
        return updated

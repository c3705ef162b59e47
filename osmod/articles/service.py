# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Article and category service.

Business logic for:
- Article and category lookups
- Recalculating article counts from the comments of the article
- Article settings (commenting enabled, auto moderation)
- Moderator assignments
"""

import asyncio
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from osmod.comments.models import Comment

from .models import Article, ArticleCounts, Category


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ArticleError(Exception):
    """Base article error."""

    def __init__(self, message: str, code: str = "article_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class ArticleNotFoundError(ArticleError):
    """Article not found."""

    def __init__(self, message: str = "Article not found"):
        super().__init__(message, "article_not_found")


class CategoryNotFoundError(ArticleError):
    """Category not found."""

    def __init__(self, message: str = "Category not found"):
        super().__init__(message, "category_not_found")


# ==============================================================================
# Article Service
# ==============================================================================


class ArticleService:
    """Service for articles, categories and moderator assignments."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        # Categories
        self._insert_category = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.categories
            (category_id, label, is_active, assigned_moderators, updated_at)
            VALUES (?, ?, ?, ?, ?)
        """)

        self._get_category = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.categories WHERE category_id = ?
        """)

        self._list_categories = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.categories
        """)

        # Articles
        self._insert_article = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.articles
            (article_id, source_id, category_id, title, text, url,
             source_created_at, updated_at, last_moderated_at,
             is_commenting_enabled, is_auto_moderated, assigned_moderators,
             all_count, unprocessed_count, unmoderated_count, moderated_count,
             approved_count, highlighted_count, rejected_count, deferred_count,
             flagged_count, batched_count, automated_count)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?,
                    ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_article = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.articles WHERE article_id = ?
        """)

        self._list_articles = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.articles
        """)

        self._update_counts = self.session.prepare(f"""
            UPDATE {self.keyspace}.articles
            SET all_count = ?, unprocessed_count = ?, unmoderated_count = ?,
                moderated_count = ?, approved_count = ?, highlighted_count = ?,
                rejected_count = ?, deferred_count = ?, flagged_count = ?,
                batched_count = ?, automated_count = ?, last_moderated_at = ?,
                updated_at = ?
            WHERE article_id = ?
        """)

        self._update_settings = self.session.prepare(f"""
            UPDATE {self.keyspace}.articles
            SET is_commenting_enabled = ?, is_auto_moderated = ?, updated_at = ?
            WHERE article_id = ?
        """)

        self._update_moderators = self.session.prepare(f"""
            UPDATE {self.keyspace}.articles
            SET assigned_moderators = ?, updated_at = ?
            WHERE article_id = ?
        """)

        # Assignments
        self._insert_assignment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.moderator_assignments
            (user_id, article_id, assigned_at)
            VALUES (?, ?, ?)
        """)

        self._delete_assignment = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.moderator_assignments
            WHERE user_id = ? AND article_id = ?
        """)

        self._list_assignments = self.session.prepare(f"""
            SELECT article_id FROM {self.keyspace}.moderator_assignments
            WHERE user_id = ?
        """)

    # ==========================================================================
    # Categories
    # ==========================================================================

    async def save_category(self, category: Category) -> Category:
        """Insert or replace a category."""
        category.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._insert_category,
            [
                category.category_id,
                category.label,
                category.is_active,
                category.assigned_moderators,
                category.updated_at,
            ],
        )
        return category

    async def get_category(self, category_id: UUID) -> Category:
        """Get a category by ID.

        Raises:
            CategoryNotFoundError: If the category does not exist
        """
        result = await self.session.aexecute(self._get_category, [category_id])
        row = result.one()
        if not row:
            raise CategoryNotFoundError
        return Category.from_row(row)

    async def list_categories(self) -> list[Category]:
        """List every category."""
        result = await self.session.aexecute(self._list_categories)
        return [Category.from_row(row) for row in result]

    # ==========================================================================
    # Articles
    # ==========================================================================

    async def save_article(self, article: Article) -> Article:
        """Insert or replace an article (counts included)."""
        article.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._insert_article,
            [
                article.article_id,
                article.source_id,
                article.category_id,
                article.title,
                article.text,
                article.url,
                article.source_created_at,
                article.updated_at,
                article.last_moderated_at,
                article.is_commenting_enabled,
                article.is_auto_moderated,
                article.assigned_moderators,
                *article.counts.as_columns(),
            ],
        )
        logger.info("article_saved", article_id=str(article.article_id))
        return article

    async def find_article(self, article_id: UUID) -> Article | None:
        """Get an article by ID, or None."""
        result = await self.session.aexecute(self._get_article, [article_id])
        row = result.one()
        return Article.from_row(row) if row else None

    async def get_article(self, article_id: UUID) -> Article:
        """Get an article by ID.

        Raises:
            ArticleNotFoundError: If the article does not exist
        """
        article = await self.find_article(article_id)
        if article is None:
            raise ArticleNotFoundError
        return article

    async def get_articles(self, article_ids: Iterable[UUID]) -> list[Article]:
        """Get several articles, skipping IDs that do not exist."""
        found = await asyncio.gather(*(self.find_article(aid) for aid in article_ids))
        return [a for a in found if a is not None]

    async def list_articles(self) -> list[Article]:
        """List every article."""
        result = await self.session.aexecute(self._list_articles)
        return [Article.from_row(row) for row in result]

    async def update_counts(
        self,
        article: Article,
        comments: Iterable[Comment],
        moderated: bool = False,
    ) -> Article:
        """Recalculate an article's counts from its comments and store them.

        Args:
            article: Article to update
            comments: Every comment of the article
            moderated: A moderation action triggered the update, so
                ``last_moderated_at`` moves forward
        """
        now = datetime.now(UTC)
        article.counts = ArticleCounts.from_comments(comments)
        if moderated:
            article.last_moderated_at = now
        article.updated_at = now

        await self.session.aexecute(
            self._update_counts,
            [
                *article.counts.as_columns(),
                article.last_moderated_at,
                article.updated_at,
                article.article_id,
            ],
        )
        logger.debug(
            "article_counts_updated",
            article_id=str(article.article_id),
            all=article.counts.all,
            unmoderated=article.counts.unmoderated,
        )
        return article

    async def update_settings(
        self,
        article: Article,
        is_commenting_enabled: bool | None = None,
        is_auto_moderated: bool | None = None,
    ) -> Article:
        """Change per-article moderation settings."""
        if is_commenting_enabled is not None:
            article.is_commenting_enabled = is_commenting_enabled
        if is_auto_moderated is not None:
            article.is_auto_moderated = is_auto_moderated
        article.updated_at = datetime.now(UTC)

        await self.session.aexecute(
            self._update_settings,
            [
                article.is_commenting_enabled,
                article.is_auto_moderated,
                article.updated_at,
                article.article_id,
            ],
        )
        logger.info(
            "article_settings_updated",
            article_id=str(article.article_id),
            is_commenting_enabled=article.is_commenting_enabled,
            is_auto_moderated=article.is_auto_moderated,
        )
        return article

    # ==========================================================================
    # Assignments
    # ==========================================================================

    async def set_moderators(self, article: Article, user_ids: set[UUID]) -> set[UUID]:
        """Replace the moderators assigned to an article.

        Returns:
            IDs of every user whose assignments changed
        """
        now = datetime.now(UTC)
        added = user_ids - article.assigned_moderators
        removed = article.assigned_moderators - user_ids

        for user_id in added:
            await self.session.aexecute(
                self._insert_assignment, [user_id, article.article_id, now]
            )
        for user_id in removed:
            await self.session.aexecute(
                self._delete_assignment, [user_id, article.article_id]
            )

        article.assigned_moderators = set(user_ids)
        article.updated_at = now
        await self.session.aexecute(
            self._update_moderators,
            [article.assigned_moderators, article.updated_at, article.article_id],
        )
        logger.info(
            "article_moderators_updated",
            article_id=str(article.article_id),
            added=len(added),
            removed=len(removed),
        )
        return added | removed

    async def list_assigned_article_ids(self, user_id: UUID) -> list[UUID]:
        """Articles assigned to a moderator."""
        result = await self.session.aexecute(self._list_assignments, [user_id])
        return [row.article_id for row in result]

    async def count_assignments(self, user_id: UUID) -> int:
        """Unmoderated comments waiting in a moderator's assigned articles."""
        article_ids = await self.list_assigned_article_ids(user_id)
        articles = await self.get_articles(article_ids)
        return sum(a.counts.unmoderated for a in articles)

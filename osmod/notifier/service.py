"""Realtime notifier service.

Builds the snapshot a connecting client receives and publishes deltas.
With Redis, deltas go through pub/sub so every API process reaches its own
sockets; without Redis they go straight to the in-process manager.
"""

import asyncio
import json
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog

from osmod.articles.models import Article, counts_by_category
from osmod.core.redis import (
    global_updates_channel,
    system_updates_channel,
    user_updates_channel,
)

from .hub import ConnectionManager
from .messages import (
    article_update_message,
    global_message,
    system_message,
    user_message,
)


if TYPE_CHECKING:
    from redis.asyncio import Redis

    from osmod.articles.service import ArticleService
    from osmod.auth.service import UserService
    from osmod.moderation.service import RuleService
    from osmod.scoring.service import ScoringService


logger = structlog.get_logger(__name__)


class NotifierService:
    """Snapshot builder and delta publisher."""

    def __init__(
        self,
        manager: ConnectionManager,
        user_service: "UserService",
        article_service: "ArticleService",
        scoring_service: "ScoringService",
        rule_service: "RuleService",
        redis: "Redis | None" = None,
    ):
        self.manager = manager
        self.users = user_service
        self.articles = article_service
        self.scoring = scoring_service
        self.rules = rule_service
        self.redis = redis

    # ==========================================================================
    # Snapshot
    # ==========================================================================

    async def build_system(self) -> dict[str, Any]:
        """``system`` message: users, tags, sensitivities, rules, preselects."""
        users, tags, sensitivities, rules, preselects = await asyncio.gather(
            self.users.list_users(),
            self.scoring.list_tags(),
            self.scoring.list_sensitivities(),
            self.rules.list_rules(),
            self.rules.list_preselects(),
        )
        return system_message(users, tags, sensitivities, rules, preselects)

    async def build_global(self) -> dict[str, Any]:
        """``global`` message: every category and article."""
        categories, articles = await asyncio.gather(
            self.articles.list_categories(),
            self.articles.list_articles(),
        )
        return global_message(categories, articles, counts_by_category(articles))

    async def build_user(self, user_id: UUID) -> dict[str, Any]:
        """``user`` message for one moderator."""
        return user_message(await self.articles.count_assignments(user_id))

    async def snapshot(self, user_id: UUID) -> list[dict[str, Any]]:
        """Messages a client needs before it is in sync, in sending order."""
        return [
            await self.build_system(),
            await self.build_global(),
            await self.build_user(user_id),
        ]

    # ==========================================================================
    # Deltas
    # ==========================================================================

    async def publish_system(self) -> None:
        """Send the full system data to everyone after a system change."""
        message = await self.build_system()
        await self._publish(system_updates_channel(), message)

    async def publish_article_update(self, articles: Iterable[Article]) -> None:
        """Send changed articles and the categories they belong to."""
        articles = list(articles)
        if not articles:
            return

        category_ids = {a.category_id for a in articles if a.category_id}
        categories = []
        counts = {}
        if category_ids:
            all_articles = await self.articles.list_articles()
            counts = counts_by_category(all_articles)
            categories = [
                c
                for c in await self.articles.list_categories()
                if c.category_id in category_ids
            ]

        message = article_update_message(
            articles=articles, categories=categories or None, counts=counts
        )
        await self._publish(global_updates_channel(), message)

        # Assignment counts follow the unmoderated counts
        moderators = set().union(*(a.assigned_moderators for a in articles))
        await self.publish_users(moderators)

    async def publish_users(self, user_ids: Iterable[UUID]) -> None:
        """Send fresh per-user data to each user."""
        for user_id in user_ids:
            message = await self.build_user(user_id)
            await self._publish(user_updates_channel(str(user_id)), message, user_id)

    async def _publish(
        self,
        channel: str,
        message: dict[str, Any],
        user_id: UUID | None = None,
    ) -> None:
        if self.redis is not None:
            # Non-critical: a lost delta is repaired by the client's next resync
            try:
                await self.redis.publish(channel, json.dumps(message))
            except Exception as e:
                logger.warning("notifier_publish_failed", channel=channel, error=str(e))
            return

        if user_id is not None:
            self.manager.send_to_user(str(user_id), message)
        else:
            self.manager.broadcast(message)

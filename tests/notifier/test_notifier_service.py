"""Tests for NotifierService."""

import json
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from osmod.articles.models import Category, create_article
from osmod.notifier.hub import Connection, ConnectionManager
from osmod.notifier.service import NotifierService


@pytest.fixture
def manager() -> ConnectionManager:
    return ConnectionManager()


def make_service(manager: ConnectionManager, redis=None) -> NotifierService:
    users = AsyncMock()
    users.list_users.return_value = []
    articles = AsyncMock()
    articles.list_categories.return_value = []
    articles.list_articles.return_value = []
    articles.count_assignments.return_value = 2
    scoring = AsyncMock()
    scoring.list_tags.return_value = []
    scoring.list_sensitivities.return_value = []
    rules = AsyncMock()
    rules.list_rules.return_value = []
    rules.list_preselects.return_value = []
    return NotifierService(manager, users, articles, scoring, rules, redis=redis)


async def test_snapshot_order(manager: ConnectionManager) -> None:
    service = make_service(manager)

    messages = await service.snapshot(uuid4())

    assert [m["type"] for m in messages] == ["system", "global", "user"]
    assert messages[2]["data"] == {"assignments": 2}


async def test_publish_without_redis_goes_to_local_sockets(
    manager: ConnectionManager,
) -> None:
    moderator = uuid4()
    mine = Connection(str(moderator), None)
    other = Connection(str(uuid4()), None)
    manager.register(mine)
    manager.register(other)
    service = make_service(manager)
    article = create_article("Budget vote")
    article.assigned_moderators = {moderator}

    await service.publish_article_update([article])

    assert other.outbox.get_nowait()["type"] == "article-update"
    assert other.outbox.empty()
    assert mine.outbox.get_nowait()["type"] == "article-update"
    assert mine.outbox.get_nowait() == {"type": "user", "data": {"assignments": 2}}


async def test_publish_with_redis(manager: ConnectionManager) -> None:
    redis = AsyncMock()
    service = make_service(manager, redis=redis)
    category = Category(category_id=uuid4(), label="Politics")
    service.articles.list_categories.return_value = [category]
    article = create_article("Budget vote", category_id=category.category_id)

    await service.publish_article_update([article])

    channel, payload = redis.publish.await_args_list[0].args
    assert channel == "updates:global"
    data = json.loads(payload)["data"]
    assert data["categories"][0]["id"] == str(category.category_id)
    assert data["articles"][0]["id"] == str(article.article_id)


async def test_publish_failure_is_logged_not_raised(
    manager: ConnectionManager,
) -> None:
    redis = AsyncMock()
    redis.publish.side_effect = ConnectionError("redis down")
    service = make_service(manager, redis=redis)

    await service.publish_system()

    redis.publish.assert_awaited_once()


async def test_nothing_published_for_no_articles(manager: ConnectionManager) -> None:
    redis = AsyncMock()
    service = make_service(manager, redis=redis)

    await service.publish_article_update([])

    redis.publish.assert_not_awaited()

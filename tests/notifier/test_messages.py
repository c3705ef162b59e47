"""Tests for notifier wire messages."""

from uuid import uuid4

from osmod.articles.models import ArticleCounts, Category, create_article
from osmod.notifier.messages import (
    article_update_message,
    global_message,
    ping_message,
    system_message,
    user_message,
)


def test_system_message_keys() -> None:
    message = system_message([], [], [], [], [])
    assert message["type"] == "system"
    assert set(message["data"]) == {
        "users",
        "tags",
        "taggingSensitivities",
        "rules",
        "preselects",
    }


def test_global_message_carries_category_counts() -> None:
    category = Category(category_id=uuid4(), label="Politics")
    article = create_article("Budget vote", category_id=category.category_id)

    message = global_message(
        [category], [article], {category.category_id: ArticleCounts(all=4)}
    )

    assert message["type"] == "global"
    assert message["data"]["categories"][0]["label"] == "Politics"
    assert message["data"]["categories"][0]["allCount"] == 4
    assert message["data"]["articles"][0]["id"] == str(article.article_id)


def test_article_update_leaves_out_unchanged_keys() -> None:
    article = create_article("Budget vote")

    message = article_update_message(articles=[article])

    assert message["type"] == "article-update"
    assert "categories" not in message["data"]
    assert len(message["data"]["articles"]) == 1


def test_user_and_ping() -> None:
    assert user_message(3) == {"type": "user", "data": {"assignments": 3}}
    assert ping_message() == {"type": "ping"}

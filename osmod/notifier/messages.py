"""Wire messages of the realtime notifier.

Every message is ``{"type": <MessageType>, "data": {...}}``. A connecting
client first receives ``system``, ``global`` and ``user`` (the snapshot),
then deltas.
"""

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any
from uuid import UUID

from osmod.articles.models import Article, ArticleCounts, Category


class MessageType(str, Enum):
    """Notifier message types."""

    SYSTEM = "system"
    GLOBAL = "global"
    USER = "user"
    ARTICLE_UPDATE = "article-update"
    PING = "ping"
    PONG = "pong"
    RESYNC = "resync"


SNAPSHOT_TYPES = (MessageType.SYSTEM, MessageType.GLOBAL, MessageType.USER)


def _message(message_type: MessageType, data: dict[str, Any]) -> dict[str, Any]:
    return {"type": message_type.value, "data": data}


def _wire_list(items: Iterable[Any]) -> list[dict[str, Any]]:
    return [item.to_wire() for item in items]


def system_message(
    users: Iterable[Any],
    tags: Iterable[Any],
    tagging_sensitivities: Iterable[Any],
    rules: Iterable[Any],
    preselects: Iterable[Any],
) -> dict[str, Any]:
    """Full system data; sent on connect and again on any system change."""
    return _message(
        MessageType.SYSTEM,
        {
            "users": _wire_list(users),
            "tags": _wire_list(tags),
            "taggingSensitivities": _wire_list(tagging_sensitivities),
            "rules": _wire_list(rules),
            "preselects": _wire_list(preselects),
        },
    )


def _categories_wire(
    categories: Iterable[Category], counts: Mapping[UUID, ArticleCounts]
) -> list[dict[str, Any]]:
    return [c.to_wire(counts.get(c.category_id)) for c in categories]


def global_message(
    categories: Iterable[Category],
    articles: Iterable[Article],
    counts: Mapping[UUID, ArticleCounts],
) -> dict[str, Any]:
    """Every category and article with their counts."""
    return _message(
        MessageType.GLOBAL,
        {
            "categories": _categories_wire(categories, counts),
            "articles": _wire_list(articles),
        },
    )


def user_message(assignments: int) -> dict[str, Any]:
    """Per-user data: unmoderated comments in the user's assigned articles."""
    return _message(MessageType.USER, {"assignments": assignments})


def article_update_message(
    articles: Iterable[Article] | None = None,
    categories: Iterable[Category] | None = None,
    counts: Mapping[UUID, ArticleCounts] | None = None,
) -> dict[str, Any]:
    """Delta for changed articles and/or categories; absent keys are unchanged."""
    data: dict[str, Any] = {}
    if categories is not None:
        data["categories"] = _categories_wire(categories, counts or {})
    if articles is not None:
        data["articles"] = _wire_list(articles)
    return _message(MessageType.ARTICLE_UPDATE, data)


def ping_message() -> dict[str, Any]:
    return {"type": MessageType.PING.value}


def pong_message() -> dict[str, Any]:
    return {"type": MessageType.PONG.value}

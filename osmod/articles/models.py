"""Database models for articles and categories.

Article counts are a denormalized view of the comment states inside the
article partition. They are always recalculated from the comments (see
``ArticleCounts.from_comments``), which keeps them equal to the sum of the
comment states.
"""

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field, fields
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from osmod.comments.models import Comment


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

CATEGORY_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.categories (
    category_id UUID PRIMARY KEY,
    label TEXT,
    is_active BOOLEAN,
    assigned_moderators SET<UUID>,
    updated_at TIMESTAMP
)
"""

ARTICLE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.articles (
    article_id UUID PRIMARY KEY,
    source_id TEXT,
    category_id UUID,
    title TEXT,
    text TEXT,
    url TEXT,
    source_created_at TIMESTAMP,
    updated_at TIMESTAMP,
    last_moderated_at TIMESTAMP,
    is_commenting_enabled BOOLEAN,
    is_auto_moderated BOOLEAN,
    assigned_moderators SET<UUID>,
    all_count INT,
    unprocessed_count INT,
    unmoderated_count INT,
    moderated_count INT,
    approved_count INT,
    highlighted_count INT,
    rejected_count INT,
    deferred_count INT,
    flagged_count INT,
    batched_count INT,
    automated_count INT
)
"""

# Articles assigned to a moderator, for the per-user notifier payload
MODERATOR_ASSIGNMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.moderator_assignments (
    user_id UUID,
    article_id UUID,
    assigned_at TIMESTAMP,
    PRIMARY KEY ((user_id), article_id)
)
"""

ARTICLES_TABLES_CQL = [
    CATEGORY_TABLE_CQL,
    ARTICLE_TABLE_CQL,
    MODERATOR_ASSIGNMENTS_TABLE_CQL,
]


def sanitize_url(url: str | None) -> str | None:
    """Drop URLs that are not plain http(s) links."""
    if url and (url.startswith("http://") or url.startswith("https://")):
        return url
    return None


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


@dataclass
class ArticleCounts:
    """Per-status comment counts of an article (or a category)."""

    all: int = 0
    unprocessed: int = 0
    unmoderated: int = 0
    moderated: int = 0
    approved: int = 0
    highlighted: int = 0
    rejected: int = 0
    deferred: int = 0
    flagged: int = 0
    batched: int = 0
    automated: int = 0

    @classmethod
    def from_comments(cls, comments: Iterable[Comment]) -> "ArticleCounts":
        """Count comment states.

        ``all == unprocessed + unmoderated + moderated`` always holds: a
        comment is unprocessed while it is neither scored nor moderated.
        """
        counts = cls()
        for comment in comments:
            counts.all += 1
            if comment.is_moderated:
                counts.moderated += 1
            elif comment.is_scored:
                counts.unmoderated += 1
            else:
                counts.unprocessed += 1

            if comment.is_accepted is True:
                counts.approved += 1
            elif comment.is_accepted is False:
                counts.rejected += 1
            if comment.is_deferred:
                counts.deferred += 1
            if comment.is_highlighted:
                counts.highlighted += 1
            if comment.unresolved_flags_count > 0:
                counts.flagged += 1
            if comment.is_batch_resolved:
                counts.batched += 1
            if comment.is_auto_resolved:
                counts.automated += 1
        return counts

    @classmethod
    def from_row(cls, row: Any) -> "ArticleCounts":
        return cls(**{f.name: getattr(row, f"{f.name}_count") or 0 for f in fields(cls)})

    def __add__(self, other: "ArticleCounts") -> "ArticleCounts":
        return ArticleCounts(
            **{f.name: getattr(self, f.name) + getattr(other, f.name) for f in fields(self)}
        )

    def as_columns(self) -> list[int]:
        """Values in table column order."""
        return list(asdict(self).values())

    def to_wire(self) -> dict[str, int]:
        return {f"{_camel(name)}Count": value for name, value in asdict(self).items()}


@dataclass
class Category:
    """Article category (a section of the publication)."""

    category_id: UUID
    label: str
    is_active: bool = True
    assigned_moderators: set[UUID] = field(default_factory=set)
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Category":
        """Create Category from Cassandra row."""
        return cls(
            category_id=row.category_id,
            label=row.label or "",
            is_active=bool(row.is_active),
            assigned_moderators=set(row.assigned_moderators or ()),
            updated_at=row.updated_at,
        )

    def to_wire(self, counts: ArticleCounts | None = None) -> dict[str, Any]:
        data = {
            "id": str(self.category_id),
            "label": self.label,
            "isActive": self.is_active,
            "assignedModerators": sorted(str(u) for u in self.assigned_moderators),
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        data.update((counts or ArticleCounts()).to_wire())
        return data


@dataclass
class Article:
    """Article entity with aggregated comment counts."""

    article_id: UUID
    source_id: str | None
    category_id: UUID | None
    title: str
    text: str | None
    url: str | None
    source_created_at: datetime | None = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_moderated_at: datetime | None = None
    is_commenting_enabled: bool = True
    is_auto_moderated: bool = True
    assigned_moderators: set[UUID] = field(default_factory=set)
    counts: ArticleCounts = field(default_factory=ArticleCounts)

    @classmethod
    def from_row(cls, row: Any) -> "Article":
        """Create Article from Cassandra row."""
        return cls(
            article_id=row.article_id,
            source_id=row.source_id,
            category_id=row.category_id,
            title=row.title or "",
            text=row.text,
            url=row.url,
            source_created_at=row.source_created_at,
            updated_at=row.updated_at,
            last_moderated_at=row.last_moderated_at,
            is_commenting_enabled=row.is_commenting_enabled is not False,
            is_auto_moderated=row.is_auto_moderated is not False,
            assigned_moderators=set(row.assigned_moderators or ()),
            counts=ArticleCounts.from_row(row),
        )

    def to_wire(self) -> dict[str, Any]:
        """Shape sent to clients; article text is fetched separately."""
        data = {
            "id": str(self.article_id),
            "sourceId": self.source_id,
            "categoryId": str(self.category_id) if self.category_id else None,
            "title": self.title,
            "url": sanitize_url(self.url),
            "sourceCreatedAt": self.source_created_at.isoformat()
            if self.source_created_at
            else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
            "lastModeratedAt": self.last_moderated_at.isoformat()
            if self.last_moderated_at
            else None,
            "isCommentingEnabled": self.is_commenting_enabled,
            "isAutoModerated": self.is_auto_moderated,
            "assignedModerators": sorted(str(u) for u in self.assigned_moderators),
        }
        data.update(self.counts.to_wire())
        return data


def create_article(
    title: str,
    category_id: UUID | None = None,
    source_id: str | None = None,
    text: str | None = None,
    url: str | None = None,
) -> Article:
    """Create a new article with zero counts."""
    return Article(
        article_id=uuid4(),
        source_id=source_id,
        category_id=category_id,
        title=title,
        text=text,
        url=url,
    )


def counts_by_category(articles: Iterable[Article]) -> dict[UUID, ArticleCounts]:
    """Sum article counts per category."""
    totals: dict[UUID, ArticleCounts] = {}
    for article in articles:
        if article.category_id is None:
            continue
        totals[article.category_id] = (
            totals.get(article.category_id, ArticleCounts()) + article.counts
        )
    return totals

"""Tests for article counts."""

from uuid import uuid4

from osmod.articles.models import (
    ArticleCounts,
    counts_by_category,
    create_article,
    sanitize_url,
)
from osmod.comments.models import DecisionSource, ModerationAction, create_comment


def make_comments(article_id):
    unprocessed = create_comment(article_id, "waiting")

    unmoderated = create_comment(article_id, "scored")
    unmoderated.is_scored = True
    unmoderated.unresolved_flags_count = 1

    approved = create_comment(article_id, "ok")
    approved.is_scored = True
    approved.apply_action(ModerationAction.APPROVE, is_batch=True)

    rejected = create_comment(article_id, "bad")
    rejected.is_scored = True
    rejected.apply_action(ModerationAction.REJECT, DecisionSource.RULE)

    deferred = create_comment(article_id, "unsure")
    deferred.apply_action(ModerationAction.DEFER)

    highlighted = create_comment(article_id, "great")
    highlighted.apply_action(ModerationAction.HIGHLIGHT)

    return [unprocessed, unmoderated, approved, rejected, deferred, highlighted]


class TestArticleCounts:
    """Tests for ArticleCounts.from_comments."""

    def test_counts(self) -> None:
        counts = ArticleCounts.from_comments(make_comments(uuid4()))

        assert counts.all == 6
        assert counts.unprocessed == 1
        assert counts.unmoderated == 1
        assert counts.moderated == 4
        assert counts.approved == 2
        assert counts.rejected == 1
        assert counts.deferred == 1
        assert counts.highlighted == 1
        assert counts.flagged == 1
        assert counts.batched == 1
        assert counts.automated == 1

    def test_all_is_sum_of_processing_states(self) -> None:
        counts = ArticleCounts.from_comments(make_comments(uuid4()))
        assert counts.all == counts.unprocessed + counts.unmoderated + counts.moderated

    def test_empty(self) -> None:
        assert ArticleCounts.from_comments([]) == ArticleCounts()

    def test_wire_names(self) -> None:
        data = ArticleCounts(all=3, unmoderated=2).to_wire()
        assert data["allCount"] == 3
        assert data["unmoderatedCount"] == 2
        assert data["flaggedCount"] == 0
        assert len(data) == 11

    def test_addition(self) -> None:
        total = ArticleCounts(all=1, approved=1) + ArticleCounts(all=2, rejected=2)
        assert total == ArticleCounts(all=3, approved=1, rejected=2)


class TestCategoryCounts:
    """Tests for counts_by_category."""

    def test_sums_articles_of_each_category(self) -> None:
        category_id = uuid4()
        first = create_article("One", category_id=category_id)
        first.counts = ArticleCounts(all=2, unmoderated=2)
        second = create_article("Two", category_id=category_id)
        second.counts = ArticleCounts(all=1, moderated=1)
        uncategorized = create_article("Three")
        uncategorized.counts = ArticleCounts(all=5)

        totals = counts_by_category([first, second, uncategorized])

        assert totals == {category_id: ArticleCounts(all=3, unmoderated=2, moderated=1)}


class TestArticleWire:
    """Tests for the article wire shape."""

    def test_text_is_left_out(self) -> None:
        article = create_article("Title", text="Long body", url="https://news.test/a")
        data = article.to_wire()
        assert "text" not in data
        assert data["url"] == "https://news.test/a"
        assert data["allCount"] == 0

    def test_unsafe_urls_are_dropped(self) -> None:
        assert sanitize_url("javascript:alert(1)") is None
        assert sanitize_url(None) is None
        assert sanitize_url("http://news.test") == "http://news.test"

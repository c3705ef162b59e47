"""Tests for scorer output normalization."""

import math
from uuid import uuid4

import pytest

from osmod.scoring.models import Tag, TaggingSensitivity
from osmod.scoring.normalization import (
    clean_score,
    find_sensitivity,
    is_tagged,
    max_summary_score,
    normalize_scores,
)


def make_tag(key: str, in_summary_score: bool = True) -> Tag:
    return Tag(tag_id=uuid4(), key=key, label=key.title(), in_summary_score=in_summary_score)


@pytest.fixture
def tags() -> dict[str, Tag]:
    return {"TOXICITY": make_tag("TOXICITY"), "SPAM": make_tag("SPAM")}


class TestCleanScore:
    """Tests for clean_score."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (0.5, 0.5),
            (0, 0.0),
            (1, 1.0),
            (1.7, 1.0),
            (-0.2, 0.0),
        ],
    )
    def test_numbers_are_clamped(self, value: float, expected: float) -> None:
        assert clean_score(value) == expected

    @pytest.mark.parametrize(
        "value", [None, "0.5", True, math.nan, math.inf, -math.inf, [0.5]]
    )
    def test_non_numbers_are_rejected(self, value: object) -> None:
        assert clean_score(value) is None


class TestNormalizeScores:
    """Tests for normalize_scores."""

    def test_valid_payload(self, tags: dict[str, Tag]) -> None:
        payload = {
            "scores": {"TOXICITY": [{"score": 0.9, "begin": 0, "end": 5}]},
            "summaryScores": {"TOXICITY": 0.8},
        }
        result = normalize_scores(payload, tags, text_length=10)

        toxicity = tags["TOXICITY"].tag_id
        assert len(result.spans) == 1
        assert result.spans[0].tag_id == toxicity
        assert result.spans[0].score == 0.9
        assert (result.spans[0].begin, result.spans[0].end) == (0, 5)
        assert result.summary == {toxicity: 0.8}
        assert result.dropped == 0

    def test_unknown_attributes_are_ignored(self, tags: dict[str, Tag]) -> None:
        payload = {
            "scores": {"UNKNOWN": [{"score": 0.9}]},
            "summaryScores": {"UNKNOWN": 0.9},
        }
        result = normalize_scores(payload, tags, text_length=10)
        assert result.is_empty
        assert result.dropped == 0

    def test_invalid_scores_are_dropped(self, tags: dict[str, Tag]) -> None:
        payload = {
            "scores": {
                "TOXICITY": [{"score": "high"}, {"score": math.nan}, "oops"],
                "SPAM": "not a list",
            },
            "summaryScores": {"SPAM": None},
        }
        result = normalize_scores(payload, tags, text_length=10)
        assert result.is_empty
        assert result.dropped == 5

    def test_out_of_range_scores_are_clamped(self, tags: dict[str, Tag]) -> None:
        payload = {"summaryScores": {"TOXICITY": 3.0, "SPAM": -1}}
        result = normalize_scores(payload, tags, text_length=10)
        assert result.summary[tags["TOXICITY"].tag_id] == 1.0
        assert result.summary[tags["SPAM"].tag_id] == 0.0

    @pytest.mark.parametrize(
        "begin,end",
        [(-1, 3), (2, 20), (5, 2), ("0", 3), (0, None), (True, 3)],
    )
    def test_bad_spans_keep_score(self, tags: dict[str, Tag], begin, end) -> None:
        payload = {"scores": {"TOXICITY": [{"score": 0.4, "begin": begin, "end": end}]}}
        result = normalize_scores(payload, tags, text_length=10)
        assert len(result.spans) == 1
        assert result.spans[0].begin is None
        assert result.spans[0].end is None
        assert result.spans[0].score == 0.4

    def test_summary_defaults_to_max_span(self, tags: dict[str, Tag]) -> None:
        payload = {
            "scores": {"SPAM": [{"score": 0.2}, {"score": 0.7}, {"score": 0.5}]},
        }
        result = normalize_scores(payload, tags, text_length=10)
        assert result.summary == {tags["SPAM"].tag_id: 0.7}

    def test_explicit_summary_wins_over_spans(self, tags: dict[str, Tag]) -> None:
        payload = {
            "scores": {"SPAM": [{"score": 0.9}]},
            "summaryScores": {"SPAM": 0.1},
        }
        result = normalize_scores(payload, tags, text_length=10)
        assert result.summary == {tags["SPAM"].tag_id: 0.1}

    @pytest.mark.parametrize("payload", [{}, {"scores": None, "summaryScores": []}])
    def test_missing_sections(self, tags: dict[str, Tag], payload: dict) -> None:
        assert normalize_scores(payload, tags, text_length=10).is_empty


class TestFindSensitivity:
    """Tests for find_sensitivity."""

    def test_most_specific_range_wins(self) -> None:
        category_id, tag_id = uuid4(), uuid4()
        sensitivities = [
            TaggingSensitivity(uuid4(), None, None, 0.9, 1.0),
            TaggingSensitivity(uuid4(), None, tag_id, 0.8, 1.0),
            TaggingSensitivity(uuid4(), category_id, None, 0.7, 1.0),
            TaggingSensitivity(uuid4(), category_id, tag_id, 0.6, 1.0),
        ]
        default = (0.5, 1.0)

        assert find_sensitivity(sensitivities, category_id, tag_id, default) == (0.6, 1.0)
        assert find_sensitivity(sensitivities[:3], category_id, tag_id, default) == (
            0.7,
            1.0,
        )
        assert find_sensitivity(sensitivities[:2], category_id, tag_id, default) == (
            0.8,
            1.0,
        )
        assert find_sensitivity(sensitivities[:1], category_id, tag_id, default) == (
            0.9,
            1.0,
        )

    def test_default_when_nothing_matches(self) -> None:
        other = TaggingSensitivity(uuid4(), uuid4(), uuid4(), 0.1, 0.2)
        assert find_sensitivity([other], None, uuid4(), (0.5, 1.0)) == (0.5, 1.0)

    def test_category_ranges_skipped_without_category(self) -> None:
        category_id, tag_id = uuid4(), uuid4()
        sensitivities = [TaggingSensitivity(uuid4(), category_id, tag_id, 0.1, 0.2)]
        assert find_sensitivity(sensitivities, None, tag_id, (0.5, 1.0)) == (0.5, 1.0)


class TestSummaryHelpers:
    """Tests for is_tagged and max_summary_score."""

    def test_is_tagged_bounds_inclusive(self) -> None:
        assert is_tagged(0.5, (0.5, 1.0))
        assert is_tagged(1.0, (0.5, 1.0))
        assert not is_tagged(0.49, (0.5, 1.0))

    def test_max_summary_score(self) -> None:
        counted = make_tag("TOXICITY")
        ignored = make_tag("SPAM", in_summary_score=False)
        tags = {counted.tag_id: counted, ignored.tag_id: ignored}

        summary = {counted.tag_id: 0.4, ignored.tag_id: 0.95, uuid4(): 0.99}
        assert max_summary_score(summary, tags) == (0.4, counted.tag_id)

    def test_max_summary_score_empty(self) -> None:
        assert max_summary_score({}, {}) == (None, None)

"""Normalization of untrusted scorer output.

A scorer answers with::

    {
        "scores": {"TOXICITY": [{"score": 0.9, "begin": 0, "end": 12}]},
        "summaryScores": {"TOXICITY": 0.87},
    }

Anything can be wrong with it. Values that are not finite numbers are
dropped, values outside ``[0, 1]`` are clamped, attributes without a tag are
ignored, and bad spans lose their annotation but keep their score.
"""

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

import structlog

from .models import Tag, TaggingSensitivity


logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SpanScore:
    """A cleaned span score."""

    tag_id: UUID
    score: float
    begin: int | None = None
    end: int | None = None


@dataclass
class NormalizedScores:
    """Cleaned scores of one scorer response."""

    spans: list[SpanScore] = field(default_factory=list)
    summary: dict[UUID, float] = field(default_factory=dict)
    dropped: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.spans and not self.summary


def clean_score(value: Any) -> float | None:
    """Return ``value`` clamped to ``[0, 1]``, or None if it is not a finite number."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return min(1.0, max(0.0, value))


def _clean_span(begin: Any, end: Any, text_length: int) -> tuple[int | None, int | None]:
    if begin is None and end is None:
        return None, None
    if (
        isinstance(begin, bool)
        or isinstance(end, bool)
        or not isinstance(begin, int)
        or not isinstance(end, int)
    ):
        return None, None
    if begin < 0 or end > text_length or begin > end:
        return None, None
    return begin, end


def normalize_scores(
    payload: Mapping[str, Any],
    tags_by_key: Mapping[str, Tag],
    text_length: int,
) -> NormalizedScores:
    """Clean a scorer response.

    Args:
        payload: Decoded scorer response (or callback body)
        tags_by_key: Known tags by attribute key
        text_length: Length of the scored comment text, bounds span offsets

    Returns:
        Cleaned span and summary scores keyed by tag ID. A tag without a
        valid summary score gets the maximum of its span scores.
    """
    result = NormalizedScores()

    raw_scores = payload.get("scores")
    if not isinstance(raw_scores, Mapping):
        raw_scores = {}
    raw_summary = payload.get("summaryScores")
    if not isinstance(raw_summary, Mapping):
        raw_summary = {}

    for key, spans in raw_scores.items():
        tag = tags_by_key.get(key)
        if tag is None:
            logger.debug("score_attribute_ignored", attribute=key)
            continue
        if not isinstance(spans, list):
            result.dropped += 1
            continue

        for span in spans:
            if not isinstance(span, Mapping):
                result.dropped += 1
                continue
            score = clean_score(span.get("score"))
            if score is None:
                result.dropped += 1
                continue
            begin, end = _clean_span(span.get("begin"), span.get("end"), text_length)
            result.spans.append(SpanScore(tag.tag_id, score, begin, end))

    for key, value in raw_summary.items():
        tag = tags_by_key.get(key)
        if tag is None:
            continue
        score = clean_score(value)
        if score is None:
            result.dropped += 1
            continue
        result.summary[tag.tag_id] = score

    span_max: dict[UUID, float] = {}
    for span in result.spans:
        span_max[span.tag_id] = max(span_max.get(span.tag_id, 0.0), span.score)
    for tag_id, score in span_max.items():
        result.summary.setdefault(tag_id, score)

    if result.dropped:
        logger.warning("scores_dropped", count=result.dropped)
    return result


def find_sensitivity(
    sensitivities: Iterable[TaggingSensitivity],
    category_id: UUID | None,
    tag_id: UUID,
    default: tuple[float, float],
) -> tuple[float, float]:
    """Pick the most specific tagging range for a tag in a category.

    Order: (category, tag), (category, any tag), (any category, tag),
    (any category, any tag), then ``default``.
    """
    by_scope = {(s.category_id, s.tag_id): s for s in sensitivities}
    candidates = []
    if category_id is not None:
        candidates += [(category_id, tag_id), (category_id, None)]
    candidates += [(None, tag_id), (None, None)]

    for scope in candidates:
        sensitivity = by_scope.get(scope)
        if sensitivity is not None:
            return sensitivity.lower_threshold, sensitivity.upper_threshold
    return default


def is_tagged(score: float, threshold: tuple[float, float]) -> bool:
    """Check if a summary score falls inside a tagging range (inclusive)."""
    lower, upper = threshold
    return lower <= score <= upper


def max_summary_score(
    summary: Mapping[UUID, float],
    tags: Mapping[UUID, Tag],
) -> tuple[float | None, UUID | None]:
    """Highest summary score over tags that count towards the summary."""
    best: tuple[float | None, UUID | None] = (None, None)
    for tag_id, score in summary.items():
        tag = tags.get(tag_id)
        if tag is None or not tag.in_summary_score:
            continue
        if best[0] is None or score > best[0]:
            best = (score, tag_id)
    return best

"""Score ingestion module.

Sends comments to the machine scorers, normalizes their untrusted answers
against the configured tags and sensitivities, and stores span and summary
scores.

Note: Router is not exported here to avoid circular imports.
Import directly from osmod.scoring.router when needed.
"""

from .models import (
    SCORING_TABLES_CQL,
    CommentScore,
    CommentSummaryScore,
    ScoreSourceType,
    ScoringRequest,
    Tag,
    TaggingSensitivity,
)
from .proxy import ScoringProxyClient, ScoringProxyError
from .service import ScoringService


__all__ = [
    "SCORING_TABLES_CQL",
    "CommentScore",
    "CommentSummaryScore",
    "ScoreSourceType",
    "ScoringProxyClient",
    "ScoringProxyError",
    "ScoringRequest",
    "ScoringService",
    "Tag",
    "TaggingSensitivity",
]

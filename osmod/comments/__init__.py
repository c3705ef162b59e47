"""Comment module.

Comments with their moderation state, user flags and the decision audit
trail.

Note: Router is not exported here to avoid circular imports.
Import directly from osmod.comments.router when needed.
"""

from .models import (
    COMMENTS_TABLES_CQL,
    Comment,
    CommentFlag,
    DecisionSource,
    ModerationAction,
    ModerationDecision,
)
from .service import CommentService


__all__ = [
    "COMMENTS_TABLES_CQL",
    "Comment",
    "CommentFlag",
    "CommentService",
    "DecisionSource",
    "ModerationAction",
    "ModerationDecision",
]

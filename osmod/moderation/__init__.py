"""Moderation module.

Rule-based decisions on scored comments, moderator actions and the rule
and preselect administration.

Note: Router is not exported here to avoid circular imports.
Import directly from osmod.moderation.router when needed.
"""

from .engine import Decision, decide
from .models import (
    MODERATION_TABLES_CQL,
    FlagAction,
    ModerationRule,
    Preselect,
)
from .service import ModerationService, RuleService


__all__ = [
    "MODERATION_TABLES_CQL",
    "Decision",
    "FlagAction",
    "ModerationRule",
    "ModerationService",
    "Preselect",
    "RuleService",
    "decide",
]

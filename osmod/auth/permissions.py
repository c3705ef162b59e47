"""Group-based access control for OSMod.

Users belong to exactly one group:
- ADMIN: human moderator who can also manage rules, tags and users
- GENERAL: human moderator
- SERVICE: publisher integration that pushes articles and comments
- MODERATOR: machine scorer (scoring proxy) that posts scores back
"""

from enum import Enum


class UserGroup(str, Enum):
    """User groups."""

    ADMIN = "admin"
    GENERAL = "general"
    SERVICE = "service"
    MODERATOR = "moderator"


HUMAN_GROUPS = frozenset({UserGroup.ADMIN, UserGroup.GENERAL})
MACHINE_GROUPS = frozenset({UserGroup.SERVICE, UserGroup.MODERATOR})


def _as_group(group: UserGroup | str) -> UserGroup | None:
    if isinstance(group, UserGroup):
        return group
    try:
        return UserGroup(group)
    except ValueError:
        return None


def is_admin(group: UserGroup | str) -> bool:
    """Check if group is ADMIN."""
    return _as_group(group) is UserGroup.ADMIN


def is_human_moderator(group: UserGroup | str) -> bool:
    """Check if group may take moderation actions and watch updates.

    Examples:
        >>> is_human_moderator("general")
        True
        >>> is_human_moderator(UserGroup.SERVICE)
        False
    """
    return _as_group(group) in HUMAN_GROUPS


def is_machine(group: UserGroup | str) -> bool:
    """Check if group is a publisher integration or a scorer."""
    return _as_group(group) in MACHINE_GROUPS

"""Authentication module.

Token validation, user groups and user lookups. The login flow itself lives
outside this service.
"""

from osmod.auth.models import AUTH_TABLES_CQL, User
from osmod.auth.permissions import UserGroup
from osmod.auth.schemas import TokenUser
from osmod.auth.service import UserService


__all__ = [
    "AUTH_TABLES_CQL",
    "TokenUser",
    "User",
    "UserGroup",
    "UserService",
]

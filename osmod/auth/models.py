"""User entity and Cassandra table definitions."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from osmod.auth.permissions import UserGroup


USERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    user_id UUID PRIMARY KEY,
    name TEXT,
    email TEXT,
    user_group TEXT,
    is_active BOOLEAN,
    endpoint TEXT,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

AUTH_TABLES_CQL = [USERS_TABLE_CQL]


@dataclass
class User:
    """A human moderator, a publisher integration or a machine scorer."""

    user_id: UUID
    name: str
    email: str | None
    group: UserGroup
    is_active: bool = True
    # Scoring endpoint, only set for MODERATOR (scorer) users
    endpoint: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_scorer(self) -> bool:
        return (
            self.group is UserGroup.MODERATOR
            and self.is_active
            and bool(self.endpoint)
        )

    @classmethod
    def from_row(cls, row: Any) -> "User":
        """Create User from Cassandra row."""
        return cls(
            user_id=row.user_id,
            name=row.name or "",
            email=row.email,
            group=UserGroup(row.user_group),
            is_active=bool(row.is_active),
            endpoint=row.endpoint,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_wire(self) -> dict[str, Any]:
        """Shape sent to clients in the notifier ``system`` snapshot."""
        return {
            "id": str(self.user_id),
            "name": self.name,
            "email": self.email,
            "group": self.group.value,
            "isActive": self.is_active,
        }


def create_user(
    name: str,
    group: UserGroup,
    email: str | None = None,
    endpoint: str | None = None,
) -> User:
    """Factory for new users."""
    return User(
        user_id=uuid4(),
        name=name,
        email=email,
        group=group,
        endpoint=endpoint,
    )

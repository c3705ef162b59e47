# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""User lookups for moderation, scoring and the realtime notifier."""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from osmod.auth.models import User


if TYPE_CHECKING:
    from cassandra.cluster import Session


logger = structlog.get_logger(__name__)


class UserService:
    """Service for user records."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.users
            (user_id, name, email, user_group, is_active, endpoint, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._get_user = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.users WHERE user_id = ?
        """)

        self._list_users = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.users
        """)

    async def save_user(self, user: User) -> User:
        """Insert or replace a user."""
        user.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._insert_user,
            [
                user.user_id,
                user.name,
                user.email,
                user.group.value,
                user.is_active,
                user.endpoint,
                user.created_at,
                user.updated_at,
            ],
        )
        logger.info("user_saved", user_id=str(user.user_id), group=user.group.value)
        return user

    async def get_user(self, user_id: UUID) -> User | None:
        """Get a user by ID."""
        result = await self.session.aexecute(self._get_user, [user_id])
        row = result.one()
        return User.from_row(row) if row else None

    async def list_users(self) -> list[User]:
        """List every user."""
        result = await self.session.aexecute(self._list_users)
        return [User.from_row(row) for row in result]

    async def list_scorers(self) -> list[User]:
        """Active machine scorers with a configured endpoint."""
        users = await self.list_users()
        return [u for u in users if u.is_scorer]

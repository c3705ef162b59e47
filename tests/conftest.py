"""Shared fixtures: an app without database, tokens and mocked services."""

import os
import tempfile
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="osmod-logs-"))
os.environ.setdefault("AUTH_SECRET_KEY", "test-secret-key-with-enough-length-0123")

from osmod.auth.permissions import UserGroup  # noqa: E402
from osmod.auth.security import create_access_token  # noqa: E402
from osmod.main import create_app  # noqa: E402


def make_token(group: UserGroup | str, user_id: UUID | None = None) -> str:
    """Access token for a user of ``group``."""
    group_value = group.value if isinstance(group, UserGroup) else group
    return create_access_token(
        {
            "sub": str(user_id or uuid4()),
            "email": f"{group_value}@example.com",
            "group": group_value,
        }
    )


def auth_headers(group: UserGroup | str, user_id: UUID | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(group, user_id)}"}


def mock_session() -> Mock:
    """Cassandra session stand-in: ``prepare`` is sync, ``aexecute`` async."""
    session = Mock()
    session.prepare = Mock(side_effect=lambda query: Mock(query=query))
    session.aexecute = AsyncMock(return_value=Mock(one=Mock(return_value=None)))
    return session


@pytest.fixture
def session() -> Mock:
    return mock_session()


@pytest.fixture
def app() -> FastAPI:
    """App without lifespan: services are set on ``app.state`` by each test."""
    return create_app()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def headers() -> Callable[..., dict[str, str]]:
    return auth_headers


@pytest.fixture
def services(app: FastAPI) -> dict[str, Any]:
    """Mocked services registered on the app."""
    notifier = Mock()
    notifier.redis = None
    notifier.publish_system = AsyncMock()
    notifier.publish_article_update = AsyncMock()
    notifier.publish_users = AsyncMock()
    notifier.manager.connection_count = Mock(return_value=0)

    dispatcher = Mock()
    dispatcher.is_running = True
    dispatcher.queue_length = 0

    mocked = {
        "user_service": AsyncMock(),
        "comment_service": AsyncMock(),
        "article_service": AsyncMock(),
        "scoring_service": AsyncMock(),
        "moderation_service": AsyncMock(),
        "rule_service": AsyncMock(),
        "text_size_service": AsyncMock(),
        "notifier_service": notifier,
        "dispatcher": dispatcher,
    }
    for name, service in mocked.items():
        setattr(app.state, name, service)
    return mocked


@pytest.fixture
def token() -> Callable[..., str]:
    return make_token

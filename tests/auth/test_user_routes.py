"""Tests for user administration routes."""

from typing import Any
from uuid import uuid4

from fastapi.testclient import TestClient

from osmod.auth.models import create_user
from osmod.auth.permissions import UserGroup
from osmod.auth.security import decode_access_token


def test_create_scorer(client: TestClient, services: dict[str, Any], headers) -> None:
    services["user_service"].save_user.side_effect = lambda u: u

    response = client.post(
        "/rest/users",
        json={"name": "Toxicity", "group": "moderator", "endpoint": "https://s.test"},
        headers=headers(UserGroup.ADMIN),
    )

    assert response.status_code == 201
    assert response.json()["data"]["group"] == "moderator"
    saved = services["user_service"].save_user.await_args.args[0]
    assert saved.is_scorer
    services["notifier_service"].publish_system.assert_awaited_once()


def test_endpoint_only_for_scorers(
    client: TestClient, services: dict[str, Any], headers
) -> None:
    response = client.post(
        "/rest/users",
        json={"name": "Ana", "group": "general", "endpoint": "https://s.test"},
        headers=headers(UserGroup.ADMIN),
    )

    assert response.status_code == 400
    services["user_service"].save_user.assert_not_awaited()


def test_general_users_cannot_create(
    client: TestClient, services: dict[str, Any], headers
) -> None:
    response = client.post(
        "/rest/users",
        json={"name": "Ana", "group": "admin"},
        headers=headers(UserGroup.GENERAL),
    )
    assert response.status_code == 403


def test_deactivate(client: TestClient, services: dict[str, Any], headers) -> None:
    target = create_user("Ana", UserGroup.GENERAL)
    services["user_service"].get_user.return_value = target
    services["user_service"].save_user.side_effect = lambda u: u

    response = client.patch(
        f"/rest/users/{target.user_id}",
        json={"isActive": False},
        headers=headers(UserGroup.ADMIN),
    )

    assert response.status_code == 200
    assert response.json()["data"]["isActive"] is False


def test_update_missing_user(
    client: TestClient, services: dict[str, Any], headers
) -> None:
    services["user_service"].get_user.return_value = None

    response = client.patch(
        f"/rest/users/{uuid4()}", json={"name": "X"}, headers=headers(UserGroup.ADMIN)
    )
    assert response.status_code == 404


def test_issue_machine_token(
    client: TestClient, services: dict[str, Any], headers
) -> None:
    publisher = create_user("Publisher", UserGroup.SERVICE)
    services["user_service"].get_user.return_value = publisher

    response = client.post(
        f"/rest/users/{publisher.user_id}/token", headers=headers(UserGroup.ADMIN)
    )

    assert response.status_code == 200
    payload = decode_access_token(response.json()["access_token"])
    assert payload["sub"] == str(publisher.user_id)
    assert payload["group"] == "service"


def test_no_tokens_for_humans(
    client: TestClient, services: dict[str, Any], headers
) -> None:
    services["user_service"].get_user.return_value = create_user(
        "Ana", UserGroup.GENERAL
    )

    response = client.post(f"/rest/users/{uuid4()}/token", headers=headers(UserGroup.ADMIN))
    assert response.status_code == 400

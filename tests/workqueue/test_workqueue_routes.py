"""Tests for work queue routes."""

from typing import Any
from uuid import uuid4

from fastapi.testclient import TestClient

from osmod.auth.permissions import UserGroup
from osmod.workqueue.dispatcher import UnknownTriggerError
from osmod.workqueue.models import Job, JobType


def test_trigger(client: TestClient, services: dict[str, Any], headers) -> None:
    services["dispatcher"].trigger.return_value = Job(
        JobType.UPDATE_ARTICLE_COUNTS, {"all": True}
    )

    response = client.get(
        "/services/processing/trigger/counts", headers=headers(UserGroup.ADMIN)
    )

    assert response.status_code == 202
    data = response.json()["data"]
    assert data["job_type"] == "update_article_counts"
    assert data["status"] == "queued"
    services["dispatcher"].trigger.assert_called_once_with("counts")


def test_unknown_trigger(client: TestClient, services: dict[str, Any], headers) -> None:
    services["dispatcher"].trigger.side_effect = UnknownTriggerError("reindex")

    response = client.get(
        "/services/processing/trigger/reindex", headers=headers(UserGroup.ADMIN)
    )
    assert response.status_code == 404


def test_trigger_needs_admin(
    client: TestClient, services: dict[str, Any], headers
) -> None:
    response = client.get(
        "/services/processing/trigger/scoring", headers=headers(UserGroup.GENERAL)
    )
    assert response.status_code == 403


def test_text_sizes(client: TestClient, services: dict[str, Any], headers) -> None:
    comment_id = uuid4()
    services["text_size_service"].get_heights.return_value = {str(comment_id): 88}

    response = client.post(
        "/services/textSizes?width=696",
        json={"data": [str(comment_id)]},
        headers=headers(UserGroup.GENERAL),
    )

    assert response.status_code == 200
    assert response.json() == {"data": {str(comment_id): 88}}
    services["text_size_service"].get_heights.assert_awaited_once_with([comment_id], 696)


def test_text_sizes_width_bounds(
    client: TestClient, services: dict[str, Any], headers
) -> None:
    response = client.post(
        "/services/textSizes?width=10",
        json={"data": [str(uuid4())]},
        headers=headers(UserGroup.GENERAL),
    )
    assert response.status_code == 422


def test_stats(client: TestClient, services: dict[str, Any], headers) -> None:
    services["dispatcher"].get_stats.return_value = {"running": True}
    services["dispatcher"].dead_letters = []

    response = client.get("/services/processing/stats", headers=headers(UserGroup.ADMIN))

    assert response.status_code == 200
    assert response.json()["data"] == {"running": True, "recent_failures": []}

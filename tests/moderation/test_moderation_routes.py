"""Tests for comment action and rule administration routes."""

from typing import Any
from unittest.mock import Mock
from uuid import uuid4

from fastapi.testclient import TestClient

from osmod.auth.permissions import UserGroup
from osmod.comments.models import ModerationAction
from osmod.moderation.models import FlagAction
from osmod.moderation.rules import RuleValidationError
from osmod.moderation.service import ActionResult, RuleNotFoundError
from osmod.scoring.service import TagNotFoundError
from osmod.workqueue.models import JobType


class TestCommentActions:
    """Tests for POST /services/commentActions/{action}."""

    def test_queued_by_default(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        comment_id = uuid4()
        services["dispatcher"].enqueue.return_value = Mock(job_id="job-1")

        response = client.post(
            "/services/commentActions/approve",
            json={"data": [str(comment_id)]},
            headers=headers(UserGroup.GENERAL),
        )

        assert response.status_code == 202
        assert response.json() == {"action": "approve", "job_id": "job-1", "queued": 1}
        job_type, payload = services["dispatcher"].enqueue.call_args.args
        assert job_type is JobType.COMMENT_ACTION
        assert payload["items"] == [str(comment_id)]
        services["moderation_service"].apply_action.assert_not_awaited()

    def test_run_immediately(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        comment_id, user_id = uuid4(), uuid4()
        services["moderation_service"].apply_action.return_value = ActionResult(
            action="reject", processed=[comment_id]
        )

        response = client.post(
            "/services/commentActions/reject",
            json={"data": [str(comment_id)], "runImmediately": True},
            headers=headers(UserGroup.GENERAL, user_id),
        )

        assert response.status_code == 200
        assert response.json()["processed"] == [str(comment_id)]
        services["moderation_service"].apply_action.assert_awaited_once_with(
            [comment_id], ModerationAction.REJECT, user_id
        )

    def test_flag_action(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        services["moderation_service"].apply_flag_action.return_value = ActionResult(
            action="resolve-flags"
        )

        response = client.post(
            "/services/commentActions/resolve-flags",
            json={"data": [str(uuid4())], "runImmediately": True},
            headers=headers(UserGroup.ADMIN),
        )

        assert response.status_code == 200
        args = services["moderation_service"].apply_flag_action.await_args.args
        assert args[1] is FlagAction.RESOLVE

    def test_unknown_action(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        response = client.post(
            "/services/commentActions/explode",
            json={"data": [str(uuid4())]},
            headers=headers(UserGroup.GENERAL),
        )
        assert response.status_code == 404

    def test_full_queue(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        services["dispatcher"].enqueue.return_value = None

        response = client.post(
            "/services/commentActions/defer",
            json={"data": [str(uuid4())]},
            headers=headers(UserGroup.GENERAL),
        )
        assert response.status_code == 503

    def test_machines_cannot_moderate(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        response = client.post(
            "/services/commentActions/approve",
            json={"data": [str(uuid4())]},
            headers=headers(UserGroup.MODERATOR),
        )
        assert response.status_code == 403

    def test_tag_unknown(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        services["scoring_service"].get_tag.side_effect = TagNotFoundError()

        response = client.post(
            f"/services/commentActions/tag/{uuid4()}",
            json={"data": [str(uuid4())]},
            headers=headers(UserGroup.GENERAL),
        )
        assert response.status_code == 404


class TestRuleAdmin:
    """Tests for /rest/moderation_rules."""

    def test_create(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        services["rule_service"].save_rule.side_effect = lambda rule: rule

        response = client.post(
            "/rest/moderation_rules",
            json={"action": "reject", "lowerThreshold": 0.8, "upperThreshold": 1.0},
            headers=headers(UserGroup.ADMIN),
        )

        assert response.status_code == 201
        assert response.json()["data"]["action"] == "reject"
        services["notifier_service"].publish_system.assert_awaited_once()

    def test_general_users_cannot_create(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        response = client.post(
            "/rest/moderation_rules",
            json={"action": "reject", "lowerThreshold": 0.8, "upperThreshold": 1.0},
            headers=headers(UserGroup.GENERAL),
        )
        assert response.status_code == 403

    def test_overlap_conflicts(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        services["rule_service"].save_rule.side_effect = RuleValidationError(
            "Range overlaps a rule with a different action", "rule_overlap"
        )

        response = client.post(
            "/rest/moderation_rules",
            json={"action": "approve", "lowerThreshold": 0.0, "upperThreshold": 0.9},
            headers=headers(UserGroup.ADMIN),
        )

        assert response.status_code == 409
        services["notifier_service"].publish_system.assert_not_awaited()

    def test_delete_missing(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        services["rule_service"].delete_rule.side_effect = RuleNotFoundError()

        response = client.delete(
            f"/rest/moderation_rules/{uuid4()}", headers=headers(UserGroup.ADMIN)
        )
        assert response.status_code == 404

    def test_list(
        self, client: TestClient, services: dict[str, Any], headers
    ) -> None:
        services["rule_service"].list_rules.return_value = []

        response = client.get(
            "/rest/moderation_rules", headers=headers(UserGroup.GENERAL)
        )
        assert response.status_code == 200
        assert response.json() == {"data": []}

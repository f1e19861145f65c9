"""Tests for AWS Lambda handler."""

import json
import uuid

import pytest

from lambda_handler import lambda_handler
from pricing_engine.visibility import WORKER_ERROR_MESSAGE


def call(method, path, body=None, role=None, params=None):
    event = {"httpMethod": method, "path": path}
    if body is not None:
        event["body"] = json.dumps(body)
    if role:
        event["headers"] = {"X-Viewer-Role": role}
    if params:
        event["queryStringParameters"] = params
    response = lambda_handler(event, None)
    return response["statusCode"], json.loads(response["body"]) if response["body"] else None


@pytest.fixture
def parties():
    """A fresh hierarchy in the shared warm processor."""
    suffix = uuid.uuid4().hex[:8]
    ids = {
        "sa": f"sa-{suffix}",
        "agent": f"agent-{suffix}",
        "client": f"client-{suffix}",
        "agent_client": f"agent-client-{suffix}",
        "sw": f"sw-{suffix}",
        "worker": f"worker-{suffix}",
    }
    for party_id, role, parent in [
        (ids["sa"], "super_agent", None),
        (ids["agent"], "agent", ids["sa"]),
        (ids["client"], "client", ids["sa"]),
        (ids["agent_client"], "client", ids["agent"]),
        (ids["sw"], "super_worker", None),
        (ids["worker"], "worker", ids["sw"]),
    ]:
        status, _ = call("POST", "/hierarchy/parties", {"party_id": party_id, "role": role, "parent_id": parent})
        assert status == 200
    return ids


def quote_body(requester_id, word_count=501):
    return {
        "word_count": word_count,
        "deadline": "2025-06-03T09:00:00Z",
        "requested_at": "2025-06-02T09:00:00Z",
        "requester_id": requester_id,
    }


class TestLambdaHandler:
    """Test the Lambda handler routes and responses."""

    def test_health_check(self):
        """GET /health returns healthy status."""
        status, body = call("GET", "/health")
        assert status == 200
        assert body["status"] == "healthy"

    def test_api_info(self):
        """GET /api returns API information."""
        status, body = call("GET", "/api")
        assert status == 200
        assert body["status"] == "ok"
        assert "quote" in body["endpoints"]

    def test_cors_preflight(self):
        """OPTIONS requests return CORS headers."""
        response = lambda_handler({"httpMethod": "OPTIONS", "path": "/quote"}, None)
        assert response["statusCode"] == 200
        assert "Access-Control-Allow-Origin" in response["headers"]
        assert "PUT" in response["headers"]["Access-Control-Allow-Methods"]

    def test_not_found(self):
        """Unknown paths return 404."""
        status, _ = call("GET", "/unknown")
        assert status == 404

    def test_http_api_format(self):
        """HTTP API (v2) events carry method and path elsewhere."""
        event = {"rawPath": "/health", "requestContext": {"http": {"method": "GET"}}}
        assert lambda_handler(event, None)["statusCode"] == 200


class TestQuoteRoute:

    def test_rush_quote_for_super_agent(self, parties):
        """POST /quote prices a direct client's rush job."""
        status, body = call("POST", "/quote", quote_body(parties["client"]), role="super_agent")

        assert status == 200
        assert body["calculations"]["total_price"]["value"] == 85.0
        assert body["formatted_breakdown"] == "£55.00 + £30.00 (rush) = £85.00"

    def test_client_view_by_default(self, parties):
        status, body = call("POST", "/quote", quote_body(parties["agent_client"], 1000))
        assert status == 200
        assert "agent_fee" not in body["calculations"]
        assert "base_price" not in body["calculations"]

    def test_inr_display_marked_when_no_rate_configured(self, parties, monkeypatch):
        import lambda_handler as handler_module

        monkeypatch.setattr(handler_module.processor.converter, "static_rate", None)
        status, body = call("POST", "/quote", quote_body(parties["client"]), role="super_agent")

        assert status == 200
        assert body["calculations"]["total_price_inr"]["exchange_rate"]["is_stale"] is True

    def test_worker_sees_no_amounts(self, parties):
        status, body = call("POST", "/quote", quote_body(parties["client"]), role="worker")
        assert status == 200
        assert body["calculations"] == {}
        assert "formatted_breakdown" not in body

    def test_validation_error(self, parties):
        status, body = call("POST", "/quote", {**quote_body(parties["client"]), "word_count": 0})
        assert status == 400
        assert body["status"] == "validation_failed"

    def test_worker_error_is_redacted(self, parties):
        status, body = call("POST", "/quote", {**quote_body(parties["client"]), "word_count": 0}, role="worker")
        assert status == 400
        assert body["error"] == WORKER_ERROR_MESSAGE

    def test_unresolvable_hierarchy(self, parties):
        orphan = f"orphan-{uuid.uuid4().hex[:8]}"
        call("POST", "/hierarchy/parties", {"party_id": orphan, "role": "client"})
        status, body = call("POST", "/quote", quote_body(orphan))
        assert status == 422
        assert body["status"] == "hierarchy_unresolved"

    def test_invalid_json(self):
        event = {"httpMethod": "POST", "path": "/quote", "body": "{not json"}
        response = lambda_handler(event, None)
        assert response["statusCode"] == 400

    def test_empty_body(self):
        status, body = call("POST", "/quote")
        assert status == 400
        assert body["error"] == "No input data provided"

    def test_base64_body(self, parties):
        import base64

        encoded = base64.b64encode(json.dumps(quote_body(parties["client"])).encode("utf-8")).decode("ascii")
        event = {
            "httpMethod": "POST",
            "path": "/quote",
            "body": encoded,
            "isBase64Encoded": True,
            "headers": {"x-viewer-role": "super_agent"},
        }
        response = lambda_handler(event, None)
        assert response["statusCode"] == 200
        assert json.loads(response["body"])["calculations"]["total_price"]["value"] == 85.0


class TestAssignmentRoutes:

    def test_full_lifecycle(self, parties):
        assignment_id = f"a-{uuid.uuid4().hex[:8]}"
        body = {**quote_body(parties["agent_client"], 1000), "assignment_id": assignment_id}
        status, created = call("POST", "/assignments", body, role="super_agent")
        assert status == 200
        assert created["version"] == 1

        base = f"/assignments/{assignment_id}"
        status, _ = call("POST", f"{base}/status", {"status": "awaiting_worker_assignment", "expected_version": 1})
        assert status == 200
        status, staffed = call("POST", f"{base}/worker", {"worker_id": parties["worker"], "expected_version": 2})
        assert staffed["status"] == "in_progress"
        call("POST", f"{base}/status", {"status": "pending_final_approval", "expected_version": 3})

        status, completed = call(
            "POST", f"{base}/status", {"status": "completed", "expected_version": 4, "exchange_rate": 105}
        )

        assert status == 200
        records = completed["settlement"]["records"]
        assert len(records) == 3
        assert round(sum(r["net_profit_gbp"] for r in records), 2) == 14.38

        status, again = call("POST", f"{base}/settle", {})
        assert again["already_settled"] is True

    def test_stale_version_conflict(self, parties):
        assignment_id = f"a-{uuid.uuid4().hex[:8]}"
        call("POST", "/assignments", {**quote_body(parties["client"]), "assignment_id": assignment_id})
        base = f"/assignments/{assignment_id}"
        call("POST", f"{base}/status", {"status": "awaiting_worker_assignment", "expected_version": 1})

        status, body = call("POST", f"{base}/status", {"status": "rejected_payment", "expected_version": 1})

        assert status == 409
        assert body["status"] == "conflict"

    def test_settle_unknown_assignment(self):
        status, body = call("POST", "/assignments/does-not-exist/settle", {})
        assert status == 404

    def test_agent_pricing(self, parties):
        status, body = call(
            "PUT",
            f"/agents/{parties['agent']}/pricing",
            {"min_words": 1, "max_words": 10000, "base_rate_per_500_words": 7.5, "agent_fee_percentage": 10},
        )
        assert status == 200
        assert body["warnings"] == []

    def test_invalid_agent_pricing(self, parties):
        status, body = call(
            "PUT",
            f"/agents/{parties['agent']}/pricing",
            {"min_words": 1, "max_words": 50000, "base_rate_per_500_words": 7.5, "agent_fee_percentage": 10},
        )
        assert status == 400

    @pytest.mark.parametrize("rate", ["NaN", "Infinity"])
    def test_non_finite_agent_pricing(self, parties, rate):
        status, body = call(
            "PUT",
            f"/agents/{parties['agent']}/pricing",
            {"min_words": 1, "max_words": 10000, "base_rate_per_500_words": rate, "agent_fee_percentage": 10},
        )
        assert status == 400
        assert body["status"] == "validation_failed"

    def test_pricing_history(self, parties):
        path = f"/agents/{parties['agent']}/pricing"
        for rate, reason in [(7.5, None), (8, "rate review")]:
            body = {"min_words": 1, "max_words": 10000, "base_rate_per_500_words": rate, "agent_fee_percentage": 10}
            call("PUT", path, {**body, "reason": reason})

        status, body = call("GET", f"{path}/history", params={"limit": "1"})

        assert status == 200
        assert body["total"] == 2
        assert body["history"][0]["version"] == 2
        assert body["history"][0]["reason"] == "rate review"

    def test_client_cannot_release_payment(self, parties):
        assignment_id = f"a-{uuid.uuid4().hex[:8]}"
        call("POST", "/assignments", {**quote_body(parties["client"]), "assignment_id": assignment_id})

        status, body = call(
            "POST",
            f"/assignments/{assignment_id}/status",
            {"status": "awaiting_worker_assignment", "expected_version": 1},
            role="client",
        )

        assert status == 403
        assert body["status"] == "forbidden"

    def test_quote_change_flow(self, parties):
        assignment_id = f"a-{uuid.uuid4().hex[:8]}"
        body = {**quote_body(parties["agent_client"], 1000), "assignment_id": assignment_id}
        body["deadline"] = "2025-06-12T09:00:00Z"
        call("POST", "/assignments", body)
        base = f"/assignments/{assignment_id}"
        call("POST", f"{base}/status", {"status": "awaiting_worker_assignment", "expected_version": 1})
        call("POST", f"{base}/worker", {"worker_id": parties["worker"], "expected_version": 2})

        status, pending = call("POST", f"{base}/quote-change", {"word_count": 2000, "expected_version": 3})
        assert status == 200
        assert pending["status"] == "pending_quote_approval"

        status, approved = call("POST", f"{base}/quote-change/approve", {"expected_version": 4})

        assert status == 200
        assert approved["status"] == "in_progress"
        assert approved["word_count"] == 2000
        assert approved["quote"]["calculations"]["total_price"]["value"] == 28.75

    def test_worker_cannot_approve_quote_change(self, parties):
        assignment_id = f"a-{uuid.uuid4().hex[:8]}"
        body = {**quote_body(parties["agent_client"], 1000), "assignment_id": assignment_id}
        body["deadline"] = "2025-06-12T09:00:00Z"
        call("POST", "/assignments", body)
        base = f"/assignments/{assignment_id}"
        call("POST", f"{base}/status", {"status": "awaiting_worker_assignment", "expected_version": 1})
        call("POST", f"{base}/worker", {"worker_id": parties["worker"], "expected_version": 2})
        call("POST", f"{base}/quote-change", {"word_count": 2000, "expected_version": 3})

        status, body = call("POST", f"{base}/quote-change/reject", {"expected_version": 4}, role="worker")

        assert status == 403
        assert body["error"] == WORKER_ERROR_MESSAGE


class TestAnalyticsRoute:

    def test_requires_supported_role(self, parties):
        status, body = call("GET", "/analytics", params={"user_id": parties["client"], "role": "client"})
        assert status == 403

    def test_empty_summary(self, parties):
        status, body = call("GET", "/analytics", params={"user_id": parties["sa"], "role": "super_agent"})
        assert status == 200
        assert body["record_count"] == 0

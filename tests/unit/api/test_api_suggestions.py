"""Unit tests for the suggestion submission router.

These tests use FastAPI's TestClient with mocked services so no database
is touched.
"""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from reentry_map.api.app import app
from reentry_map.api.dependencies import get_services
from reentry_map.errors import ValidationError
from reentry_map.models import ResourceCandidate

client = TestClient(app)

HEADERS = {"X-API-KEY": "dev-contributor-token"}


def make_mock_services():
    services = MagicMock()
    services.lifecycle.submit_candidate.return_value = "sugg-1"
    services.lifecycle.submit_batch.return_value = {
        "submitted": ["sugg-1"],
        "errors": [{"index": 1, "name": None, "error": "name is required"}],
    }
    services.suggestion_store.get.return_value = ResourceCandidate(
        id="sugg-1",
        name="Oak St Shelter",
        address="123 Oak St",
        discovery_notes="county guide",
    )
    return services


@pytest.fixture
def services():
    mock_services = make_mock_services()
    app.dependency_overrides[get_services] = lambda: mock_services
    yield mock_services
    app.dependency_overrides = {}


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_missing_and_invalid_api_keys(services):
    r = client.post("/suggestions/", json={"name": "Oak St Shelter"})
    assert r.status_code == 401

    r = client.post("/suggestions/", json={"name": "Oak St Shelter"}, headers={"X-API-KEY": "nope"})
    assert r.status_code == 403
    services.lifecycle.submit_candidate.assert_not_called()


def test_submit_defaults_submitter_to_caller(services):
    payload = {"name": "Oak St Shelter", "address": "123 Oak St", "discovery_notes": "county guide"}
    r = client.post("/suggestions/", json=payload, headers=HEADERS)

    assert r.status_code == 201
    assert r.json() == {"suggestion_id": "sugg-1", "status": "pending"}
    submitted = services.lifecycle.submit_candidate.call_args.args[0]
    assert submitted["submitted_by"] == "contributor_1"
    assert submitted["discovered_via"] == "manual"


def test_validation_errors_map_to_400(services):
    services.lifecycle.submit_candidate.side_effect = ValidationError("discovery_notes must describe how")

    r = client.post("/suggestions/", json={"name": "Oak St Shelter"}, headers=HEADERS)

    assert r.status_code == 400
    body = r.json()
    assert body["error"] == "validation_error"
    assert body["error_type"] == "ValidationError"
    assert "discovery_notes" in body["detail"]


def test_batch_submission_reports_per_item_errors(services):
    payload = {"suggestions": [{"name": "Oak St Shelter", "phone": "510-555-0199"}, {"phone": "510"}]}
    r = client.post("/suggestions/batch", json=payload, headers=HEADERS)

    assert r.status_code == 201
    body = r.json()
    assert body["count"] == 1
    assert body["errors"][0]["index"] == 1
    assert len(services.lifecycle.submit_batch.call_args.args[0]) == 2


def test_get_suggestion(services):
    r = client.get("/suggestions/sugg-1", headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["status"] == "pending"

    services.suggestion_store.get.return_value = None
    r = client.get("/suggestions/missing", headers=HEADERS)
    assert r.status_code == 404

"""Tests for the admin verification router against a temporary SQLite database."""

from datetime import datetime, timezone

import pytest
import sqlalchemy as sa
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from reentry_map.api.app import app
from reentry_map.api.dependencies import get_services
from reentry_map.models import ChangeLogEntry
from reentry_map.services.factories import build_verification_services
from reentry_map.services.geocoding import GeocodeResult
from reentry_map.services.url_probe import ProbeResult
from reentry_map.store import sql as sql_schema

client = TestClient(app)

ADMIN = {"X-API-KEY": "dev-admin-token"}
CONTRIBUTOR = {"X-API-KEY": "dev-contributor-token"}


class FakeGeocoder:
    name = "fake"

    def geocode(self, address_text):
        return GeocodeResult(
            latitude=37.8,
            longitude=-122.27,
            formatted_address=address_text,
            confidence=0.95,
            location_type="ROOFTOP",
        )


class FakeProber:
    def probe(self, url, timeout_seconds):
        if "dead-link" in url:
            return ProbeResult(reachable=False, error="ConnectError: name resolution failed")
        return ProbeResult(reachable=True, status_code=200, final_url=url)


@pytest.fixture
def services(tmp_path):
    engine = sa.create_engine(
        f"sqlite:///{tmp_path / 'admin.db'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    sql_schema.METADATA.create_all(engine)
    wired = build_verification_services(
        session_factory=sessionmaker(bind=engine, future=True),
        geocoder=FakeGeocoder(),
        url_prober=FakeProber(),
    )
    app.dependency_overrides[get_services] = lambda: wired
    yield wired
    app.dependency_overrides = {}
    engine.dispose()


def _submit(services, **overrides):
    values = {
        "name": "Oak St Shelter",
        "address": "123 Oak St",
        "city": "Oakland",
        "state": "CA",
        "phone": "(510) 555-0100",
        "website": "http://dead-link.example",
        "discovery_notes": "Listed in the county reentry guide",
    }
    values.update(overrides)
    return services.lifecycle.submit_candidate(values)


def test_admin_routes_require_admin_role(services):
    r = client.post("/admin/verification/process-queue", headers=CONTRIBUTOR)
    assert r.status_code == 403

    r = client.get("/admin/suggestions")
    assert r.status_code == 401


def test_process_queue_flags_and_lists_for_review(services):
    suggestion_id = _submit(services)

    r = client.post("/admin/verification/process-queue", json={"batch_size": 5}, headers=ADMIN)
    assert r.status_code == 200
    summary = r.json()
    assert summary["processed"] == 1
    assert summary["flagged"] == 1
    assert summary["errors"] == 0

    r = client.get("/admin/suggestions", headers=ADMIN)
    assert r.status_code == 200
    body = r.json()
    assert [item["id"] for item in body["items"]] == [suggestion_id]
    assert body["totals"] == {"needs_attention": 1}

    r = client.get(f"/admin/suggestions/{suggestion_id}/verification-logs", headers=ADMIN)
    assert r.status_code == 200
    history = r.json()
    assert len(history["logs"]) == 1
    assert history["actions"][0]["action"] == "flag_for_human"
    assert history["events"][-1]["event_type"] == "completed"


def test_process_queue_without_body_uses_default_batch(services):
    _submit(services)
    _submit(services, name="Elm House", address="9 Elm Ave")

    r = client.post("/admin/verification/process-queue", headers=ADMIN)

    assert r.status_code == 200
    assert r.json()["processed"] == 1


def test_verify_single_suggestion(services):
    suggestion_id = _submit(services, website="https://oakshelter.org")

    r = client.post(f"/admin/suggestions/{suggestion_id}/verify", headers=ADMIN)

    assert r.status_code == 200
    body = r.json()
    assert body["action"] == "approved"
    assert body["decision"]["decision"] == "auto_approve"
    assert body["resource_id"]

    r = client.post("/admin/suggestions/missing/verify", headers=ADMIN)
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"


def test_approve_with_corrections_requires_documented_source(services):
    suggestion_id = _submit(services)

    r = client.post(
        f"/admin/suggestions/{suggestion_id}/approve-with-corrections",
        json={"correction_notes": "looks fine"},
        headers=ADMIN,
    )
    assert r.status_code == 400

    r = client.post(
        f"/admin/suggestions/{suggestion_id}/approve-with-corrections",
        json={
            "correction_notes": "Confirmed via https://oakshelter.org/contact",
            "corrections": {"website": "https://oakshelter.org"},
        },
        headers=ADMIN,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "approved"
    resource = services.resource_store.get(body["resource_id"])
    assert resource.website == "https://oakshelter.org"
    assert resource.verified_by == "admin"

    r = client.post(
        f"/admin/suggestions/{suggestion_id}/approve-with-corrections",
        json={"correction_notes": "Confirmed via https://oakshelter.org/contact"},
        headers=ADMIN,
    )
    assert r.status_code == 400
    assert r.json()["error_type"] == "InvalidTransition"


def test_reject_routes_reason_to_status(services):
    spam_id = _submit(services, name="Spam Shelter")
    renamed_id = _submit(services, name="Renamed Shelter")

    r = client.post(f"/admin/suggestions/{spam_id}/reject", json={"reason": "spam"}, headers=ADMIN)
    assert r.json() == {"suggestion_id": spam_id, "status": "rejected"}

    r = client.post(
        f"/admin/suggestions/{renamed_id}/reject",
        json={"reason": "wrong_name", "notes": "Now called Elm House"},
        headers=ADMIN,
    )
    assert r.json()["status"] == "needs_attention"

    r = client.post(f"/admin/suggestions/{renamed_id}/reject", json={"reason": "bogus"}, headers=ADMIN)
    assert r.status_code == 400
    assert r.json()["error_type"] == "InvalidReason"


def test_check_duplicate_dry_run(services):
    services.resource_store.create(
        {"name": "Oak St Shelter", "address": "123 Oak St", "city": "Oakland", "state": "CA"},
        entry=ChangeLogEntry(timestamp=datetime.now(timezone.utc), actor="tester", source="unit", action="created"),
    )

    r = client.post(
        "/admin/resources/check-duplicate",
        json={"name": "oak st. shelter", "address": "123 Oak Street", "city": "Oakland", "state": "CA"},
        headers=ADMIN,
    )

    assert r.status_code == 200
    body = r.json()
    assert body["suggested_action"] == "skip"
    assert body["existing_resource"]["name"] == "Oak St Shelter"


def test_reverify_and_deactivate_resource(services):
    suggestion_id = _submit(services, website="https://oakshelter.org")
    resource_id = services.queue.process_candidate(suggestion_id).resource_id

    r = client.post(f"/admin/resources/{resource_id}/reverify", headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["decision"] == "auto_approve"

    r = client.post(
        f"/admin/resources/{resource_id}/deactivate",
        json={"reason": "Closed per county notice", "closure_status": "permanent"},
        headers=ADMIN,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "inactive"

    r = client.post(f"/admin/resources/{resource_id}/deactivate", json={"reason": "again"}, headers=ADMIN)
    assert r.status_code == 400

    r = client.post("/admin/resources/missing/reverify", headers=ADMIN)
    assert r.status_code == 404

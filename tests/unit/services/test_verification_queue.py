"""Integration-style tests for the verification runner and queue.

The pipeline is wired with ``build_verification_services`` against a
temporary SQLite database and in-memory geocoder/URL prober fakes.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
import sqlalchemy as sa
from sqlalchemy.orm import sessionmaker

from reentry_map.errors import ResourceNotFound, SuggestionNotFound
from reentry_map.models import ChangeLogEntry, Decision, SuggestionStatus
from reentry_map.services.content_check import ContentVerification
from reentry_map.services.factories import build_verification_services
from reentry_map.services.geocoding import GeocodeResult
from reentry_map.services.queue import VerificationQueue
from reentry_map.services.url_probe import ProbeResult


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
    def __init__(self, unreachable=()):
        self.unreachable = set(unreachable)

    def probe(self, url, timeout_seconds):
        if url in self.unreachable:
            return ProbeResult(reachable=False, error="ConnectError: name resolution failed")
        return ProbeResult(reachable=True, status_code=200, final_url=url)


@pytest.fixture
def services(tmp_path):
    engine = sa.create_engine(f"sqlite:///{tmp_path / 'queue.db'}", future=True)
    from reentry_map.store import sql as sql_schema

    sql_schema.METADATA.create_all(engine)
    factory = sessionmaker(bind=engine, future=True)
    wired = build_verification_services(
        session_factory=factory,
        geocoder=FakeGeocoder(),
        url_prober=FakeProber(unreachable={"http://dead-link.example"}),
    )
    yield wired
    engine.dispose()


def _submit(services, **overrides):
    values = {
        "name": "Good Shelter",
        "address": "1 Main St",
        "city": "Oakland",
        "state": "CA",
        "phone": "(510) 555-0142",
        "website": "https://goodshelter.org",
        "discovery_notes": "Found on the county reentry resource page",
    }
    values.update(overrides)
    return services.lifecycle.submit_candidate(values)


def _existing(services, **values):
    entry = ChangeLogEntry(timestamp=datetime.now(timezone.utc), actor="tester", source="unit", action="created")
    return services.resource_store.create(values, entry=entry)


def _event_types(services, suggestion_id):
    return [row["event_type"] for row in services.log_store.list_events(suggestion_id=suggestion_id)]


def test_unreachable_website_is_flagged_for_review(services):
    suggestion_id = _submit(
        services,
        name="Oak St Shelter",
        address="123 Oak St",
        phone="(510) 555-0100",
        website="http://dead-link.example",
    )

    summary = services.queue.process_queue(batch_size=10)

    assert summary.processed == 1
    assert summary.flagged == 1
    assert summary.total_cost_usd == pytest.approx(0.005)
    suggestion = services.suggestion_store.get(suggestion_id)
    assert suggestion.status is SuggestionStatus.NEEDS_ATTENTION
    assert "url_reachable" in suggestion.review_notes
    logs = services.log_store.list_verifications(suggestion_id=suggestion_id)
    assert len(logs) == 1
    assert logs[0]["decision"] == Decision.FLAG_FOR_HUMAN.value
    assert logs[0]["overall_score"] == pytest.approx(0.68)
    events = _event_types(services, suggestion_id)
    assert events[0] == "started"
    assert "cost" in events
    assert events[-1] == "completed"


def test_batch_continues_past_a_failing_suggestion(services, monkeypatch):
    _existing(services, name="Elm House", address="9 Elm Ave", city="Oakland", state="CA")
    approved_id = _submit(services)
    duplicate_id = _submit(services, name="Elm House", address="9 Elm Avenue", website=None)
    broken_id = _submit(services, name="Broken Shelter", address="5 Pine St")

    original = services.detector.check_for_duplicate

    def flaky(candidate, **kwargs):
        if candidate.name == "Broken Shelter":
            raise RuntimeError("resource index offline")
        return original(candidate, **kwargs)

    monkeypatch.setattr(services.detector, "check_for_duplicate", flaky)

    summary = services.queue.process_queue(batch_size=10)

    assert (summary.processed, summary.approved, summary.duplicates, summary.errors) == (3, 1, 1, 1)
    assert summary.failures[0].suggestion_id == broken_id
    assert summary.failures[0].error == "resource index offline"
    assert services.suggestion_store.get(approved_id).status is SuggestionStatus.APPROVED
    assert services.suggestion_store.get(duplicate_id).rejection_reason == "duplicate"
    assert services.suggestion_store.get(broken_id).status is SuggestionStatus.PENDING
    assert _event_types(services, broken_id)[-1] == "failed"


def test_near_duplicate_is_merged_into_existing_resource(services):
    existing = _existing(services, name="Good Shelter", address="1 Main St", city="Oakland", state="CA")
    suggestion_id = _submit(services, name="The Good Shelters", email="intake@goodshelter.org")

    outcome = services.queue.process_candidate(suggestion_id)

    assert outcome.action == "merged"
    assert outcome.resource_id == existing.id
    merged = services.resource_store.get(existing.id)
    assert merged.email == "intake@goodshelter.org"
    assert [entry.action for entry in merged.change_log] == ["created", "merged_suggestion"]


def test_sibling_location_becomes_a_new_child_resource(services):
    existing = _existing(
        services,
        name="Community Center - Eastside",
        address="100 East St",
        city="Oakland",
        state="CA",
        phone="(510) 555-0142",
    )
    suggestion_id = _submit(services, name="Community Center - Westside", address="200 West St")

    outcome = services.queue.process_candidate(suggestion_id)

    assert outcome.action == "approved"
    assert outcome.duplicate.match_type == "sibling_location"
    child = services.resource_store.get(outcome.resource_id)
    assert child.parent_resource_id is not None
    assert services.resource_store.get(existing.id).parent_resource_id == child.parent_resource_id


def test_approval_without_a_street_address_is_flagged(services):
    suggestion_id = _submit(services, name="Reentry Hotline", address=None)

    outcome = services.queue.process_candidate(suggestion_id)

    assert outcome.action == "flagged"
    suggestion = services.suggestion_store.get(suggestion_id)
    assert suggestion.status is SuggestionStatus.NEEDS_ATTENTION
    assert suggestion.rejection_reason == "missing_details"


def test_unknown_ids_raise(services):
    with pytest.raises(SuggestionNotFound):
        services.queue.process_candidate("missing")
    with pytest.raises(ResourceNotFound):
        services.queue.reverify_resource("missing")


def test_reverify_records_periodic_outcome(services):
    suggestion_id = _submit(services)
    resource_id = services.queue.process_candidate(suggestion_id).resource_id

    decision = services.queue.reverify_resource(resource_id)

    assert decision.decision is Decision.AUTO_APPROVE
    resource = services.resource_store.get(resource_id)
    assert resource.change_log[-1].action == "reverified"
    periodic = services.log_store.list_verifications(resource_id=resource_id)
    assert [row["verification_type"] for row in periodic] == ["periodic"]


def test_batch_size_is_clamped(services):
    queue = VerificationQueue(
        suggestion_store=services.suggestion_store,
        resource_store=services.resource_store,
        runner=None,
        default_batch_size=5,
        max_batch_size=50,
    )

    assert queue.clamp_batch_size(None) == 5
    assert queue.clamp_batch_size(0) == 1
    assert queue.clamp_batch_size(500) == 50


@pytest.mark.parametrize(
    ("first_state", "second_state"),
    [(None, "CA"), ("CA", "California"), ("CA", "CA")],
)
def test_resubmitting_a_published_resource_is_skipped(services, first_state, second_state):
    first_id = _submit(services, state=first_state)
    first = services.queue.process_queue(batch_size=10)
    assert first.approved == 1
    resource_id = services.suggestion_store.get(first_id).resource_id

    second_id = _submit(services, state=second_state)
    assert second_id != first_id
    second = services.queue.process_queue(batch_size=10)

    assert (second.processed, second.duplicates, second.approved) == (1, 1, 0)
    resubmitted = services.suggestion_store.get(second_id)
    assert resubmitted.rejection_reason == "duplicate"
    assert resubmitted.resource_id == resource_id
    assert [resource.id for resource in services.resource_store.list_active()] == [resource_id]
    assert services.log_store.list_verifications(suggestion_id=second_id) == []


class FakeContentVerifier:
    name = "fake-model"

    def verify(self, candidate):
        return ContentVerification(
            passed=True,
            confidence=0.9,
            evidence="Page matches",
            input_tokens=1500,
            output_tokens=60,
        )


def test_content_check_tokens_are_recorded_as_usage(tmp_path):
    engine = sa.create_engine(f"sqlite:///{tmp_path / 'usage.db'}", future=True)
    from reentry_map.store import sql as sql_schema

    sql_schema.METADATA.create_all(engine)
    wired = build_verification_services(
        session_factory=sessionmaker(bind=engine, future=True),
        geocoder=FakeGeocoder(),
        url_prober=FakeProber(),
        content_verifier=FakeContentVerifier(),
    )
    suggestion_id = _submit(wired)

    outcome = wired.queue.process_candidate(suggestion_id)

    assert outcome.action == "approved"
    assert "website_content_matches" in outcome.decision.checks
    usage = sql_schema.api_usage_logs
    with engine.connect() as connection:
        rows = connection.execute(
            sa.select(usage.c.operation, usage.c.provider, usage.c.input_tokens, usage.c.output_tokens)
            .where(usage.c.suggestion_id == suggestion_id)
            .order_by(usage.c.operation)
        ).all()
    assert [tuple(row) for row in rows] == [
        ("address_geocodable", "fake", 0, 0),
        ("website_content_matches", "fake-model", 1500, 60),
    ]
    engine.dispose()

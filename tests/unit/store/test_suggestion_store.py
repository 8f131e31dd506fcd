"""Unit tests for the SQL-backed SuggestionStore."""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import sessionmaker

from reentry_map.models import CandidateSubmission, SuggestionStatus
from reentry_map.store import sql as sql_schema
from reentry_map.store.suggestion_store import SuggestionStore


def _build_store(tmp_path):
    engine = sa.create_engine(f"sqlite:///{tmp_path / 'suggestions.db'}", future=True)
    sql_schema.METADATA.create_all(engine)
    factory = sessionmaker(bind=engine, future=True)
    return SuggestionStore(session_factory=factory), engine


def _submission(name: str = "Oak St Shelter", address: str | None = "123 Oak St") -> CandidateSubmission:
    return CandidateSubmission(
        name=name,
        address=address,
        city="Oakland",
        state="CA",
        phone="(510) 555-0199",
        services_offered=["shelter", "meals"],
        discovery_notes="Found on https://oakshelter.org",
    )


def test_create_and_get_round_trips_fields(tmp_path):
    store, engine = _build_store(tmp_path)
    try:
        suggestion_id = store.create(_submission())
        candidate = store.get(suggestion_id)

        assert candidate is not None
        assert candidate.status is SuggestionStatus.PENDING
        assert candidate.services_offered == ["shelter", "meals"]
        assert candidate.discovery_notes == "Found on https://oakshelter.org"
        assert candidate.created_at is not None
        assert store.get("missing") is None
    finally:
        engine.dispose()


def test_list_pending_is_oldest_first(tmp_path):
    store, engine = _build_store(tmp_path)
    try:
        first = store.create(_submission("First"))
        second = store.create(_submission("Second"))
        third = store.create(_submission("Third"))

        assert [item.id for item in store.list_pending(limit=2)] == [first, second]
        assert [item.id for item in store.list_pending(limit=10)] == [first, second, third]
    finally:
        engine.dispose()


def test_transition_is_compare_and_set(tmp_path):
    store, engine = _build_store(tmp_path)
    try:
        suggestion_id = store.create(_submission())

        assert store.transition(
            suggestion_id,
            from_statuses=[SuggestionStatus.PENDING],
            to_status=SuggestionStatus.APPROVED,
            resource_id="resource-1",
        )
        # A second writer expecting ``pending`` loses the race.
        assert not store.transition(
            suggestion_id,
            from_statuses=[SuggestionStatus.PENDING],
            to_status=SuggestionStatus.APPROVED,
            resource_id="resource-2",
        )

        candidate = store.get(suggestion_id)
        assert candidate.status is SuggestionStatus.APPROVED
        assert candidate.resource_id == "resource-1"
        assert store.count_by_status() == {"approved": 1}
    finally:
        engine.dispose()


def test_find_pending_duplicate_matches_name_and_address_case_insensitively(tmp_path):
    store, engine = _build_store(tmp_path)
    try:
        suggestion_id = store.create(_submission())

        assert store.find_pending_duplicate(name="OAK ST SHELTER", address="123 oak st") == suggestion_id
        assert store.find_pending_duplicate(name="Oak St Shelter", address="9 Elm St") is None

        store.transition(suggestion_id, from_statuses=["pending"], to_status="rejected")
        assert store.find_pending_duplicate(name="Oak St Shelter", address="123 Oak St") is None
    finally:
        engine.dispose()


def test_list_open_by_name_prefix_includes_flagged(tmp_path):
    store, engine = _build_store(tmp_path)
    try:
        east = store.create(_submission("Community Center - Eastside", "1 East Ave"))
        west = store.create(_submission("Community Center - Westside", "2 West Ave"))
        store.create(_submission("Unrelated Clinic", "3 Elm St"))
        store.transition(west, from_statuses=["pending"], to_status="needs_attention")

        found = {item.id for item in store.list_open_by_name_prefix("community center")}
        assert found == {east, west}
    finally:
        engine.dispose()

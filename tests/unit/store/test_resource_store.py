"""Unit tests for the SQL-backed ResourceStore and its append-only change log."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import sessionmaker

from reentry_map.errors import PersistenceConflict, ResourceNotFound
from reentry_map.models import ChangeLogEntry
from reentry_map.store import sql as sql_schema
from reentry_map.store.resource_store import ResourceStore, _change_log_for_update


def _build_store(tmp_path):
    engine = sa.create_engine(f"sqlite:///{tmp_path / 'resources.db'}", future=True)
    sql_schema.METADATA.create_all(engine)
    factory = sessionmaker(bind=engine, future=True)
    return ResourceStore(session_factory=factory), engine


def _entry(action: str, **kwargs) -> ChangeLogEntry:
    return ChangeLogEntry(timestamp=datetime.now(timezone.utc), actor="tester", source="unit", action=action, **kwargs)


def _values(name: str = "Oak St Shelter", **overrides):
    values = {
        "name": name,
        "address": "123 Oak St",
        "city": "Oakland",
        "state": "CA",
        "latitude": 37.8,
        "longitude": -122.27,
        "services_offered": ["shelter"],
    }
    values.update(overrides)
    return values


def test_update_appends_entries_without_rewriting_history(tmp_path):
    store, engine = _build_store(tmp_path)
    try:
        resource = store.create(_values(), entry=_entry("created", after={"name": "Oak St Shelter"}))
        original = resource.change_log[0].model_dump(mode="json")

        updated = store.update(
            resource.id,
            {"phone": "(510) 555-0199"},
            entry=_entry("updated", before={"phone": None}, after={"phone": "(510) 555-0199"}),
        )

        assert updated.phone == "(510) 555-0199"
        assert [entry.action for entry in updated.change_log] == ["created", "updated"]
        assert updated.change_log[0].model_dump(mode="json") == original
    finally:
        engine.dispose()


def test_change_log_read_locks_the_row_on_postgres():
    statement = _change_log_for_update("res-1")

    compiled = str(statement.compile(dialect=postgresql.dialect()))

    assert "FOR UPDATE" in compiled
    assert "resources.id" in compiled


def test_updates_from_separate_stores_keep_every_entry(tmp_path):
    store, engine = _build_store(tmp_path)
    try:
        other = ResourceStore(session_factory=sessionmaker(bind=engine, future=True))
        resource = store.create(_values(), entry=_entry("created"))

        store.update(resource.id, {"email": "intake@oakshelter.org"}, entry=_entry("merged_suggestion"))
        other.update(resource.id, {"parent_resource_id": "parent-1"}, entry=_entry("linked_to_parent"))

        final = store.get(resource.id)
        assert [entry.action for entry in final.change_log] == ["created", "merged_suggestion", "linked_to_parent"]
        assert final.email == "intake@oakshelter.org"
        assert final.parent_resource_id == "parent-1"
    finally:
        engine.dispose()


def test_one_resource_per_suggestion(tmp_path):
    store, engine = _build_store(tmp_path)
    try:
        store.create(_values(suggestion_id="s-1"), entry=_entry("created"))
        with pytest.raises(PersistenceConflict):
            store.create(_values("Copy", suggestion_id="s-1"), entry=_entry("created"))
    finally:
        engine.dispose()


def test_update_missing_resource_raises(tmp_path):
    store, engine = _build_store(tmp_path)
    try:
        with pytest.raises(ResourceNotFound):
            store.update("missing", {"phone": "x"}, entry=_entry("updated"))
    finally:
        engine.dispose()


def test_list_active_excludes_parents_and_inactive(tmp_path):
    store, engine = _build_store(tmp_path)
    try:
        active = store.create(_values("Active Clinic"), entry=_entry("created"))
        store.create(_values("Closed Clinic", status="inactive"), entry=_entry("created"))
        parent = store.create(_values("Clinic Group", is_parent=True, org_name="Clinic Group"), entry=_entry("created"))

        assert [item.id for item in store.list_active(state="ca")] == [active.id]
        assert {item.id for item in store.list_active(include_parents=True)} == {active.id, parent.id}
        assert store.find_parent("clinic group").id == parent.id
        assert store.list_active(city="Berkeley") == []
    finally:
        engine.dispose()


def test_list_due_for_verification(tmp_path):
    store, engine = _build_store(tmp_path)
    now = datetime.now(timezone.utc)
    try:
        due = store.create(_values("Due", next_verification_at=now - timedelta(days=1)), entry=_entry("created"))
        store.create(_values("Later", next_verification_at=now + timedelta(days=10)), entry=_entry("created"))

        assert [item.id for item in store.list_due_for_verification(now=now)] == [due.id]
    finally:
        engine.dispose()

"""Persistence helpers for published resources and their change log."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from reentry_map.errors import PersistenceConflict, ResourceNotFound
from reentry_map.models import ChangeLogEntry, Resource, ResourceStatus
from reentry_map.store import sql as sql_schema
from reentry_map.store.sql import session_factory as default_session_factory

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_resource(row: Any) -> Resource:
    data = dict(row._mapping)
    data["services_offered"] = data.get("services_offered") or []
    data["change_log"] = data.get("change_log") or []
    return Resource.model_validate(data)


def _serialise_entry(entry: ChangeLogEntry) -> Dict[str, Any]:
    return entry.model_dump(mode="json")


def _change_log_for_update(resource_id: str) -> sa.Select:
    """Select a resource's change log, locking the row until the transaction ends.

    Backends without row locks (SQLite) serialize writers on the database file instead.
    """

    table = sql_schema.resources
    return sa.select(table.c.change_log).where(table.c.id == resource_id).with_for_update()


class ResourceStore:
    """CRUD helpers around the ``resources`` table.

    Every write carries a :class:`ChangeLogEntry` that is appended to the
    row's ``change_log``; existing entries are never rewritten.
    """

    def __init__(self, *, session_factory: sessionmaker | None = None) -> None:
        self._session_factory = session_factory or default_session_factory()

    @contextmanager
    def _session_scope(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create(
        self,
        values: Dict[str, Any],
        *,
        entry: ChangeLogEntry,
        resource_id: Optional[str] = None,
    ) -> Resource:
        """Insert a resource whose change log starts with ``entry``.

        Raises:
            PersistenceConflict: If a resource already exists for the same suggestion.
        """

        resource_id = resource_id or str(uuid.uuid4())
        timestamp = _utcnow()
        payload = dict(values)
        payload.pop("change_log", None)
        try:
            with self._session_scope() as session:
                session.execute(
                    sa.insert(sql_schema.resources).values(
                        id=resource_id,
                        **payload,
                        change_log=[_serialise_entry(entry)],
                        created_at=timestamp,
                        updated_at=timestamp,
                    )
                )
        except IntegrityError as exc:
            raise PersistenceConflict(
                f"Resource already exists for suggestion {payload.get('suggestion_id')}"
            ) from exc
        LOGGER.info(
            "Created resource resource_id=%s suggestion_id=%s action=%s",
            resource_id,
            payload.get("suggestion_id"),
            entry.action,
        )
        resource = self.get(resource_id)
        if resource is None:  # pragma: no cover - row was just inserted
            raise ResourceNotFound(resource_id)
        return resource

    def get(self, resource_id: str) -> Optional[Resource]:
        with self._session_scope() as session:
            row = session.execute(
                sa.select(sql_schema.resources).where(sql_schema.resources.c.id == resource_id)
            ).first()
        return _row_to_resource(row) if row else None

    def get_by_suggestion(self, suggestion_id: str) -> Optional[Resource]:
        with self._session_scope() as session:
            row = session.execute(
                sa.select(sql_schema.resources).where(sql_schema.resources.c.suggestion_id == suggestion_id)
            ).first()
        return _row_to_resource(row) if row else None

    def list_active(
        self,
        *,
        city: Optional[str] = None,
        state: Optional[str] = None,
        name_prefix: Optional[str] = None,
        include_parents: bool = False,
    ) -> List[Resource]:
        """Return active resources, optionally narrowed by city, state or name prefix."""

        table = sql_schema.resources
        conditions = [table.c.status == ResourceStatus.ACTIVE.value]
        if not include_parents:
            conditions.append(table.c.is_parent.is_(False))
        if city:
            conditions.append(sa.func.lower(table.c.city) == city.strip().lower())
        if state:
            conditions.append(sa.func.lower(table.c.state) == state.strip().lower())
        if name_prefix:
            conditions.append(sa.func.lower(table.c.name).startswith(name_prefix.strip().lower(), autoescape=True))
        with self._session_scope() as session:
            rows = session.execute(sa.select(table).where(*conditions).order_by(table.c.created_at.asc())).fetchall()
        return [_row_to_resource(row) for row in rows]

    def list_children(self, parent_id: str) -> List[Resource]:
        table = sql_schema.resources
        with self._session_scope() as session:
            rows = session.execute(
                sa.select(table).where(table.c.parent_resource_id == parent_id).order_by(table.c.created_at.asc())
            ).fetchall()
        return [_row_to_resource(row) for row in rows]

    def find_parent(self, org_name: str) -> Optional[Resource]:
        """Return the active parent aggregate row for ``org_name``, if one exists."""

        table = sql_schema.resources
        with self._session_scope() as session:
            row = session.execute(
                sa.select(table)
                .where(
                    table.c.is_parent.is_(True),
                    table.c.status == ResourceStatus.ACTIVE.value,
                    sa.func.lower(table.c.org_name) == org_name.strip().lower(),
                )
                .order_by(table.c.created_at.asc())
                .limit(1)
            ).first()
        return _row_to_resource(row) if row else None

    def list_due_for_verification(self, *, now: Optional[datetime] = None, limit: int = 25) -> List[Resource]:
        table = sql_schema.resources
        cutoff = now or _utcnow()
        with self._session_scope() as session:
            rows = session.execute(
                sa.select(table)
                .where(
                    table.c.status == ResourceStatus.ACTIVE.value,
                    table.c.is_parent.is_(False),
                    table.c.next_verification_at.is_not(None),
                    table.c.next_verification_at <= cutoff,
                )
                .order_by(table.c.next_verification_at.asc())
                .limit(limit)
            ).fetchall()
        return [_row_to_resource(row) for row in rows]

    def update(self, resource_id: str, changes: Dict[str, Any], *, entry: ChangeLogEntry) -> Resource:
        """Apply ``changes`` and append ``entry`` to the change log in one transaction.

        The row stays locked between reading and rewriting the log, so
        concurrent updates each keep their entry.
        """

        table = sql_schema.resources
        payload = dict(changes)
        payload.pop("change_log", None)
        payload.pop("id", None)
        with self._session_scope() as session:
            row = session.execute(_change_log_for_update(resource_id)).first()
            if row is None:
                raise ResourceNotFound(resource_id)
            change_log = list(row.change_log or [])
            change_log.append(_serialise_entry(entry))
            session.execute(
                sa.update(table)
                .where(table.c.id == resource_id)
                .values(**payload, change_log=change_log, updated_at=_utcnow())
            )
        LOGGER.info(
            "Updated resource resource_id=%s action=%s fields=%s",
            resource_id,
            entry.action,
            ",".join(sorted(payload)),
        )
        resource = self.get(resource_id)
        if resource is None:  # pragma: no cover - row existed inside the transaction
            raise ResourceNotFound(resource_id)
        return resource


__all__ = ["ResourceStore"]

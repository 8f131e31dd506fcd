"""Persistence helpers for resource suggestions (the verification queue)."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Session, sessionmaker

from reentry_map.models import CandidateSubmission, ResourceCandidate, SuggestionStatus
from reentry_map.store import sql as sql_schema
from reentry_map.store.sql import session_factory as default_session_factory

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _status_value(status: SuggestionStatus | str) -> str:
    return status.value if isinstance(status, SuggestionStatus) else str(status)


def _row_to_candidate(row: Any) -> ResourceCandidate:
    data = dict(row._mapping)
    data["services_offered"] = data.get("services_offered") or []
    return ResourceCandidate.model_validate(data)


class SuggestionStore:
    """CRUD helpers around the ``resource_suggestions`` table.

    Status changes go through :meth:`transition`, a compare-and-set update
    that only succeeds while the row is still in one of the expected states.
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

    def create(self, submission: CandidateSubmission) -> str:
        """Insert a new pending suggestion and return its id."""

        suggestion_id = str(uuid.uuid4())
        timestamp = _utcnow()
        values = submission.model_dump(mode="json")
        with self._session_scope() as session:
            session.execute(
                sa.insert(sql_schema.resource_suggestions).values(
                    id=suggestion_id,
                    **values,
                    status=SuggestionStatus.PENDING.value,
                    created_at=timestamp,
                    updated_at=timestamp,
                )
            )
        LOGGER.info("Queued suggestion suggestion_id=%s name=%s", suggestion_id, submission.name)
        return suggestion_id

    def get(self, suggestion_id: str) -> Optional[ResourceCandidate]:
        with self._session_scope() as session:
            row = session.execute(
                sa.select(sql_schema.resource_suggestions).where(
                    sql_schema.resource_suggestions.c.id == suggestion_id
                )
            ).first()
        return _row_to_candidate(row) if row else None

    def list_by_status(
        self,
        status: SuggestionStatus | str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> List[ResourceCandidate]:
        """Return suggestions in ``status``, oldest first."""

        table = sql_schema.resource_suggestions
        with self._session_scope() as session:
            rows = session.execute(
                sa.select(table)
                .where(table.c.status == _status_value(status))
                .order_by(table.c.created_at.asc(), table.c.id.asc())
                .limit(limit)
                .offset(offset)
            ).fetchall()
        return [_row_to_candidate(row) for row in rows]

    def list_pending(self, *, limit: int) -> List[ResourceCandidate]:
        return self.list_by_status(SuggestionStatus.PENDING, limit=limit)

    def list_open_by_name_prefix(self, prefix: str, *, limit: int = 200) -> List[ResourceCandidate]:
        """Return pending or flagged suggestions whose name starts with ``prefix``."""

        table = sql_schema.resource_suggestions
        open_statuses = [SuggestionStatus.PENDING.value, SuggestionStatus.NEEDS_ATTENTION.value]
        with self._session_scope() as session:
            rows = session.execute(
                sa.select(table)
                .where(
                    table.c.status.in_(open_statuses),
                    sa.func.lower(table.c.name).startswith(prefix.strip().lower(), autoescape=True),
                )
                .order_by(table.c.created_at.asc())
                .limit(limit)
            ).fetchall()
        return [_row_to_candidate(row) for row in rows]

    def find_pending_duplicate(self, *, name: str, address: Optional[str]) -> Optional[str]:
        """Return the id of a pending suggestion with the same name and address, if any."""

        table = sql_schema.resource_suggestions
        conditions = [
            table.c.status == SuggestionStatus.PENDING.value,
            sa.func.lower(table.c.name) == name.strip().lower(),
        ]
        if address:
            conditions.append(sa.func.lower(table.c.address) == address.strip().lower())
        else:
            conditions.append(table.c.address.is_(None))
        with self._session_scope() as session:
            row = session.execute(
                sa.select(table.c.id).where(*conditions).order_by(table.c.created_at.asc()).limit(1)
            ).first()
        return row.id if row else None

    def transition(
        self,
        suggestion_id: str,
        *,
        from_statuses: Iterable[SuggestionStatus | str],
        to_status: SuggestionStatus | str,
        **fields: Any,
    ) -> bool:
        """Move a suggestion to ``to_status`` if it is still in ``from_statuses``.

        Returns:
            ``True`` when this call performed the update, ``False`` when the row
            was missing or another writer changed its status first.
        """

        table = sql_schema.resource_suggestions
        expected = [_status_value(status) for status in from_statuses]
        with self._session_scope() as session:
            result = session.execute(
                sa.update(table)
                .where(table.c.id == suggestion_id, table.c.status.in_(expected))
                .values(status=_status_value(to_status), updated_at=_utcnow(), **fields)
            )
            updated = result.rowcount == 1
        if updated:
            LOGGER.info(
                "Suggestion transition suggestion_id=%s from=%s to=%s",
                suggestion_id,
                ",".join(expected),
                _status_value(to_status),
            )
        return updated

    def count_by_status(self) -> Dict[str, int]:
        table = sql_schema.resource_suggestions
        with self._session_scope() as session:
            rows = session.execute(
                sa.select(table.c.status, sa.func.count()).group_by(table.c.status)
            ).fetchall()
        return {row[0]: int(row[1]) for row in rows}


__all__ = ["SuggestionStore"]

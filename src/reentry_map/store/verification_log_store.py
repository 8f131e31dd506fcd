"""Append-only audit tables: verification runs, progress events, review actions and API usage."""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

import sqlalchemy as sa
from sqlalchemy.orm import Session, sessionmaker

from reentry_map.models import Decision, EventType, VerificationDecision, VerificationType
from reentry_map.store import sql as sql_schema
from reentry_map.store.sql import session_factory as default_session_factory

LOGGER = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationLogStore:
    """Insert-only helpers for the verification audit trail.

    Rows written here are never updated; a human review of a flagged
    suggestion is recorded as a new ``review_actions`` row instead.
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

    # ------------------------------------------------------------------
    # Verification runs
    # ------------------------------------------------------------------
    def record_verification(
        self,
        *,
        decision: VerificationDecision,
        verification_type: VerificationType,
        agent_version: str,
        started_at: datetime,
        completed_at: datetime,
        suggestion_id: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> str:
        """Persist one immutable verification log row and return its id."""

        log_id = str(uuid.uuid4())
        checks = {name: check.model_dump(mode="json") for name, check in decision.checks.items()}
        duration_ms = int((completed_at - started_at).total_seconds() * 1000)
        with self._session_scope() as session:
            session.execute(
                sa.insert(sql_schema.verification_logs).values(
                    log_id=log_id,
                    suggestion_id=suggestion_id,
                    resource_id=resource_id,
                    verification_type=verification_type.value,
                    agent_version=agent_version,
                    overall_score=decision.overall_score,
                    checks_performed=checks,
                    decision=decision.decision.value,
                    decision_reason=decision.reason,
                    auto_approved=decision.decision is Decision.AUTO_APPROVE,
                    started_at=started_at,
                    completed_at=completed_at,
                    duration_ms=duration_ms,
                    api_calls_made=len(decision.checks),
                    estimated_cost_usd=decision.total_cost_usd,
                    created_at=_utcnow(),
                )
            )
        LOGGER.info(
            "Recorded verification log_id=%s suggestion_id=%s resource_id=%s decision=%s score=%.3f",
            log_id,
            suggestion_id,
            resource_id,
            decision.decision.value,
            decision.overall_score,
        )
        return log_id

    def list_verifications(
        self,
        *,
        suggestion_id: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        table = sql_schema.verification_logs
        stmt = sa.select(table).order_by(table.c.started_at.asc())
        if suggestion_id:
            stmt = stmt.where(table.c.suggestion_id == suggestion_id)
        if resource_id:
            stmt = stmt.where(table.c.resource_id == resource_id)
        with self._session_scope() as session:
            rows = session.execute(stmt).fetchall()
        return [dict(row._mapping) for row in rows]

    # ------------------------------------------------------------------
    # Progress events
    # ------------------------------------------------------------------
    def record_event(
        self,
        event_type: EventType,
        data: Dict[str, Any],
        *,
        suggestion_id: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> str:
        event_id = str(uuid.uuid4())
        with self._session_scope() as session:
            session.execute(
                sa.insert(sql_schema.verification_events).values(
                    event_id=event_id,
                    suggestion_id=suggestion_id,
                    resource_id=resource_id,
                    event_type=event_type.value,
                    event_data=data,
                    created_at=_utcnow(),
                )
            )
        return event_id

    def list_events(self, *, suggestion_id: str) -> List[Dict[str, Any]]:
        table = sql_schema.verification_events
        with self._session_scope() as session:
            rows = session.execute(
                sa.select(table)
                .where(table.c.suggestion_id == suggestion_id)
                .order_by(table.c.created_at.asc())
            ).fetchall()
        return [dict(row._mapping) for row in rows]

    # ------------------------------------------------------------------
    # Review actions + usage accounting
    # ------------------------------------------------------------------
    def record_action(
        self,
        *,
        actor: str,
        action: str,
        payload: Optional[Dict[str, Any]] = None,
        suggestion_id: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> str:
        """Append a review decision (human or automated) to the audit trail."""

        action_id = str(uuid.uuid4())
        with self._session_scope() as session:
            session.execute(
                sa.insert(sql_schema.review_actions).values(
                    action_id=action_id,
                    suggestion_id=suggestion_id,
                    resource_id=resource_id,
                    actor=actor,
                    action=action,
                    payload=payload or {},
                    created_at=_utcnow(),
                )
            )
        LOGGER.info("Review action action=%s actor=%s suggestion_id=%s", action, actor, suggestion_id)
        return action_id

    def list_actions(self, *, suggestion_id: str) -> List[Dict[str, Any]]:
        table = sql_schema.review_actions
        with self._session_scope() as session:
            rows = session.execute(
                sa.select(table).where(table.c.suggestion_id == suggestion_id).order_by(table.c.created_at.asc())
            ).fetchall()
        return [dict(row._mapping) for row in rows]

    def record_usage(
        self,
        *,
        operation: str,
        provider: str,
        cost_usd: float,
        input_tokens: int = 0,
        output_tokens: int = 0,
        suggestion_id: Optional[str] = None,
        resource_id: Optional[str] = None,
    ) -> str:
        usage_id = str(uuid.uuid4())
        with self._session_scope() as session:
            session.execute(
                sa.insert(sql_schema.api_usage_logs).values(
                    usage_id=usage_id,
                    suggestion_id=suggestion_id,
                    resource_id=resource_id,
                    operation=operation,
                    provider=provider,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    cost_usd=cost_usd,
                    created_at=_utcnow(),
                )
            )
        return usage_id

    def total_cost_usd(self, *, since: Optional[datetime] = None) -> float:
        table = sql_schema.api_usage_logs
        stmt = sa.select(sa.func.coalesce(sa.func.sum(table.c.cost_usd), 0))
        if since:
            stmt = stmt.where(table.c.created_at >= since)
        with self._session_scope() as session:
            value = session.execute(stmt).scalar_one()
        return float(value or 0)


__all__ = ["VerificationLogStore"]

"""SQLAlchemy metadata and engine helpers for the suggestion/resource tables."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import sqlalchemy as sa
from sqlalchemy import Engine
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import URL
from sqlalchemy.orm import sessionmaker

from reentry_map.settings import Settings, get_settings

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")
TIMESTAMP = sa.DateTime(timezone=True)
UUID_TYPE = sa.String(length=64)

METADATA = sa.MetaData()


def _candidate_columns() -> list[sa.Column]:
    """Descriptive columns shared by ``resource_suggestions`` and ``resources``."""

    return [
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("state", sa.Text(), nullable=True),
        sa.Column("zip", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("primary_category", sa.Text(), nullable=True),
        sa.Column("services_offered", JSON_TYPE, nullable=True),
        sa.Column("hours", JSON_TYPE, nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("address_type", sa.Text(), nullable=False, server_default="physical"),
        sa.Column("service_area", JSON_TYPE, nullable=True),
    ]


resource_suggestions = sa.Table(
    "resource_suggestions",
    METADATA,
    sa.Column("id", UUID_TYPE, primary_key=True),
    *_candidate_columns(),
    sa.Column("discovered_via", sa.Text(), nullable=True),
    sa.Column("source_url", sa.Text(), nullable=True),
    sa.Column("source_name", sa.Text(), nullable=True),
    sa.Column("discovery_notes", sa.Text(), nullable=True),
    sa.Column("submitted_by", sa.Text(), nullable=True),
    sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
    sa.Column("rejection_reason", sa.Text(), nullable=True),
    sa.Column("closure_status", sa.Text(), nullable=True),
    sa.Column("correction_notes", sa.Text(), nullable=True),
    sa.Column("review_notes", sa.Text(), nullable=True),
    sa.Column("reviewed_by", sa.Text(), nullable=True),
    sa.Column("reviewed_at", TIMESTAMP, nullable=True),
    sa.Column("resource_id", UUID_TYPE, nullable=True),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    sa.Column("updated_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)
sa.Index("idx_resource_suggestions_status_created", resource_suggestions.c.status, resource_suggestions.c.created_at)
sa.Index("idx_resource_suggestions_name", resource_suggestions.c.name)

resources = sa.Table(
    "resources",
    METADATA,
    sa.Column("id", UUID_TYPE, primary_key=True),
    sa.Column("suggestion_id", UUID_TYPE, nullable=True),
    *_candidate_columns(),
    sa.Column("status", sa.Text(), nullable=False, server_default="active"),
    sa.Column("verification_status", sa.Text(), nullable=False, server_default="unverified"),
    sa.Column("verification_confidence", sa.Float(), nullable=True),
    sa.Column("verified_at", TIMESTAMP, nullable=True),
    sa.Column("verified_by", sa.Text(), nullable=True),
    sa.Column("verification_source", sa.Text(), nullable=True),
    sa.Column("correction_notes", sa.Text(), nullable=True),
    sa.Column("change_log", JSON_TYPE, nullable=False),
    sa.Column("parent_resource_id", UUID_TYPE, nullable=True),
    sa.Column("org_name", sa.Text(), nullable=True),
    sa.Column("location_name", sa.Text(), nullable=True),
    sa.Column("is_parent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    sa.Column("closure_status", sa.Text(), nullable=True),
    sa.Column("next_verification_at", TIMESTAMP, nullable=True),
    sa.Column("source", sa.Text(), nullable=True),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    sa.Column("updated_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    sa.UniqueConstraint("suggestion_id", name="uq_resources_suggestion_id"),
)
sa.Index("idx_resources_status_city_state", resources.c.status, resources.c.city, resources.c.state)
sa.Index("idx_resources_org_name", resources.c.org_name)
sa.Index("idx_resources_next_verification", resources.c.next_verification_at)

verification_logs = sa.Table(
    "verification_logs",
    METADATA,
    sa.Column("log_id", UUID_TYPE, primary_key=True),
    sa.Column("suggestion_id", UUID_TYPE, nullable=True),
    sa.Column("resource_id", UUID_TYPE, nullable=True),
    sa.Column("verification_type", sa.Text(), nullable=False),
    sa.Column("agent_version", sa.Text(), nullable=False),
    sa.Column("overall_score", sa.Float(), nullable=True),
    sa.Column("checks_performed", JSON_TYPE, nullable=False),
    sa.Column("decision", sa.Text(), nullable=False),
    sa.Column("decision_reason", sa.Text(), nullable=True),
    sa.Column("auto_approved", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    sa.Column("started_at", TIMESTAMP, nullable=False),
    sa.Column("completed_at", TIMESTAMP, nullable=False),
    sa.Column("duration_ms", sa.Integer(), nullable=True),
    sa.Column("api_calls_made", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("estimated_cost_usd", sa.Numeric(10, 6), nullable=False, server_default="0"),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)
sa.Index("idx_verification_logs_suggestion", verification_logs.c.suggestion_id, verification_logs.c.started_at)
sa.Index("idx_verification_logs_resource", verification_logs.c.resource_id)

verification_events = sa.Table(
    "verification_events",
    METADATA,
    sa.Column("event_id", UUID_TYPE, primary_key=True),
    sa.Column("suggestion_id", UUID_TYPE, nullable=True),
    sa.Column("resource_id", UUID_TYPE, nullable=True),
    sa.Column("event_type", sa.Text(), nullable=False),
    sa.Column("event_data", JSON_TYPE, nullable=True),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)
sa.Index("idx_verification_events_suggestion", verification_events.c.suggestion_id, verification_events.c.created_at)

review_actions = sa.Table(
    "review_actions",
    METADATA,
    sa.Column("action_id", UUID_TYPE, primary_key=True),
    sa.Column("suggestion_id", UUID_TYPE, nullable=True),
    sa.Column("resource_id", UUID_TYPE, nullable=True),
    sa.Column("actor", sa.Text(), nullable=False),
    sa.Column("action", sa.Text(), nullable=False),
    sa.Column("payload", JSON_TYPE, nullable=True),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)
sa.Index("idx_review_actions_suggestion", review_actions.c.suggestion_id)

api_usage_logs = sa.Table(
    "api_usage_logs",
    METADATA,
    sa.Column("usage_id", UUID_TYPE, primary_key=True),
    sa.Column("suggestion_id", UUID_TYPE, nullable=True),
    sa.Column("resource_id", UUID_TYPE, nullable=True),
    sa.Column("operation", sa.Text(), nullable=False),
    sa.Column("provider", sa.Text(), nullable=False),
    sa.Column("input_tokens", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("output_tokens", sa.Integer(), nullable=False, server_default="0"),
    sa.Column("cost_usd", sa.Numeric(10, 6), nullable=False, server_default="0"),
    sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
)
sa.Index("idx_api_usage_logs_created_at", api_usage_logs.c.created_at)


def _resolve_database_url(settings: Settings | None = None) -> str:
    """Return the SQLAlchemy URL considering overrides and configured backend."""

    url_override = os.getenv("REENTRY_DATABASE_URL") or os.getenv("ALEMBIC_DATABASE_URL")
    if url_override:
        return url_override

    resolved = settings or get_settings()
    backend = resolved.storage.structured_backend
    if backend == "sqlite":
        sqlite_path = Path(resolved.storage.sqlite_path)
        sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        return URL.create("sqlite", database=sqlite_path.as_posix()).render_as_string(hide_password=False)

    if backend == "postgres":
        if not resolved.storage.database_url:
            raise ValueError("storage.database_url is required for the postgres backend")
        return resolved.storage.database_url

    raise NotImplementedError(f"Unsupported structured backend '{backend}' for SQL engine creation")


def build_engine(*, echo: bool = False, settings: Settings | None = None) -> Engine:
    """Instantiate a SQLAlchemy engine aligned with project settings."""

    url = _resolve_database_url(settings)
    connect_args: dict[str, Any] = {}
    if url.startswith("sqlite:///"):
        connect_args["check_same_thread"] = False
    return sa.create_engine(url, echo=echo, future=True, pool_pre_ping=True, connect_args=connect_args)


def session_factory(*, settings: Settings | None = None) -> sessionmaker:
    """Return a configured sessionmaker bound to the active engine."""

    engine = build_engine(settings=settings)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


__all__ = [
    "METADATA",
    "resource_suggestions",
    "resources",
    "verification_logs",
    "verification_events",
    "review_actions",
    "api_usage_logs",
    "build_engine",
    "session_factory",
]

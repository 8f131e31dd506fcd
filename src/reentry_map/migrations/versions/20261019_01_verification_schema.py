"""Verification pipeline baseline schema."""

from __future__ import annotations

from typing import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "20261019_01"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")
UUID_TYPE = sa.String(length=64)
TIMESTAMP = sa.DateTime(timezone=True)


def _candidate_columns() -> list[sa.Column]:
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


def upgrade() -> None:
    """Create suggestion, resource and verification audit tables."""

    op.create_table(
        "resource_suggestions",
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
    op.create_index(
        "idx_resource_suggestions_status_created",
        "resource_suggestions",
        ["status", "created_at"],
        unique=False,
    )
    op.create_index("idx_resource_suggestions_name", "resource_suggestions", ["name"], unique=False)

    op.create_table(
        "resources",
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
    op.create_index("idx_resources_status_city_state", "resources", ["status", "city", "state"], unique=False)
    op.create_index("idx_resources_org_name", "resources", ["org_name"], unique=False)
    op.create_index("idx_resources_next_verification", "resources", ["next_verification_at"], unique=False)

    op.create_table(
        "verification_logs",
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
    op.create_index(
        "idx_verification_logs_suggestion",
        "verification_logs",
        ["suggestion_id", "started_at"],
        unique=False,
    )
    op.create_index("idx_verification_logs_resource", "verification_logs", ["resource_id"], unique=False)

    op.create_table(
        "verification_events",
        sa.Column("event_id", UUID_TYPE, primary_key=True),
        sa.Column("suggestion_id", UUID_TYPE, nullable=True),
        sa.Column("resource_id", UUID_TYPE, nullable=True),
        sa.Column("event_type", sa.Text(), nullable=False),
        sa.Column("event_data", JSON_TYPE, nullable=True),
        sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index(
        "idx_verification_events_suggestion",
        "verification_events",
        ["suggestion_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "review_actions",
        sa.Column("action_id", UUID_TYPE, primary_key=True),
        sa.Column("suggestion_id", UUID_TYPE, nullable=True),
        sa.Column("resource_id", UUID_TYPE, nullable=True),
        sa.Column("actor", sa.Text(), nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("payload", JSON_TYPE, nullable=True),
        sa.Column("created_at", TIMESTAMP, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("idx_review_actions_suggestion", "review_actions", ["suggestion_id"], unique=False)

    op.create_table(
        "api_usage_logs",
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
    op.create_index("idx_api_usage_logs_created_at", "api_usage_logs", ["created_at"], unique=False)


def downgrade() -> None:
    """Drop the verification pipeline tables."""

    op.drop_index("idx_api_usage_logs_created_at", table_name="api_usage_logs")
    op.drop_table("api_usage_logs")
    op.drop_index("idx_review_actions_suggestion", table_name="review_actions")
    op.drop_table("review_actions")
    op.drop_index("idx_verification_events_suggestion", table_name="verification_events")
    op.drop_table("verification_events")
    op.drop_index("idx_verification_logs_resource", table_name="verification_logs")
    op.drop_index("idx_verification_logs_suggestion", table_name="verification_logs")
    op.drop_table("verification_logs")
    op.drop_index("idx_resources_next_verification", table_name="resources")
    op.drop_index("idx_resources_org_name", table_name="resources")
    op.drop_index("idx_resources_status_city_state", table_name="resources")
    op.drop_table("resources")
    op.drop_index("idx_resource_suggestions_name", table_name="resource_suggestions")
    op.drop_index("idx_resource_suggestions_status_created", table_name="resource_suggestions")
    op.drop_table("resource_suggestions")

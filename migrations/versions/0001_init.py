"""init

Revision ID: 0001_init
Revises: 
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "user_profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("target_industries", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("target_titles", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )

    op.create_table(
        "leads",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("person_name", sa.Text()),
        sa.Column("person_title", sa.Text()),
        sa.Column("company_name", sa.Text()),
        sa.Column("company_industry", sa.Text()),
        sa.Column("buying_signals", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("priority_score", sa.Integer()),
        sa.Column("priority_level", sa.Text()),
        sa.Column("buying_signal_score", sa.Integer()),
        sa.Column("fit_score", sa.Integer()),
        sa.Column("signal_breakdown", postgresql.JSONB()),
        sa.Column("first_scored_at", sa.DateTime(timezone=True)),
        sa.Column("last_rescored_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("priority_score IS NULL OR priority_score BETWEEN 0 AND 14", name="leads_priority_score_range"),
        sa.CheckConstraint(
            "priority_level IS NULL OR priority_level IN ('high', 'medium', 'low')",
            name="leads_priority_level_values",
        ),
    )
    op.create_index("leads_user_idx", "leads", ["user_id"])
    op.create_index("leads_user_level_score_idx", "leads", ["user_id", "priority_level", "priority_score"])

    op.create_table(
        "daily_focus",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("focus_date", sa.Date(), nullable=False),
        sa.Column("lead_ids", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("user_id", "focus_date", name="daily_focus_user_date_uidx"),
    )

    op.create_table(
        "lead_actions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("lead_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action_type", sa.Text(), nullable=False),
        sa.Column("action_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.CheckConstraint(
            "action_type IN ('contacted', 'viewed', 'added_to_focus', 'generated_outreach')",
            name="lead_actions_type_values",
        ),
    )
    op.create_index("lead_actions_user_type_date_idx", "lead_actions", ["user_id", "action_type", "action_date"])
    op.create_index("lead_actions_lead_idx", "lead_actions", ["lead_id"])

    op.create_table(
        "job_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("job_name", sa.Text(), nullable=False),
        sa.Column("scope", sa.Text()),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("finished_at", sa.DateTime(timezone=True)),
        sa.Column("processed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("details", postgresql.JSONB()),
        sa.Column("error", sa.Text()),
    )
    op.create_index("job_runs_name_status_idx", "job_runs", ["job_name", "status"])
    op.create_index("job_runs_started_at_idx", "job_runs", ["started_at"])


def downgrade():
    op.drop_index("job_runs_started_at_idx", table_name="job_runs")
    op.drop_index("job_runs_name_status_idx", table_name="job_runs")
    op.drop_table("job_runs")

    op.drop_index("lead_actions_lead_idx", table_name="lead_actions")
    op.drop_index("lead_actions_user_type_date_idx", table_name="lead_actions")
    op.drop_table("lead_actions")

    op.drop_table("daily_focus")

    op.drop_index("leads_user_level_score_idx", table_name="leads")
    op.drop_index("leads_user_idx", table_name="leads")
    op.drop_table("leads")

    op.drop_table("user_profiles")

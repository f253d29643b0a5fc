"""initial_project_lifecycle

Create the project lifecycle tables: projects, team members, stages,
checklist items, asset requests, client payments, activities, documents
and the scheduled job registry.

Revision ID: 5e1f0a7c2b90
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "5e1f0a7c2b90"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("client", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="web"),
            sa.Column("priority", sa.String(length=20), nullable=False, server_default="medium"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="info"),
            sa.Column("mode", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("current_stage", sa.String(length=50), nullable=False, server_default="Requirement"),
            sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("start_date", sa.Date(), nullable=True),
            sa.Column("due_date", sa.Date(), nullable=True),
            sa.Column("total_amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("advance_percent", sa.Integer(), nullable=False, server_default="25"),
            sa.Column("milestones", sa.Integer(), nullable=False, server_default="3"),
            sa.Column("maintenance_started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("maintenance_notes", sa.Text(), nullable=True),
            sa.Column("health_payment", sa.String(length=20), nullable=True),
            sa.Column("health_client_pending", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("health_developer_assignment", sa.String(length=20), nullable=True),
            sa.Column("health_qa_status", sa.String(length=20), nullable=True),
            sa.Column("health_deadline_risk", sa.String(length=20), nullable=True),
            sa.Column("health_score", sa.Integer(), nullable=False, server_default="50"),
            sa.Column("health_updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_by_id", sa.String(length=64), nullable=True),
            sa.Column("created_by_name", sa.String(length=150), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_projects_progress_range"),
        )
        op.create_index("ix_projects_mode", "projects", ["mode"])

    if "project_team_members" not in existing_tables:
        op.create_table(
            "project_team_members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("role", sa.String(length=30), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=True),
            sa.Column("name", sa.String(length=150), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_team_members_project_id", "project_team_members", ["project_id"])

    if "project_stages" not in existing_tables:
        op.create_table(
            "project_stages",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("legacy_id", sa.String(length=64), nullable=True),
            sa.Column("name", sa.String(length=50), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="checklist"),
            sa.Column("order", sa.Integer(), nullable=False),
            sa.Column("icon", sa.String(length=10), nullable=True),
            sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("deadline", sa.Date(), nullable=True),
            sa.Column("summary", sa.Text(), nullable=True),
            sa.Column("health", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("assigned_name", sa.String(length=150), nullable=True),
            sa.Column("repo_url", sa.String(length=500), nullable=True),
            sa.Column("live_url", sa.String(length=500), nullable=True),
            sa.Column("linked_backend", sa.String(length=500), nullable=True),
            sa.Column("hosting_provider", sa.String(length=100), nullable=True),
            sa.Column("domain_url", sa.String(length=500), nullable=True),
            sa.Column("ssl_status", sa.String(length=20), nullable=True),
            sa.Column("deliveries", sa.JSON(), nullable=True),
            sa.Column("client_visible", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("linked_payment_milestone", sa.String(length=50), nullable=True),
            sa.Column("blocker_reasons", sa.JSON(), nullable=True),
            sa.Column("pre_blocker_status", sa.String(length=20), nullable=True),
            sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("submitted_by_id", sa.String(length=64), nullable=True),
            sa.Column("submitted_by_name", sa.String(length=150), nullable=True),
            sa.Column("subadmin_status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("subadmin_reviewed_by_id", sa.String(length=64), nullable=True),
            sa.Column("subadmin_reviewed_by_name", sa.String(length=150), nullable=True),
            sa.Column("subadmin_reviewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("subadmin_comment", sa.Text(), nullable=True),
            sa.Column("admin_status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("admin_approved_by_id", sa.String(length=64), nullable=True),
            sa.Column("admin_approved_by_name", sa.String(length=150), nullable=True),
            sa.Column("admin_approved_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("admin_comment", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "order", name="uq_stage_project_order"),
        )
        op.create_index("ix_project_stages_project_id", "project_stages", ["project_id"])
        op.create_index("ix_project_stages_legacy_id", "project_stages", ["legacy_id"])

    if "stage_checklist_items" not in existing_tables:
        op.create_table(
            "stage_checklist_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("stage_id", sa.Integer(), nullable=False),
            sa.Column("text", sa.String(length=300), nullable=False),
            sa.Column("done", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
            sa.ForeignKeyConstraint(["stage_id"], ["project_stages.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_stage_checklist_items_stage_id", "stage_checklist_items", ["stage_id"])

    if "stage_asset_requests" not in existing_tables:
        op.create_table(
            "stage_asset_requests",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("stage_id", sa.Integer(), nullable=False),
            sa.Column("label", sa.String(length=200), nullable=False),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="other"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("file_name", sa.String(length=255), nullable=True),
            sa.Column("file_url", sa.String(length=500), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("requested_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["stage_id"], ["project_stages.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_stage_asset_requests_stage_id", "stage_asset_requests", ["stage_id"])

    if "client_payments" not in existing_tables:
        op.create_table(
            "client_payments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("label", sa.String(length=50), nullable=False),
            sa.Column("amount", sa.Float(), nullable=False, server_default="0"),
            sa.Column("due_date", sa.Date(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_client_payments_project_id", "client_payments", ["project_id"])
        op.create_index("ix_client_payments_project_status", "client_payments", ["project_id", "status"])

    if "project_activities" not in existing_tables:
        op.create_table(
            "project_activities",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.String(length=64), nullable=True),
            sa.Column("user_name", sa.String(length=150), nullable=False, server_default="System"),
            sa.Column("action", sa.String(length=200), nullable=False),
            sa.Column("icon", sa.String(length=10), nullable=True),
            sa.Column("type", sa.String(length=20), nullable=False, server_default="general"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_activities_project_id", "project_activities", ["project_id"])
        op.create_index("ix_activity_project_created", "project_activities", ["project_id", "created_at"])

    if "project_documents" not in existing_tables:
        op.create_table(
            "project_documents",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("type", sa.String(length=30), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("stage", sa.String(length=50), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
            sa.Column("content", sa.JSON(), nullable=True),
            sa.Column("external_ref", sa.String(length=200), nullable=True),
            sa.Column("generated_by_id", sa.String(length=64), nullable=True),
            sa.Column("generated_by_name", sa.String(length=150), nullable=True),
            sa.Column("generated_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_documents_project_id", "project_documents", ["project_id"])

    if "scheduled_jobs" not in existing_tables:
        op.create_table(
            "scheduled_jobs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.String(length=500), nullable=True),
            sa.Column("schedule_type", sa.String(length=30), nullable=True),
            sa.Column("schedule_config", sa.JSON(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=True),
            sa.Column("is_enabled", sa.Boolean(), nullable=True),
            sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_run_status", sa.String(length=20), nullable=True),
            sa.Column("last_run_duration_ms", sa.Integer(), nullable=True),
            sa.Column("last_run_result", sa.JSON(), nullable=True),
            sa.Column("run_count", sa.Integer(), nullable=True),
            sa.Column("error_count", sa.Integer(), nullable=True),
            sa.Column("last_error", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_name"),
        )


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    for table in (
        "scheduled_jobs",
        "project_documents",
        "project_activities",
        "client_payments",
        "stage_asset_requests",
        "stage_checklist_items",
        "project_stages",
        "project_team_members",
        "projects",
    ):
        if table in existing_tables:
            op.drop_table(table)

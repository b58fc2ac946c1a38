"""initial_schema

Creates the phaseboard tables:
  - profiles, contractor_companies
  - projects, project_members
  - process_templates, process_template_items
  - processes, process_dependencies
  - tasks
  - meeting_notes, project_urls

Tables created conditionally (IF NOT EXISTS semantics) to support idempotent
execution against databases that already received these tables via db.create_all()
in a development environment.

Revision ID: a1f3c9e2d401
Revises:
Create Date: 2026-10-19 09:12:40.118204
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'a1f3c9e2d401'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    # ── Profiles / companies ─────────────────────────────────────────────
    if "profiles" not in existing:
        op.create_table(
            "profiles",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("full_name", sa.String(length=200), nullable=True),
            sa.Column("avatar_url", sa.String(length=500), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("email"),
        )
        op.create_index("ix_profiles_email", "profiles", ["email"])

    if "contractor_companies" not in existing:
        op.create_table(
            "contractor_companies",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("name"),
        )

    # ── Projects ─────────────────────────────────────────────────────────
    if "projects" not in existing:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=30), nullable=True),
            sa.Column("progress", sa.Integer(), nullable=False, server_default="0",
                      comment="Derived 0-100 roll-up, rewritten by progress_service on every status change"),
            sa.Column("progress_policy", sa.String(length=30), nullable=False,
                      server_default="completed_weighted",
                      comment="completed_weighted | task_ratio"),
            sa.Column("design_period", sa.String(length=100), nullable=True),
            sa.Column("amount_excl_tax", sa.Numeric(14, 2), nullable=True),
            sa.Column("amount_incl_tax", sa.Numeric(14, 2), nullable=True),
            sa.Column("contractor_company_id", sa.Integer(), nullable=True),
            sa.Column("owner_id", sa.Integer(), nullable=False),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["contractor_company_id"], ["contractor_companies.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["owner_id"], ["profiles.id"], ondelete="RESTRICT"),
            sa.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_project_progress_range"),
            sa.CheckConstraint(
                "progress_policy IN ('completed_weighted','task_ratio')",
                name="ck_project_progress_policy",
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_projects_owner_id", "projects", ["owner_id"])

    if "project_members" not in existing:
        op.create_table(
            "project_members",
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("profile_id", sa.Integer(), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="editor",
                      comment="owner | editor | viewer"),
            sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["profile_id"], ["profiles.id"], ondelete="CASCADE"),
            sa.CheckConstraint("role IN ('owner','editor','viewer')", name="ck_project_member_role"),
            sa.PrimaryKeyConstraint("project_id", "profile_id"),
        )

    # ── Process templates ────────────────────────────────────────────────
    if "process_templates" not in existing:
        op.create_table(
            "process_templates",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_process_templates_project_id", "process_templates", ["project_id"])

    if "process_template_items" not in existing:
        op.create_table(
            "process_template_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("template_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("duration_days", sa.Integer(), nullable=False, server_default="1"),
            sa.ForeignKeyConstraint(["template_id"], ["process_templates.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_process_template_items_template_id", "process_template_items", ["template_id"])

    # ── Processes + dependency edges ─────────────────────────────────────
    if "processes" not in existing:
        op.create_table(
            "processes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="in-progress",
                      comment="in-progress | done"),
            sa.Column("percentage", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("percentage_before_done", sa.Integer(), nullable=True),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("duration_days", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("template_id", sa.Integer(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["template_id"], ["process_templates.id"], ondelete="SET NULL"),
            sa.CheckConstraint("status IN ('in-progress','done')", name="ck_process_status"),
            sa.CheckConstraint("percentage >= 0 AND percentage <= 100", name="ck_process_percentage_range"),
            sa.CheckConstraint("duration_days >= 0", name="ck_process_duration"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_processes_project_id", "processes", ["project_id"])

    if "process_dependencies" not in existing:
        op.create_table(
            "process_dependencies",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("process_id", sa.Integer(), nullable=False),
            sa.Column("depends_on_id", sa.Integer(), nullable=False),
            sa.Column("duration_days", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["process_id"], ["processes.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["depends_on_id"], ["processes.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("process_id", "depends_on_id", name="uq_process_dep"),
            sa.CheckConstraint("process_id != depends_on_id", name="ck_process_dep_no_self_loop"),
            sa.CheckConstraint("duration_days >= 1", name="ck_process_dep_duration"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_process_dependencies_project_id", "process_dependencies", ["project_id"])
        op.create_index("ix_process_dependencies_process_id", "process_dependencies", ["process_id"])
        op.create_index("ix_process_dependencies_depends_on_id", "process_dependencies", ["depends_on_id"])

    # ── Tasks ────────────────────────────────────────────────────────────
    if "tasks" not in existing:
        op.create_table(
            "tasks",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("process_id", sa.Integer(), nullable=True),
            sa.Column("parent_task_id", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="in-progress",
                      comment="in-progress | done"),
            sa.Column("due_date", sa.Date(), nullable=True),
            sa.Column("assignee_id", sa.Integer(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["process_id"], ["processes.id"], ondelete="SET NULL"),
            sa.ForeignKeyConstraint(["parent_task_id"], ["tasks.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["assignee_id"], ["profiles.id"], ondelete="SET NULL"),
            sa.CheckConstraint("status IN ('in-progress','done')", name="ck_task_status"),
            sa.CheckConstraint(
                "parent_task_id IS NULL OR parent_task_id != id",
                name="ck_task_not_own_parent",
            ),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_tasks_project_id", "tasks", ["project_id"])
        op.create_index("ix_tasks_process_id", "tasks", ["process_id"])
        op.create_index("ix_tasks_parent_task_id", "tasks", ["parent_task_id"])
        op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"])

    # ── Notes / URLs ─────────────────────────────────────────────────────
    if "meeting_notes" not in existing:
        op.create_table(
            "meeting_notes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("note_type", sa.String(length=20), nullable=False, server_default="meeting",
                      comment="meeting | phone | memo"),
            sa.Column("location", sa.String(length=200), nullable=True),
            sa.Column("participants", sa.Text(), nullable=True),
            sa.Column("contact_person", sa.String(length=200), nullable=True),
            sa.Column("created_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["created_by"], ["profiles.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_meeting_notes_project_id", "meeting_notes", ["project_id"])

    if "project_urls" not in existing:
        op.create_table(
            "project_urls",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("url", sa.String(length=2000), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["created_by"], ["profiles.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_urls_project_id", "project_urls", ["project_id"])


def downgrade():
    for table in (
        "project_urls",
        "meeting_notes",
        "tasks",
        "process_dependencies",
        "processes",
        "process_template_items",
        "process_templates",
        "project_members",
        "projects",
        "contractor_companies",
        "profiles",
    ):
        op.drop_table(table)

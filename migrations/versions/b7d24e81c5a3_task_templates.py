"""task_templates

Adds saved task lists that can be replayed into a project:
  - task_templates
  - task_template_items

Revision ID: b7d24e81c5a3
Revises: a1f3c9e2d401
Create Date: 2026-10-19 16:03:11.540982
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = 'b7d24e81c5a3'
down_revision = 'a1f3c9e2d401'
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing = set(inspector.get_table_names())

    if "task_templates" not in existing:
        op.create_table(
            "task_templates",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_task_templates_project_id", "task_templates", ["project_id"])

    if "task_template_items" not in existing:
        op.create_table(
            "task_template_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("template_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("order_index", sa.Integer(), nullable=False, server_default="0"),
            sa.ForeignKeyConstraint(["template_id"], ["task_templates.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_task_template_items_template_id", "task_template_items", ["template_id"])


def downgrade():
    op.drop_table("task_template_items")
    op.drop_table("task_templates")

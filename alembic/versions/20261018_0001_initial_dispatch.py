"""Initial dispatch schema: agents, sub-agents, rotation cursors, uploads, tasks."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "agents",
        sa.Column("agent_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("mobile", sa.String(), nullable=False, server_default=""),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("agent_id"),
    )
    op.create_index("ix_agents_email", "agents", ["email"], unique=True)

    op.create_table(
        "sub_agents",
        sa.Column("sub_agent_id", sa.String(), nullable=False),
        sa.Column("owner_agent_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("mobile", sa.String(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("sub_agent_id"),
    )
    op.create_index("ix_sub_agents_owner_agent_id", "sub_agents", ["owner_agent_id"])
    op.create_index("ix_sub_agents_email", "sub_agents", ["email"])
    op.create_index(
        "ix_sub_agents_owner_active_created",
        "sub_agents",
        ["owner_agent_id", "active", "created_at"],
    )

    op.create_table(
        "rotation_cursors",
        sa.Column("owner_scope", sa.String(), nullable=False),
        sa.Column("last_index", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("owner_scope"),
    )

    op.create_table(
        "uploads",
        sa.Column("upload_id", sa.String(), nullable=False),
        sa.Column("filename", sa.String(), nullable=False),
        sa.Column("original_name", sa.String(), nullable=False),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("uploaded_by", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("upload_id"),
    )
    op.create_index("ix_uploads_uploaded_by", "uploads", ["uploaded_by"])

    op.create_table(
        "tasks",
        sa.Column("task_id", sa.String(), nullable=False),
        sa.Column("upload_id", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("priority", sa.String(), nullable=False, server_default="medium"),
        sa.Column("assigned_to", sa.String(), nullable=True),
        sa.Column("owner_agent_id", sa.String(), nullable=True),
        sa.Column("sub_assigned_to", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["upload_id"], ["uploads.upload_id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("task_id"),
    )
    op.create_index("ix_tasks_upload_id", "tasks", ["upload_id"])
    op.create_index("ix_tasks_status", "tasks", ["status"])
    op.create_index("ix_tasks_priority", "tasks", ["priority"])
    op.create_index("ix_tasks_sub_assigned_to", "tasks", ["sub_assigned_to"])
    op.create_index("ix_tasks_owner_created", "tasks", ["owner_agent_id", "created_at"])
    op.create_index("ix_tasks_assigned_created", "tasks", ["assigned_to", "created_at"])


def downgrade() -> None:
    op.drop_table("tasks")
    op.drop_table("uploads")
    op.drop_table("rotation_cursors")
    op.drop_table("sub_agents")
    op.drop_table("agents")

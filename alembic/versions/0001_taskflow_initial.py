"""Task records and notification feed.

Revision ID: 0001_taskflow_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_taskflow_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create task record and task notification tables."""
    op.create_table(
        "task_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_id", sa.String(length=768), nullable=False),
        sa.Column("task_id", sa.String(length=64), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("creator", sa.String(length=255), nullable=False),
        sa.Column("responsible", sa.JSON(), nullable=False),
        sa.Column("reminder_intervals", sa.JSON(), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("done", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("document_id", "task_id", name="uq_task_records_document_task"),
    )
    op.create_index("ix_task_records_due_date", "task_records", ["due_date"])
    op.create_index("ix_task_records_document_id", "task_records", ["document_id"])

    op.create_table(
        "task_notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("document_id", sa.String(length=768), nullable=False),
        sa.Column("user_id", sa.String(length=255), nullable=False),
        sa.Column("event_kind", sa.String(length=32), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_task_notifications_user_id", "task_notifications", ["user_id"])


def downgrade() -> None:
    """Drop task tables."""
    op.drop_index("ix_task_notifications_user_id", table_name="task_notifications")
    op.drop_table("task_notifications")
    op.drop_index("ix_task_records_document_id", table_name="task_records")
    op.drop_index("ix_task_records_due_date", table_name="task_records")
    op.drop_table("task_records")

"""execution tracking columns and approval_audit_log

Revision ID: 0002_execution_tracking_audit
Revises: 0001_approval_queue
Create Date: 2025-10-16
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0002_execution_tracking_audit"
down_revision: Union[str, None] = "0001_approval_queue"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column("approval_queue", sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True))
    op.add_column("approval_queue", sa.Column("execution_error", sa.Text(), nullable=True))

    op.create_table(
        "approval_audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("approval_id", sa.String(length=32), nullable=True),
        sa.Column("shop_id", sa.String(length=255), nullable=True),
        sa.Column("event", sa.String(length=64), nullable=False),
        sa.Column("actor", sa.String(length=255), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_approval_audit_log_approval_id", "approval_audit_log", ["approval_id"])
    op.create_index(
        "ix_approval_audit_log_shop_created", "approval_audit_log", ["shop_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_approval_audit_log_shop_created", table_name="approval_audit_log")
    op.drop_index("ix_approval_audit_log_approval_id", table_name="approval_audit_log")
    op.drop_table("approval_audit_log")
    op.drop_column("approval_queue", "execution_error")
    op.drop_column("approval_queue", "executed_at")

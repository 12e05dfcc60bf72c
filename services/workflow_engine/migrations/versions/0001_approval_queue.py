"""approval_queue table

Revision ID: 0001_approval_queue
Revises:
Create Date: 2025-10-02
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0001_approval_queue"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "approval_queue",
        sa.Column("id", sa.String(length=32), primary_key=True),
        sa.Column("shop_id", sa.String(length=255), nullable=False),
        sa.Column("action_type", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=32), nullable=False),
        sa.Column("entity_id", sa.String(length=255), nullable=False),
        sa.Column("current_data", sa.Text(), nullable=True),
        sa.Column("proposed_data", sa.Text(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("reasoning", sa.Text(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.String(length=255), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
    )
    op.create_index("ix_approval_queue_shop_status", "approval_queue", ["shop_id", "status"])
    op.create_index("ix_approval_queue_priority_created", "approval_queue", ["priority", "created_at"])
    op.create_index("ix_approval_queue_status_expires", "approval_queue", ["status", "expires_at"])
    op.create_index("ix_approval_queue_entity", "approval_queue", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_approval_queue_entity", table_name="approval_queue")
    op.drop_index("ix_approval_queue_status_expires", table_name="approval_queue")
    op.drop_index("ix_approval_queue_priority_created", table_name="approval_queue")
    op.drop_index("ix_approval_queue_shop_status", table_name="approval_queue")
    op.drop_table("approval_queue")

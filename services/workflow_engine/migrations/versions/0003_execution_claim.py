"""execution claim column on approval_queue

Revision ID: 0003_execution_claim
Revises: 0002_execution_tracking_audit
Create Date: 2025-10-24
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "0003_execution_claim"
down_revision: Union[str, None] = "0002_execution_tracking_audit"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "approval_queue",
        sa.Column("execution_started_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_column("approval_queue", "execution_started_at")

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base


class ApprovalAuditLog(Base):
    __tablename__ = "approval_audit_log"
    __table_args__ = (
        Index("ix_approval_audit_log_approval_id", "approval_id"),
        Index("ix_approval_audit_log_shop_created", "shop_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Null for set-based events (bulk reject, expiry sweep)
    approval_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    shop_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    event: Mapped[str] = mapped_column(String(64), nullable=False)  # approval.created|approval.approved|...
    actor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )

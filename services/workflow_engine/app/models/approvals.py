import uuid
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
STATUS_EXPIRED = "expired"

ACTION_PRODUCT_UPDATE = "product_update"
ACTION_PRICE_CHANGE = "price_change"
ACTION_INVENTORY_ADJUST = "inventory_adjust"

ENTITY_PRODUCT = "product"
ENTITY_VARIANT = "variant"
ENTITY_TYPES = frozenset({ENTITY_PRODUCT, ENTITY_VARIANT})

# reviewed_by value for approvals decided by the confidence policy
SYSTEM_AUTO_APPROVE = "system_auto_approve"


def _new_id() -> str:
    return uuid.uuid4().hex


class ApprovalRequest(Base):
    __tablename__ = "approval_queue"
    __table_args__ = (
        # Pending queue per shop (most common query)
        Index("ix_approval_queue_shop_status", "shop_id", "status"),
        # Ordering of the pending queue
        Index("ix_approval_queue_priority_created", "priority", "created_at"),
        # Expiry sweep
        Index("ix_approval_queue_status_expires", "status", "expires_at"),
        Index("ix_approval_queue_entity", "entity_type", "entity_id"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    shop_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(255), nullable=False)
    # JSON text, never rewritten after creation
    current_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    proposed_data: Mapped[str] = mapped_column(Text, nullable=False)
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    reasoning: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=STATUS_PENDING)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC)
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    review_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Set while an executor run holds the record; cleared on failure
    execution_started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    executed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    execution_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

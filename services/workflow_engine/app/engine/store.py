"""
Durable storage for approval requests.

``ApprovalStore`` is the contract the approval manager depends on. Status
changes go through ``transition``/``transition_where``, which only touch rows
still holding the expected status. That conditional update is what makes two
concurrent decisions on the same record resolve to one winner, across any
number of stateless manager instances.
"""
from __future__ import annotations

import abc
import json
from datetime import UTC, datetime
from typing import Any, Sequence

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from ..core.logging import get_logger
from ..models.approvals import STATUS_APPROVED, ApprovalRequest
from ..models.audit_log import ApprovalAuditLog

logger = get_logger(__name__)


class ApprovalStore(abc.ABC):
    @abc.abstractmethod
    def create(self, approval: ApprovalRequest) -> ApprovalRequest: ...

    @abc.abstractmethod
    def get(self, approval_id: str) -> ApprovalRequest | None: ...

    @abc.abstractmethod
    def transition(self, approval_id: str, expected_status: str, values: dict[str, Any]) -> bool:
        """Apply ``values`` only if the record still has ``expected_status``."""

    @abc.abstractmethod
    def transition_where(
        self,
        expected_status: str,
        values: dict[str, Any],
        *,
        ids: Sequence[str] | None = None,
        expires_before: datetime | None = None,
    ) -> int:
        """Set-based conditional update; returns the number of rows changed."""

    @abc.abstractmethod
    def list_for_shop(self, shop_id: str, status: str) -> list[ApprovalRequest]: ...

    @abc.abstractmethod
    def list_unexecuted(self, shop_id: str) -> list[ApprovalRequest]: ...

    @abc.abstractmethod
    def claim_execution(self, approval_id: str, now: datetime, stale_before: datetime) -> bool:
        """
        Reserve an approved, unexecuted record for one executor run.

        Fails while another run holds a claim newer than ``stale_before``.
        """

    @abc.abstractmethod
    def release_execution(self, approval_id: str) -> None: ...

    @abc.abstractmethod
    def mark_executed(self, approval_id: str, executed_at: datetime) -> None: ...

    @abc.abstractmethod
    def mark_execution_failed(self, approval_id: str, error: str) -> None: ...

    @abc.abstractmethod
    def append_audit(
        self,
        event: str,
        *,
        approval_id: str | None = None,
        shop_id: str | None = None,
        actor: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None: ...


class SqlApprovalStore(ApprovalStore):
    """SQLAlchemy implementation; every write is committed before returning."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, approval: ApprovalRequest) -> ApprovalRequest:
        self._session.add(approval)
        self._session.commit()
        self._session.refresh(approval)
        return approval

    def get(self, approval_id: str) -> ApprovalRequest | None:
        # populate_existing: never trust an identity-map copy after a bulk update
        return self._session.get(ApprovalRequest, approval_id, populate_existing=True)

    def transition(self, approval_id: str, expected_status: str, values: dict[str, Any]) -> bool:
        stmt = (
            update(ApprovalRequest)
            .where(ApprovalRequest.id == approval_id)
            .where(ApprovalRequest.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        self._session.commit()
        return result.rowcount == 1

    def transition_where(
        self,
        expected_status: str,
        values: dict[str, Any],
        *,
        ids: Sequence[str] | None = None,
        expires_before: datetime | None = None,
    ) -> int:
        stmt = update(ApprovalRequest).where(ApprovalRequest.status == expected_status)
        if ids is not None:
            if not ids:
                return 0
            stmt = stmt.where(ApprovalRequest.id.in_(list(ids)))
        if expires_before is not None:
            stmt = stmt.where(ApprovalRequest.expires_at < expires_before)
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        result = self._session.execute(stmt)
        self._session.commit()
        return result.rowcount or 0

    def list_for_shop(self, shop_id: str, status: str) -> list[ApprovalRequest]:
        return (
            self._session.query(ApprovalRequest)
            .populate_existing()
            .filter(ApprovalRequest.shop_id == shop_id, ApprovalRequest.status == status)
            .order_by(ApprovalRequest.priority.desc(), ApprovalRequest.created_at.desc())
            .all()
        )

    def list_unexecuted(self, shop_id: str) -> list[ApprovalRequest]:
        return (
            self._session.query(ApprovalRequest)
            .populate_existing()
            .filter(
                ApprovalRequest.shop_id == shop_id,
                ApprovalRequest.status == STATUS_APPROVED,
                ApprovalRequest.executed_at.is_(None),
            )
            .order_by(ApprovalRequest.reviewed_at.asc())
            .all()
        )

    def claim_execution(self, approval_id: str, now: datetime, stale_before: datetime) -> bool:
        stmt = (
            update(ApprovalRequest)
            .where(ApprovalRequest.id == approval_id)
            .where(ApprovalRequest.status == STATUS_APPROVED)
            .where(ApprovalRequest.executed_at.is_(None))
            .where(
                or_(
                    ApprovalRequest.execution_started_at.is_(None),
                    ApprovalRequest.execution_started_at < stale_before,
                )
            )
            .values(execution_started_at=now)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        self._session.commit()
        return result.rowcount == 1

    def release_execution(self, approval_id: str) -> None:
        self._update_fields(approval_id, execution_started_at=None)

    def mark_executed(self, approval_id: str, executed_at: datetime) -> None:
        self._update_fields(approval_id, executed_at=executed_at, execution_error=None)

    def mark_execution_failed(self, approval_id: str, error: str) -> None:
        self._update_fields(approval_id, execution_error=error, execution_started_at=None)

    def _update_fields(self, approval_id: str, **values: Any) -> None:
        stmt = (
            update(ApprovalRequest)
            .where(ApprovalRequest.id == approval_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self._session.execute(stmt)
        self._session.commit()

    def append_audit(
        self,
        event: str,
        *,
        approval_id: str | None = None,
        shop_id: str | None = None,
        actor: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        # Audit is best-effort: never fail the workflow operation
        try:
            self._session.add(
                ApprovalAuditLog(
                    approval_id=approval_id,
                    shop_id=shop_id,
                    event=event,
                    actor=actor,
                    details=json.dumps(details, default=str) if details else None,
                    created_at=datetime.now(UTC),
                )
            )
            self._session.commit()
        except Exception as e:
            logger.warning("approval.audit_failed", audit_event=event, approval_id=approval_id, error=str(e))
            self._session.rollback()

"""
Approval workflow state machine.

Records start ``pending`` and move exactly once, to ``approved``,
``rejected`` or ``expired``. Every move is a conditional update in the store,
so concurrent callers cannot both win. Execution of an approved change is a
separate step after the decision is committed: if it fails the record stays
``approved`` with ``execution_error`` set and ``executed_at`` empty, and the
failure is raised to the caller.
"""
from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta
from typing import Any, Sequence

from ..core.errors import (
    ExecutionError,
    InvalidStateError,
    NotFoundError,
    PayloadError,
    ValidationError,
    WorkflowError,
)
from ..core.logging import get_logger
from ..core.metrics import metrics as global_metrics
from ..models.approvals import (
    ENTITY_TYPES,
    STATUS_APPROVED,
    STATUS_EXPIRED,
    STATUS_PENDING,
    STATUS_REJECTED,
    SYSTEM_AUTO_APPROVE,
    ApprovalRequest,
)
from .executor import ActionExecutor
from .policy import ConfidencePolicy
from .store import ApprovalStore

DEFAULT_TTL = timedelta(days=7)
# A claim older than this belongs to a run that died mid-execution
DEFAULT_CLAIM_TIMEOUT = timedelta(minutes=15)

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; all stored values are UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _require_text(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{name} is required", details={"field": name})
    return value.strip()


class ApprovalManager:
    def __init__(
        self,
        store: ApprovalStore,
        executor: ActionExecutor,
        policy: ConfidencePolicy | None = None,
        ttl: timedelta = DEFAULT_TTL,
        clock=_utcnow,
        claim_timeout: timedelta = DEFAULT_CLAIM_TIMEOUT,
    ) -> None:
        self.store = store
        self.executor = executor
        self.policy = policy or ConfidencePolicy()
        self.ttl = ttl
        self.claim_timeout = claim_timeout
        self._now = clock

    # --- Creation ---

    def create_approval(
        self,
        *,
        shop_id: str,
        action_type: str,
        entity_type: str,
        entity_id: str,
        proposed_data: Any,
        current_data: Any = None,
        confidence: float | None = None,
        reasoning: str | None = None,
        priority: int | None = None,
    ) -> ApprovalRequest:
        """
        Queue a proposed change, auto-approving and executing it when the
        confidence policy allows.

        Raises:
            ValidationError: required fields missing or out of range.
            PayloadError / ExecutionError: auto-approved, but execution failed.
        """
        shop_id = _require_text("shopId", shop_id)
        action_type = _require_text("actionType", action_type)
        entity_type = _require_text("entityType", entity_type)
        entity_id = _require_text("entityId", entity_id)
        if entity_type not in ENTITY_TYPES:
            raise ValidationError(
                f"entityType must be one of {sorted(ENTITY_TYPES)}",
                details={"field": "entityType", "value": entity_type},
            )
        if proposed_data is None:
            raise ValidationError("proposedData is required", details={"field": "proposedData"})
        if confidence is not None:
            if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
                raise ValidationError("confidence must be a number", details={"field": "confidence"})
            if not 0.0 <= confidence <= 1.0:
                raise ValidationError(
                    "confidence must be between 0 and 1",
                    details={"field": "confidence", "value": confidence},
                )
        if priority is None:
            priority = 0
        elif isinstance(priority, bool) or not isinstance(priority, int):
            raise ValidationError("priority must be an integer", details={"field": "priority"})

        try:
            proposed_json = json.dumps(proposed_data)
            current_json = json.dumps(current_data) if current_data is not None else None
        except (TypeError, ValueError) as e:
            raise ValidationError(f"data is not JSON serializable: {e}")

        now = self._now()
        approval = self.store.create(
            ApprovalRequest(
                shop_id=shop_id,
                action_type=action_type,
                entity_type=entity_type,
                entity_id=entity_id,
                current_data=current_json,
                proposed_data=proposed_json,
                confidence=float(confidence) if confidence is not None else None,
                reasoning=reasoning,
                priority=priority,
                status=STATUS_PENDING,
                created_at=now,
                expires_at=now + self.ttl,
            )
        )
        decision = self.policy.decide(approval.confidence)
        mode = "auto" if decision.auto_approve else "hitl"
        logger.info(
            "approval.created",
            approval_id=approval.id,
            shop_id=shop_id,
            action_type=action_type,
            entity_id=entity_id,
            confidence=approval.confidence,
            mode=mode,
        )
        self.store.append_audit(
            "approval.created",
            approval_id=approval.id,
            shop_id=shop_id,
            details={"actionType": action_type, "confidence": approval.confidence, "mode": mode},
        )
        self._inc("approvals_created_total", action_type=action_type, mode=mode)

        if not decision.auto_approve:
            return approval

        try:
            approval = self._decide(approval, STATUS_APPROVED, SYSTEM_AUTO_APPROVE)
        except InvalidStateError:
            # A reviewer or the sweep decided first; the record itself was created
            logger.info("approval.auto_approve_lost", approval_id=approval.id)
            return self.store.get(approval.id)
        return self._execute(approval)

    # --- Decisions ---

    def approve_item(self, approval_id: str, reviewed_by: str) -> ApprovalRequest:
        """
        Approve a pending record and apply its proposed change.

        The approval is committed before execution starts; an ExecutionError
        or PayloadError raised here means the record is approved but the
        change was not applied.
        """
        reviewed_by = _require_text("reviewedBy", reviewed_by)
        approval = self.get_approval(approval_id)
        approval = self._decide(approval, STATUS_APPROVED, reviewed_by)
        return self._execute(approval)

    def reject_item(
        self, approval_id: str, reviewed_by: str, notes: str | None = None
    ) -> ApprovalRequest:
        reviewed_by = _require_text("reviewedBy", reviewed_by)
        approval = self.get_approval(approval_id)
        return self._decide(approval, STATUS_REJECTED, reviewed_by, notes=notes)

    def bulk_approve(self, approval_ids: Sequence[str], reviewed_by: str) -> list[dict[str, Any]]:
        """Approve each id independently; failures are reported per item."""
        results: list[dict[str, Any]] = []
        for approval_id in approval_ids:
            try:
                approval = self.approve_item(approval_id, reviewed_by)
                results.append({"id": approval_id, "success": True, "data": approval})
            except WorkflowError as e:
                results.append({"id": approval_id, "success": False, "error": e.to_dict()})
            except Exception as e:
                logger.error(
                    "approval.bulk_approve.unexpected_error",
                    approval_id=approval_id,
                    error=str(e),
                    exc_info=True,
                )
                results.append(
                    {
                        "id": approval_id,
                        "success": False,
                        "error": {"code": "INTERNAL_ERROR", "message": str(e)},
                    }
                )
        return results

    def bulk_reject(
        self, approval_ids: Sequence[str], reviewed_by: str, notes: str | None = None
    ) -> int:
        """Reject every still-pending id in one set-based update. Never executes."""
        reviewed_by = _require_text("reviewedBy", reviewed_by)
        now = self._now()
        count = self.store.transition_where(
            STATUS_PENDING,
            {
                "status": STATUS_REJECTED,
                "reviewed_at": now,
                "reviewed_by": reviewed_by,
                "review_notes": notes,
            },
            ids=list(approval_ids),
        )
        logger.info(
            "approval.bulk_rejected",
            requested=len(approval_ids),
            rejected=count,
            reviewed_by=reviewed_by,
        )
        self.store.append_audit(
            "approval.bulk_rejected",
            actor=reviewed_by,
            details={"ids": list(approval_ids), "rejected": count, "notes": notes},
        )
        self._inc("approvals_decisions_total", amount=count, status=STATUS_REJECTED)
        return count

    def expire_old_approvals(self) -> int:
        """Move pending records past their expiry to ``expired``. Idempotent."""
        count = self.store.transition_where(
            STATUS_PENDING,
            {"status": STATUS_EXPIRED},
            expires_before=self._now(),
        )
        if count:
            logger.info("approval.expired", count=count)
            self.store.append_audit("approval.expired", actor="system_expiry", details={"expired": count})
            if global_metrics:
                try:
                    global_metrics["approvals_expired_total"].inc(count)
                except Exception as e:
                    logger.warning("approval.metrics_failed", error=str(e))
        return count

    # --- Reads ---

    def get_approval(self, approval_id: str) -> ApprovalRequest:
        approval = self.store.get(approval_id)
        if approval is None:
            logger.warning("approval.not_found", approval_id=approval_id)
            raise NotFoundError(f"Approval {approval_id} not found", details={"approvalId": approval_id})
        return approval

    def get_pending_approvals(self, shop_id: str) -> list[ApprovalRequest]:
        """Pending records for one shop, highest priority then newest first."""
        shop_id = _require_text("shopId", shop_id)
        return self.store.list_for_shop(shop_id, STATUS_PENDING)

    def get_unexecuted_approvals(self, shop_id: str) -> list[ApprovalRequest]:
        """Approved records whose change has not been applied."""
        shop_id = _require_text("shopId", shop_id)
        return self.store.list_unexecuted(shop_id)

    # --- Remediation ---

    def retry_execution(self, approval_id: str) -> ApprovalRequest:
        approval = self.get_approval(approval_id)
        if approval.status != STATUS_APPROVED:
            raise InvalidStateError(
                f"Approval {approval_id} is {approval.status}; only approved records can be executed",
                details={"approvalId": approval_id, "status": approval.status},
            )
        if approval.executed_at is not None:
            raise InvalidStateError(
                f"Approval {approval_id} was already executed",
                details={"approvalId": approval_id, "executedAt": _as_utc(approval.executed_at).isoformat()},
            )
        logger.info("approval.execution_retry", approval_id=approval_id)
        return self._execute(approval)

    # --- Internals ---

    def _decide(
        self,
        approval: ApprovalRequest,
        status: str,
        reviewed_by: str,
        notes: str | None = None,
    ) -> ApprovalRequest:
        if approval.status != STATUS_PENDING:
            raise self._invalid_state(approval.id, approval.status, status)

        now = self._now()
        values: dict[str, Any] = {"status": status, "reviewed_at": now, "reviewed_by": reviewed_by}
        if status == STATUS_REJECTED:
            values["review_notes"] = notes
        if not self.store.transition(approval.id, STATUS_PENDING, values):
            # Lost a race against another decision or the expiry sweep
            current = self.store.get(approval.id)
            raise self._invalid_state(approval.id, current.status if current else "unknown", status)

        decided = self.store.get(approval.id)
        logger.info(
            f"approval.{status}",
            approval_id=decided.id,
            shop_id=decided.shop_id,
            reviewed_by=reviewed_by,
        )
        self.store.append_audit(
            f"approval.{status}",
            approval_id=decided.id,
            shop_id=decided.shop_id,
            actor=reviewed_by,
            details={"notes": notes} if notes else None,
        )
        self._inc("approvals_decisions_total", status=status)
        if reviewed_by != SYSTEM_AUTO_APPROVE and global_metrics:
            created = _as_utc(decided.created_at)
            if created is not None:
                try:
                    global_metrics["approvals_review_latency_seconds"].observe(
                        max((now - created).total_seconds(), 0.0)
                    )
                except Exception as e:
                    logger.warning("approval.metrics_failed", error=str(e))
        return decided

    def _execute(self, approval: ApprovalRequest) -> ApprovalRequest:
        now = self._now()
        if not self.store.claim_execution(approval.id, now, now - self.claim_timeout):
            current = self.store.get(approval.id)
            logger.warning("approval.execution_claimed", approval_id=approval.id)
            raise InvalidStateError(
                f"Approval {approval.id} is already executed or being executed",
                details={
                    "approvalId": approval.id,
                    "status": current.status if current else "unknown",
                    "executed": bool(current and current.executed_at),
                },
            )

        try:
            applied = self.executor.execute(approval)
        except (PayloadError, ExecutionError) as e:
            logger.error(
                "approval.execution_failed",
                approval_id=approval.id,
                shop_id=approval.shop_id,
                action_type=approval.action_type,
                error=e.message,
                code=e.code,
            )
            self.store.mark_execution_failed(approval.id, e.message)
            self.store.append_audit(
                "approval.execution_failed",
                approval_id=approval.id,
                shop_id=approval.shop_id,
                details={"code": e.code, "error": e.message},
            )
            raise
        except Exception:
            self.store.release_execution(approval.id)
            raise

        if applied:
            self.store.mark_executed(approval.id, self._now())
            self.store.append_audit("approval.executed", approval_id=approval.id, shop_id=approval.shop_id)
        else:
            # Not applied (dry run or unknown action); leave it retryable
            self.store.release_execution(approval.id)
            logger.info("approval.execution_skipped", approval_id=approval.id, action_type=approval.action_type)
        return self.store.get(approval.id)

    @staticmethod
    def _invalid_state(approval_id: str, current: str, target: str) -> InvalidStateError:
        logger.warning("approval.invalid_transition", approval_id=approval_id, status=current, target=target)
        return InvalidStateError(
            f"Approval {approval_id} is already {current}; cannot mark it {target}",
            details={"approvalId": approval_id, "status": current},
        )

    def _inc(self, name: str, amount: int = 1, **labels: str) -> None:
        if not global_metrics or amount <= 0:
            return
        try:
            global_metrics[name].labels(**labels).inc(amount)
        except Exception as e:
            logger.warning("approval.metrics_failed", metric=name, error=str(e))

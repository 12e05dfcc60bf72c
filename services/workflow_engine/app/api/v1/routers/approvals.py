"""
Approval queue endpoints.

Thin HTTP layer over ApprovalManager. Workflow errors propagate to the
exception handlers registered in ``main.create_app``, which render the
shared error envelope.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from ....core.logging import get_logger
from ....engine.approval_manager import ApprovalManager
from ....schemas.approvals import (
    ApprovalEnvelope,
    ApprovalListEnvelope,
    ApprovalResponse,
    ApproveRequest,
    BulkApproveEnvelope,
    BulkApproveItem,
    BulkApproveRequest,
    BulkRejectRequest,
    CountEnvelope,
    CreateApprovalRequest,
    RejectRequest,
)
from ...deps import get_approval_manager

router = APIRouter(tags=["approvals"])
logger = get_logger(__name__)


@router.post("/create-approval", response_model=ApprovalEnvelope)
def create_approval(
    payload: CreateApprovalRequest,
    manager: ApprovalManager = Depends(get_approval_manager),
) -> ApprovalEnvelope:
    """
    Queue an AI-generated change for review.

    High-confidence proposals are approved and applied immediately; the
    returned record then already has status ``approved``.
    """
    approval = manager.create_approval(
        shop_id=payload.shop_id,
        action_type=payload.action_type,
        entity_type=payload.entity_type,
        entity_id=payload.entity_id,
        current_data=payload.current_data,
        proposed_data=payload.proposed_data,
        confidence=payload.confidence,
        reasoning=payload.reasoning,
        priority=payload.priority,
    )
    return ApprovalEnvelope(data=ApprovalResponse.model_validate(approval))


@router.get("/approvals/pending/{shop_id}", response_model=ApprovalListEnvelope)
def list_pending(
    shop_id: str, manager: ApprovalManager = Depends(get_approval_manager)
) -> ApprovalListEnvelope:
    """Pending approvals for a shop, most urgent and most recent first."""
    rows = manager.get_pending_approvals(shop_id)
    return ApprovalListEnvelope(data=[ApprovalResponse.model_validate(a) for a in rows])


@router.get("/approvals/unexecuted/{shop_id}", response_model=ApprovalListEnvelope)
def list_unexecuted(
    shop_id: str, manager: ApprovalManager = Depends(get_approval_manager)
) -> ApprovalListEnvelope:
    """Approved changes that were never applied to the store."""
    rows = manager.get_unexecuted_approvals(shop_id)
    return ApprovalListEnvelope(data=[ApprovalResponse.model_validate(a) for a in rows])


@router.post("/approvals/bulk-approve", response_model=BulkApproveEnvelope)
def bulk_approve(
    payload: BulkApproveRequest,
    manager: ApprovalManager = Depends(get_approval_manager),
) -> BulkApproveEnvelope:
    results = manager.bulk_approve(payload.ids, payload.reviewed_by)
    items = [
        BulkApproveItem(
            id=r["id"],
            success=r["success"],
            data=ApprovalResponse.model_validate(r["data"]) if r.get("data") is not None else None,
            error=r.get("error"),
        )
        for r in results
    ]
    logger.info(
        "approval.bulk_approve",
        requested=len(items),
        succeeded=sum(1 for i in items if i.success),
    )
    return BulkApproveEnvelope(data=items)


@router.post("/approvals/bulk-reject", response_model=CountEnvelope)
def bulk_reject(
    payload: BulkRejectRequest,
    manager: ApprovalManager = Depends(get_approval_manager),
) -> CountEnvelope:
    count = manager.bulk_reject(payload.ids, payload.reviewed_by, payload.notes)
    return CountEnvelope(data={"rejected": count})


@router.post("/approvals/expire", response_model=CountEnvelope)
def expire(manager: ApprovalManager = Depends(get_approval_manager)) -> CountEnvelope:
    """Run one expiry sweep (for an external scheduler)."""
    return CountEnvelope(data={"expired": manager.expire_old_approvals()})


@router.get("/approvals/{approval_id}", response_model=ApprovalEnvelope)
def get_approval(
    approval_id: str, manager: ApprovalManager = Depends(get_approval_manager)
) -> ApprovalEnvelope:
    return ApprovalEnvelope(data=ApprovalResponse.model_validate(manager.get_approval(approval_id)))


@router.post("/approvals/{approval_id}/approve", response_model=ApprovalEnvelope)
def approve(
    approval_id: str,
    payload: ApproveRequest,
    manager: ApprovalManager = Depends(get_approval_manager),
) -> ApprovalEnvelope:
    approval = manager.approve_item(approval_id, payload.reviewed_by)
    return ApprovalEnvelope(data=ApprovalResponse.model_validate(approval))


@router.post("/approvals/{approval_id}/reject", response_model=ApprovalEnvelope)
def reject(
    approval_id: str,
    payload: RejectRequest,
    manager: ApprovalManager = Depends(get_approval_manager),
) -> ApprovalEnvelope:
    approval = manager.reject_item(approval_id, payload.reviewed_by, payload.notes)
    return ApprovalEnvelope(data=ApprovalResponse.model_validate(approval))


@router.post("/approvals/{approval_id}/execute", response_model=ApprovalEnvelope)
def execute(
    approval_id: str, manager: ApprovalManager = Depends(get_approval_manager)
) -> ApprovalEnvelope:
    """Re-drive execution of an approved change that was not applied."""
    approval = manager.retry_execution(approval_id)
    return ApprovalEnvelope(data=ApprovalResponse.model_validate(approval))

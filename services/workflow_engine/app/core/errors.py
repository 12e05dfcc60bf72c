"""
Error taxonomy for the approval workflow.

Each error carries a machine-readable ``code`` and the HTTP status the API
layer answers with. ``details`` is free-form context for operators, e.g. the
approval id an execution failure belongs to.
"""
from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    code = "WORKFLOW_ERROR"
    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            out["details"] = self.details
        return out


class ValidationError(WorkflowError):
    """Missing or malformed input, rejected before any state change."""

    code = "VALIDATION_ERROR"
    status_code = 422


class NotFoundError(WorkflowError):
    code = "APPROVAL_NOT_FOUND"
    status_code = 404


class InvalidStateError(WorkflowError):
    """Transition attempted on a record that is no longer pending."""

    code = "INVALID_STATE"
    status_code = 409


class PayloadError(WorkflowError):
    """Proposed data cannot be interpreted for the declared action type."""

    code = "PAYLOAD_ERROR"
    status_code = 422

    def __init__(self, approval_id: str, message: str) -> None:
        super().__init__(
            f"Approval {approval_id}: {message}",
            details={"approvalId": approval_id},
        )
        self.approval_id = approval_id


class ExecutionError(WorkflowError):
    """
    The remote apply call failed after the approval was committed.

    The approval keeps its ``approved`` status; the record is left for
    out-of-band remediation.
    """

    code = "EXECUTION_FAILED"
    status_code = 502

    def __init__(self, approval_id: str, message: str) -> None:
        super().__init__(
            f"Approval {approval_id} was approved but could not be applied: {message}",
            details={"approvalId": approval_id, "status": "approved"},
        )
        self.approval_id = approval_id


class UnknownActionTypeError(WorkflowError):
    code = "UNKNOWN_ACTION_TYPE"
    status_code = 422

    def __init__(self, action_type: str) -> None:
        super().__init__(f"Unknown action type: {action_type}", details={"actionType": action_type})
        self.action_type = action_type

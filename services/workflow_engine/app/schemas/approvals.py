"""
Pydantic schemas for the approval endpoints.

Bodies use camelCase keys on the wire. Every response is wrapped in the
shared envelope: ``{"success": true, "data": ...}`` on success and
``{"success": false, "error": {"code", "message", "details"?}}`` on failure.
"""
import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateApprovalRequest(CamelModel):
    """Request schema for queuing a proposed change."""

    shop_id: str = Field(..., min_length=1, max_length=255, description="Shop (tenant) identifier")
    action_type: str = Field(
        ...,
        min_length=1,
        max_length=64,
        description="Kind of change",
        examples=["product_update", "price_change", "inventory_adjust"],
    )
    entity_type: str = Field(..., min_length=1, max_length=32, examples=["product", "variant"])
    entity_id: str = Field(..., min_length=1, max_length=255, description="Commerce platform GID")
    current_data: Any = Field(None, description="Snapshot of the entity before the change")
    proposed_data: Any = Field(..., description="AI-suggested new state")
    # Strict: JSON booleans and numeric strings must not coerce into a score
    confidence: StrictFloat | None = Field(None, ge=0.0, le=1.0, description="Model confidence score")
    reasoning: str | None = Field(None, max_length=5000)
    priority: StrictInt = Field(0, description="Higher is more urgent")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "shopId": "demo-store.myshopify.com",
                "actionType": "product_update",
                "entityType": "product",
                "entityId": "gid://shopify/Product/1001",
                "currentData": {"title": "Mug", "description": None},
                "proposedData": {"metaTitle": "Ceramic Coffee Mug", "metaDescription": "..."},
                "confidence": 0.72,
                "reasoning": "AI-generated SEO with 72% confidence",
            }
        }
    )


class ApproveRequest(CamelModel):
    reviewed_by: str = Field(..., min_length=1, max_length=255)


class RejectRequest(CamelModel):
    reviewed_by: str = Field(..., min_length=1, max_length=255)
    notes: str | None = Field(None, max_length=5000)


class BulkApproveRequest(CamelModel):
    ids: list[str] = Field(..., min_length=1, max_length=500)
    reviewed_by: str = Field(..., min_length=1, max_length=255)


class BulkRejectRequest(CamelModel):
    ids: list[str] = Field(..., min_length=1, max_length=500)
    reviewed_by: str = Field(..., min_length=1, max_length=255)
    notes: str | None = Field(None, max_length=5000)


class ApprovalResponse(CamelModel):
    """An approval record as returned by the API."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: str
    shop_id: str
    action_type: str
    entity_type: str
    entity_id: str
    current_data: Any = None
    proposed_data: Any = None
    confidence: float | None = None
    reasoning: str | None = None
    priority: int = 0
    status: str = Field(..., description="pending, approved, rejected or expired")
    created_at: datetime
    expires_at: datetime
    reviewed_at: datetime | None = None
    reviewed_by: str | None = None
    review_notes: str | None = None
    executed_at: datetime | None = Field(None, description="When the change was applied")
    execution_error: str | None = Field(None, description="Last execution failure, if any")

    @field_validator("current_data", "proposed_data", mode="before")
    @classmethod
    def _decode_json(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except ValueError:
                return v
        return v

    @field_validator("created_at", "expires_at", "reviewed_at", "executed_at")
    @classmethod
    def _assume_utc(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Any = None


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: ErrorBody


class ApprovalEnvelope(CamelModel):
    success: bool = True
    data: ApprovalResponse


class ApprovalListEnvelope(CamelModel):
    success: bool = True
    data: list[ApprovalResponse]


class BulkApproveItem(CamelModel):
    id: str
    success: bool
    data: ApprovalResponse | None = None
    error: ErrorBody | None = None


class BulkApproveEnvelope(CamelModel):
    success: bool = True
    data: list[BulkApproveItem]


class CountEnvelope(CamelModel):
    success: bool = True
    data: dict[str, int]

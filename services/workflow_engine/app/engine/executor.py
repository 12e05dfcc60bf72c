"""
Applies approved proposals to the commerce platform.

Handlers are looked up by ``action_type`` in a dispatch table, so new kinds
of proposals can be registered without touching the approval state machine.
A handler receives the approval and its decoded proposed/current data and
returns True when the change was actually applied remotely.
"""
from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict

import httpx

from ..core.errors import ExecutionError, PayloadError, UnknownActionTypeError
from ..core.logging import get_logger
from ..core.metrics import metrics as global_metrics
from ..models.approvals import (
    ACTION_INVENTORY_ADJUST,
    ACTION_PRICE_CHANGE,
    ACTION_PRODUCT_UPDATE,
    ENTITY_VARIANT,
    ApprovalRequest,
)
from ..services.shopify_client import CommerceAPIError, ShopifyClient

Handler = Callable[[ApprovalRequest, Dict[str, Any], Dict[str, Any]], bool]

logger = get_logger(__name__)


def _decode(approval: ApprovalRequest, raw: str | None, *, required: bool) -> dict[str, Any]:
    if raw is None:
        if required:
            raise PayloadError(approval.id, "proposed data is missing")
        return {}
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise PayloadError(approval.id, f"stored data is not valid JSON ({e})")
    if data is None and not required:
        return {}
    if not isinstance(data, dict):
        raise PayloadError(approval.id, "data must be a JSON object")
    return data


class ActionExecutor:
    def __init__(self, client: ShopifyClient) -> None:
        self._client = client
        self._handlers: dict[str, Handler] = {
            ACTION_PRODUCT_UPDATE: self._product_update,
            ACTION_PRICE_CHANGE: self._price_change,
            ACTION_INVENTORY_ADJUST: self._inventory_adjust,
        }

    def register(self, action_type: str, handler: Handler) -> None:
        self._handlers[action_type] = handler

    def handler_for(self, action_type: str) -> Handler:
        try:
            return self._handlers[action_type]
        except KeyError:
            raise UnknownActionTypeError(action_type) from None

    def execute(self, approval: ApprovalRequest) -> bool:
        """
        Dispatch the approval's proposed change.

        Returns False when nothing was applied (unknown action type or a
        dry-run client). Raises PayloadError for uninterpretable proposals and
        ExecutionError when the remote call fails.
        """
        try:
            handler = self.handler_for(approval.action_type)
        except UnknownActionTypeError as e:
            logger.warning(
                "executor.unknown_action_type",
                approval_id=approval.id,
                action_type=e.action_type,
            )
            self._count(approval.action_type, "skipped")
            return False

        proposed = _decode(approval, approval.proposed_data, required=True)
        current = _decode(approval, approval.current_data, required=False)

        logger.info(
            "executor.executing",
            approval_id=approval.id,
            action_type=approval.action_type,
            entity_type=approval.entity_type,
            entity_id=approval.entity_id,
        )
        try:
            applied = handler(approval, proposed, current)
        except PayloadError:
            self._count(approval.action_type, "payload_error")
            raise
        except (CommerceAPIError, httpx.HTTPError) as e:
            self._count(approval.action_type, "failed")
            raise ExecutionError(approval.id, str(e)) from e

        self._count(approval.action_type, "applied" if applied else "skipped")
        return applied

    def _count(self, action_type: str, outcome: str) -> None:
        if global_metrics:
            try:
                global_metrics["approvals_executions_total"].labels(
                    action_type=action_type, outcome=outcome
                ).inc()
            except Exception as e:
                logger.warning("executor.metrics_failed", error=str(e))

    # --- Handlers ---

    def _product_update(
        self, approval: ApprovalRequest, proposed: dict[str, Any], current: dict[str, Any]
    ) -> bool:
        fields: dict[str, Any] = {}
        if "title" in proposed:
            fields["title"] = _as_text(approval, proposed["title"], "title")
        for key in ("descriptionHtml", "description"):
            if key in proposed:
                fields["descriptionHtml"] = _as_text(approval, proposed[key], key, allow_empty=True)
                break
        if "tags" in proposed:
            tags = proposed["tags"]
            if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
                raise PayloadError(approval.id, "tags must be a list of strings")
            fields["tags"] = tags
        seo = {}
        if "metaTitle" in proposed:
            seo["title"] = _as_text(approval, proposed["metaTitle"], "metaTitle", allow_empty=True)
        if "metaDescription" in proposed:
            seo["description"] = _as_text(
                approval, proposed["metaDescription"], "metaDescription", allow_empty=True
            )
        if seo:
            fields["seo"] = seo
        if not fields:
            raise PayloadError(approval.id, "product update contains no applicable fields")

        res = self._client.update_product(approval.entity_id, fields)
        return bool(res.get("ok"))

    def _price_change(
        self, approval: ApprovalRequest, proposed: dict[str, Any], current: dict[str, Any]
    ) -> bool:
        # Prices live on variants; a product GID here would be sent as a variant id
        if approval.entity_type != ENTITY_VARIANT:
            raise PayloadError(
                approval.id, f"price change targets a variant, not a {approval.entity_type}"
            )
        price = _as_price(approval, proposed.get("price"), "price")
        compare_at = None
        if proposed.get("compareAtPrice") is not None:
            compare_at = _as_price(approval, proposed["compareAtPrice"], "compareAtPrice")
        product_id = proposed.get("productId") or current.get("productId")
        if product_id is None:
            raise PayloadError(approval.id, "price change requires productId")
        product_id = _as_text(approval, product_id, "productId")

        res = self._client.update_variant_price(
            product_id, approval.entity_id, price, compare_at_price=compare_at
        )
        return bool(res.get("ok"))

    def _inventory_adjust(
        self, approval: ApprovalRequest, proposed: dict[str, Any], current: dict[str, Any]
    ) -> bool:
        if "inventoryItemId" not in proposed or "locationId" not in proposed:
            raise PayloadError(approval.id, "inventory adjustment requires inventoryItemId and locationId")
        item_id = _as_text(approval, proposed["inventoryItemId"], "inventoryItemId")
        location_id = _as_text(approval, proposed["locationId"], "locationId")
        reason = "correction"
        if proposed.get("reason") is not None:
            reason = _as_text(approval, proposed["reason"], "reason")

        if "delta" in proposed:
            delta = _as_int(approval, proposed["delta"], "delta")
        elif "quantity" in proposed and "quantity" in current:
            delta = _as_int(approval, proposed["quantity"], "quantity") - _as_int(
                approval, current["quantity"], "current quantity"
            )
        else:
            raise PayloadError(
                approval.id, "inventory adjustment requires delta, or quantity with a current quantity"
            )
        if delta == 0:
            logger.info("executor.inventory_noop", approval_id=approval.id)
            return True

        res = self._client.adjust_inventory(item_id, location_id, delta, reason=reason)
        return bool(res.get("ok"))


def _as_text(approval: ApprovalRequest, value: Any, field: str, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise PayloadError(approval.id, f"{field} must be a string, got {type(value).__name__}")
    if not allow_empty and not value.strip():
        raise PayloadError(approval.id, f"{field} must not be empty")
    return value


def _as_price(approval: ApprovalRequest, value: Any, field: str) -> str:
    if value is None or isinstance(value, bool):
        raise PayloadError(approval.id, f"{field} is required")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise PayloadError(approval.id, f"{field} is not a number: {value!r}")
    if not amount.is_finite() or amount < 0:
        raise PayloadError(approval.id, f"{field} must be a non-negative amount")
    return str(amount)


def _as_int(approval: ApprovalRequest, value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise PayloadError(approval.id, f"{field} must be an integer")
    return value

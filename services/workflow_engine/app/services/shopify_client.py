from __future__ import annotations

from typing import Any

import httpx

from ..core.config import get_settings
from ..core.logging import get_logger

PRODUCT_UPDATE_MUTATION = """
mutation productUpdate($input: ProductInput!) {
  productUpdate(input: $input) {
    product { id }
    userErrors { field message }
  }
}
"""

VARIANTS_BULK_UPDATE_MUTATION = """
mutation productVariantsBulkUpdate($productId: ID!, $variants: [ProductVariantsBulkInput!]!) {
  productVariantsBulkUpdate(productId: $productId, variants: $variants) {
    productVariants { id price }
    userErrors { field message }
  }
}
"""

INVENTORY_ADJUST_MUTATION = """
mutation inventoryAdjustQuantities($input: InventoryAdjustQuantitiesInput!) {
  inventoryAdjustQuantities(input: $input) {
    inventoryAdjustmentGroup { reason }
    userErrors { field message }
  }
}
"""


class CommerceAPIError(Exception):
    """The Admin API rejected a mutation or could not be reached."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class ShopifyClient:
    def __init__(
        self,
        shop_domain: str | None = None,
        access_token: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._shop_domain: str | None = shop_domain or settings.shopify_shop_domain
        self._access_token: str | None = access_token or settings.shopify_access_token
        self._api_version: str = api_version or settings.shopify_api_version
        self._timeout: float = timeout or settings.shopify_timeout_sec
        self._logger = get_logger(__name__)

    @property
    def dry_run(self) -> bool:
        return not self._shop_domain or not self._access_token

    @property
    def endpoint(self) -> str:
        return f"https://{self._shop_domain}/admin/api/{self._api_version}/graphql.json"

    def _with_retry(self, func):
        try:
            return func()
        except httpx.TransportError:
            try:
                return func()
            except httpx.TransportError:
                return func()

    def graphql(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        headers = {
            "X-Shopify-Access-Token": self._access_token or "",
            "Content-Type": "application/json",
        }

        def _call():
            with httpx.Client(timeout=self._timeout) as client:
                resp = client.post(
                    self.endpoint,
                    headers=headers,
                    json={"query": query, "variables": variables},
                )
                if resp.status_code >= 400:
                    raise CommerceAPIError(f"Admin API returned HTTP {resp.status_code}")
                return resp.json()

        data = self._with_retry(_call)
        if data.get("errors"):
            raise CommerceAPIError("GraphQL request failed", errors=data["errors"])
        return data.get("data") or {}

    def _mutate(self, name: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        if self.dry_run:
            self._logger.info("shopify.mutation.dry_run", mutation=name, variables=variables)
            return {"ok": False, "dry_run": True}

        data = self._graphql_logged(name, query, variables)
        result = data.get(name) or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            self._logger.warning("shopify.mutation.user_errors", mutation=name, errors=user_errors)
            messages = "; ".join(e.get("message", "") for e in user_errors)
            raise CommerceAPIError(f"{name} rejected: {messages}", errors=user_errors)
        self._logger.info("shopify.mutation.applied", mutation=name)
        return {"ok": True, "result": result}

    def _graphql_logged(self, name: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            return self.graphql(query, variables)
        except (CommerceAPIError, httpx.HTTPError) as e:
            self._logger.error("shopify.mutation.failed", mutation=name, error=str(e))
            raise

    def update_product(self, product_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Apply title/description/tags/SEO fields to a product."""
        return self._mutate(
            "productUpdate",
            PRODUCT_UPDATE_MUTATION,
            {"input": {"id": product_id, **fields}},
        )

    def update_variant_price(
        self,
        product_id: str,
        variant_id: str,
        price: str,
        compare_at_price: str | None = None,
    ) -> dict[str, Any]:
        variant: dict[str, Any] = {"id": variant_id, "price": price}
        if compare_at_price is not None:
            variant["compareAtPrice"] = compare_at_price
        return self._mutate(
            "productVariantsBulkUpdate",
            VARIANTS_BULK_UPDATE_MUTATION,
            {"productId": product_id, "variants": [variant]},
        )

    def adjust_inventory(
        self,
        inventory_item_id: str,
        location_id: str,
        delta: int,
        reason: str = "correction",
    ) -> dict[str, Any]:
        return self._mutate(
            "inventoryAdjustQuantities",
            INVENTORY_ADJUST_MUTATION,
            {
                "input": {
                    "reason": reason,
                    "name": "available",
                    "changes": [
                        {
                            "inventoryItemId": inventory_item_id,
                            "locationId": location_id,
                            "delta": delta,
                        }
                    ],
                }
            },
        )

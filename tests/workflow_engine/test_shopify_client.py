"""
Tests for ShopifyClient.

HTTP calls are mocked at httpx.Client; no network access.
"""
from unittest.mock import MagicMock, Mock, patch

import httpx
import pytest

from services.workflow_engine.app.services.shopify_client import CommerceAPIError, ShopifyClient

MODULE = "services.workflow_engine.app.services.shopify_client"


def _client() -> ShopifyClient:
    return ShopifyClient(
        shop_domain="demo-store.myshopify.com",
        access_token="shpat_test",
        api_version="2024-10",
        timeout=5,
    )


def _mock_http(response_json=None, status_code=200, side_effect=None):
    """Patch httpx.Client so that post() returns the given response."""
    http = MagicMock()
    http.__enter__.return_value = http
    if side_effect is not None:
        http.post.side_effect = side_effect
    else:
        http.post.return_value = Mock(status_code=status_code, json=Mock(return_value=response_json))
    return patch(f"{MODULE}.httpx.Client", return_value=http), http


class TestDryRun:
    def test_unconfigured_client_is_dry_run(self):
        with patch(f"{MODULE}.get_settings") as mock_settings:
            mock_settings.return_value = Mock(
                shopify_shop_domain=None,
                shopify_access_token=None,
                shopify_api_version="2024-10",
                shopify_timeout_sec=10.0,
            )
            client = ShopifyClient()

        with patch(f"{MODULE}.httpx.Client") as http_cls:
            result = client.update_product("gid://shopify/Product/1", {"title": "T"})

        assert result == {"ok": False, "dry_run": True}
        http_cls.assert_not_called()


class TestMutations:
    def test_endpoint(self):
        assert _client().endpoint == "https://demo-store.myshopify.com/admin/api/2024-10/graphql.json"

    def test_update_product_success(self):
        patcher, http = _mock_http(
            {"data": {"productUpdate": {"product": {"id": "gid://shopify/Product/1"}, "userErrors": []}}}
        )
        with patcher:
            result = _client().update_product("gid://shopify/Product/1", {"seo": {"title": "T"}})

        assert result["ok"] is True
        args, kwargs = http.post.call_args
        assert args[0].endswith("/graphql.json")
        assert kwargs["headers"]["X-Shopify-Access-Token"] == "shpat_test"
        assert kwargs["json"]["variables"] == {"input": {"id": "gid://shopify/Product/1", "seo": {"title": "T"}}}

    def test_update_variant_price_variables(self):
        patcher, http = _mock_http(
            {"data": {"productVariantsBulkUpdate": {"productVariants": [], "userErrors": []}}}
        )
        with patcher:
            _client().update_variant_price("P1", "V1", "19.99")

        variables = http.post.call_args.kwargs["json"]["variables"]
        assert variables == {"productId": "P1", "variants": [{"id": "V1", "price": "19.99"}]}

    def test_adjust_inventory_variables(self):
        patcher, http = _mock_http(
            {"data": {"inventoryAdjustQuantities": {"inventoryAdjustmentGroup": {}, "userErrors": []}}}
        )
        with patcher:
            _client().adjust_inventory("I1", "L1", -2)

        change = http.post.call_args.kwargs["json"]["variables"]["input"]["changes"][0]
        assert change == {"inventoryItemId": "I1", "locationId": "L1", "delta": -2}

    def test_user_errors_raise(self):
        patcher, _ = _mock_http(
            {"data": {"productUpdate": {"product": None, "userErrors": [{"field": ["title"], "message": "Title is too long"}]}}}
        )
        with patcher, pytest.raises(CommerceAPIError) as exc_info:
            _client().update_product("P1", {"title": "x" * 300})
        assert "Title is too long" in str(exc_info.value)
        assert exc_info.value.errors[0]["field"] == ["title"]

    def test_graphql_errors_raise(self):
        patcher, _ = _mock_http({"errors": [{"message": "Throttled"}]})
        with patcher, pytest.raises(CommerceAPIError):
            _client().update_product("P1", {"title": "T"})

    def test_http_error_status_raises(self):
        patcher, _ = _mock_http({}, status_code=401)
        with patcher, pytest.raises(CommerceAPIError, match="401"):
            _client().update_product("P1", {"title": "T"})


class TestRetry:
    def test_retries_transport_errors(self):
        ok = Mock(
            status_code=200,
            json=Mock(return_value={"data": {"productUpdate": {"userErrors": []}}}),
        )
        patcher, http = _mock_http(
            side_effect=[httpx.ConnectError("reset"), httpx.ReadTimeout("slow"), ok]
        )
        with patcher:
            result = _client().update_product("P1", {"title": "T"})

        assert result["ok"] is True
        assert http.post.call_count == 3

    def test_gives_up_after_three_attempts(self):
        patcher, http = _mock_http(side_effect=httpx.ConnectError("down"))
        with patcher, pytest.raises(httpx.ConnectError):
            _client().update_product("P1", {"title": "T"})
        assert http.post.call_count == 3

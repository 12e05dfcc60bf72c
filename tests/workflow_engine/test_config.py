"""Tests for settings loading and validation."""
import os

import pytest

from services.workflow_engine.app.core.config import Settings, get_settings, validate_settings


class TestSettings:
    def test_defaults(self):
        s = Settings(database_url="sqlite:///:memory:")
        assert s.port == 3003
        assert s.auto_approve_confidence_threshold == 0.85
        assert s.approval_ttl_days == 7
        assert s.expiry_sweeper_interval_sec == 10800
        assert s.shopify_api_version == "2024-10"

    def test_env_override(self):
        os.environ["AUTO_APPROVE_CONFIDENCE_THRESHOLD"] = "0.9"
        os.environ["APPROVAL_TTL_DAYS"] = "3"
        get_settings.cache_clear()
        try:
            s = get_settings()
            assert s.auto_approve_confidence_threshold == 0.9
            assert s.approval_ttl_days == 3
        finally:
            get_settings.cache_clear()


class TestValidateSettings:
    def test_valid(self):
        validate_settings(Settings(database_url="sqlite:///:memory:"))

    def test_database_url_required(self):
        with pytest.raises(ValueError, match="DATABASE_URL"):
            validate_settings(Settings(database_url=" "))

    @pytest.mark.parametrize("threshold", [-0.1, 1.1])
    def test_threshold_range(self, threshold):
        with pytest.raises(ValueError, match="THRESHOLD"):
            validate_settings(Settings(database_url="sqlite://", auto_approve_confidence_threshold=threshold))

    def test_ttl_positive(self):
        with pytest.raises(ValueError, match="TTL"):
            validate_settings(Settings(database_url="sqlite://", approval_ttl_days=0))

    def test_sweep_interval_positive(self):
        with pytest.raises(ValueError, match="INTERVAL"):
            validate_settings(Settings(database_url="sqlite://", expiry_sweeper_interval_sec=0))

    def test_shop_without_token(self):
        with pytest.raises(ValueError, match="SHOPIFY_ACCESS_TOKEN"):
            validate_settings(
                Settings(database_url="sqlite://", shopify_shop_domain="demo.myshopify.com")
            )

    def test_production_wildcard_cors_warns(self, capsys):
        validate_settings(Settings(database_url="sqlite://", env="production"))
        assert "SECURITY WARNING" in capsys.readouterr().out

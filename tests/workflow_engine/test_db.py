"""
Tests for the database module: URL normalization, engine caching and the
health probe.
"""
from unittest.mock import patch

import pytest
from sqlalchemy.engine import Engine

import services.workflow_engine.app.db as db_module
from services.workflow_engine.app.core.config import get_settings
from services.workflow_engine.app.db import (
    _normalize_database_url,
    check_database_health,
    get_engine,
    get_sessionmaker,
)


class TestNormalizeDatabaseUrl:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("postgresql://u:p@db:5432/app", "postgresql+psycopg://u:p@db:5432/app"),
            ("postgres://u:p@db:5432/app", "postgresql+psycopg://u:p@db:5432/app"),
            ("postgresql+psycopg://u:p@db/app", "postgresql+psycopg://u:p@db/app"),
            ("sqlite:///./approvals.db", "sqlite:///./approvals.db"),
        ],
    )
    def test_normalize(self, url, expected):
        assert _normalize_database_url(url) == expected


class TestEngine:
    def setup_method(self):
        self._saved = (db_module._engine, db_module._SessionLocal)
        db_module._engine = None
        db_module._SessionLocal = None
        get_settings.cache_clear()

    def teardown_method(self):
        if db_module._engine is not None:
            db_module._engine.dispose()
        db_module._engine, db_module._SessionLocal = self._saved
        get_settings.cache_clear()

    def test_engine_from_settings_is_cached(self):
        engine = get_engine()

        assert isinstance(engine, Engine)
        assert engine.url.drivername == "sqlite"
        assert get_engine() is engine

    def test_sessionmaker_keeps_attributes_after_commit(self):
        maker = get_sessionmaker()

        assert maker.kw["expire_on_commit"] is False
        assert get_sessionmaker() is maker

    def test_health_ok(self):
        assert check_database_health() == {"ok": True, "details": "ok"}

    def test_health_reports_connection_failure(self):
        engine = get_engine()
        with patch.object(type(engine), "connect", side_effect=RuntimeError("refused")):
            result = check_database_health()

        assert result == {"ok": False, "details": "refused"}

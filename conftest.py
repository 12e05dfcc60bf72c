"""
Root conftest.py for pytest configuration and shared fixtures.
"""
import os
from datetime import UTC, datetime, timedelta
from typing import Generator
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment BEFORE importing any app code
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["TESTING"] = "true"

# Disable background threads and limits that interfere with tests
os.environ["EXPIRY_SWEEPER_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"

# Never talk to a real store
os.environ.pop("SHOPIFY_SHOP_DOMAIN", None)
os.environ.pop("SHOPIFY_ACCESS_TOKEN", None)


class FrozenClock:
    """Callable clock for ApprovalManager; advance() moves time forward."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="function")
def test_db_engine():
    """
    In-memory SQLite engine, one per test so every test starts empty.
    """
    from services.workflow_engine.app.db import Base
    # Import all models so they're registered with Base.metadata
    from services.workflow_engine.app.models.approvals import ApprovalRequest  # noqa: F401
    from services.workflow_engine.app.models.audit_log import ApprovalAuditLog  # noqa: F401

    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # Required for SQLite in-memory
        echo=False,
    )
    Base.metadata.create_all(engine)

    yield engine

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_db_engine) -> Generator[Session, None, None]:
    SessionLocal = sessionmaker(bind=test_db_engine, expire_on_commit=False)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def shopify_client():
    """ShopifyClient stand-in whose mutations all succeed."""
    from services.workflow_engine.app.services.shopify_client import ShopifyClient

    client = Mock(spec=ShopifyClient)
    client.update_product.return_value = {"ok": True, "result": {}}
    client.update_variant_price.return_value = {"ok": True, "result": {}}
    client.adjust_inventory.return_value = {"ok": True, "result": {}}
    return client


@pytest.fixture
def executor(shopify_client):
    from services.workflow_engine.app.engine.executor import ActionExecutor

    return ActionExecutor(shopify_client)


@pytest.fixture
def clock():
    return FrozenClock(datetime(2025, 10, 1, 12, 0, tzinfo=UTC))


@pytest.fixture
def store(db_session):
    from services.workflow_engine.app.engine.store import SqlApprovalStore

    return SqlApprovalStore(db_session)


@pytest.fixture
def manager(store, executor, clock):
    from services.workflow_engine.app.engine.approval_manager import ApprovalManager

    return ApprovalManager(store=store, executor=executor, clock=clock)


@pytest.fixture(scope="function")
def client(test_db_engine, db_session: Session, executor) -> Generator[TestClient, None, None]:
    """
    FastAPI test client wired to the test database and the mocked executor.
    """
    import services.workflow_engine.app.db as db_module
    from services.workflow_engine.app.api.deps import get_action_executor, get_db_session
    from services.workflow_engine.app.main import app

    original_engine = db_module._engine
    original_sessionmaker = db_module._SessionLocal

    db_module._engine = test_db_engine
    db_module._SessionLocal = sessionmaker(bind=test_db_engine, expire_on_commit=False)

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_action_executor] = lambda: executor

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    db_module._engine = original_engine
    db_module._SessionLocal = original_sessionmaker


@pytest.fixture
def sample_approval_data():
    """Low-confidence SEO proposal, as sent by the dashboard."""
    return {
        "shopId": "demo-store.myshopify.com",
        "actionType": "product_update",
        "entityType": "product",
        "entityId": "gid://shopify/Product/1001",
        "currentData": {"title": "Mug", "description": "A mug"},
        "proposedData": {
            "metaTitle": "Handmade Ceramic Coffee Mug | Demo Store",
            "metaDescription": "A 12oz stoneware mug, glazed by hand.",
        },
        "confidence": 0.62,
        "reasoning": "AI-generated SEO with 62% confidence",
    }


@pytest.fixture(autouse=True)
def reset_environment():
    """Reset environment variables after each test."""
    original_env = os.environ.copy()
    yield
    os.environ.clear()
    os.environ.update(original_env)

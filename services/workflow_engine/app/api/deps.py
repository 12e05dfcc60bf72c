from collections.abc import Generator, Iterator
from contextlib import contextmanager
from datetime import timedelta
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..db import get_sessionmaker
from ..engine.approval_manager import ApprovalManager
from ..engine.executor import ActionExecutor
from ..engine.policy import ConfidencePolicy
from ..engine.store import SqlApprovalStore
from ..services.shopify_client import ShopifyClient


def get_db_session() -> Generator[Session, None, None]:
    SessionLocal = get_sessionmaker()
    with SessionLocal() as session:
        yield session


@lru_cache(maxsize=1)
def get_shopify_client() -> ShopifyClient:
    return ShopifyClient()


def get_action_executor() -> ActionExecutor:
    return ActionExecutor(get_shopify_client())


def build_approval_manager(session: Session, executor: ActionExecutor) -> ApprovalManager:
    settings = get_settings()
    return ApprovalManager(
        store=SqlApprovalStore(session),
        executor=executor,
        policy=ConfidencePolicy(threshold=settings.auto_approve_confidence_threshold),
        ttl=timedelta(days=settings.approval_ttl_days),
    )


def get_approval_manager(
    session: Session = Depends(get_db_session),
    executor: ActionExecutor = Depends(get_action_executor),
) -> ApprovalManager:
    return build_approval_manager(session, executor)


@contextmanager
def manager_scope() -> Iterator[ApprovalManager]:
    """Manager bound to a fresh session, for work outside a request."""
    SessionLocal = get_sessionmaker()
    with SessionLocal() as session:
        yield build_approval_manager(session, get_action_executor())

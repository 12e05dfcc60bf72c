from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from .core.config import get_settings

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker[Session]] = None


class Base(DeclarativeBase):
    pass


def _normalize_database_url(url: str) -> str:
    """Pin the psycopg (v3) driver for bare postgres URLs.

    Hosting platforms hand out ``postgres://`` or ``postgresql://`` URLs;
    SQLAlchemy would otherwise pick psycopg2, which is not installed.
    """
    for scheme in ("postgres://", "postgresql://"):
        if url.startswith(scheme):
            return "postgresql+psycopg://" + url[len(scheme):]
    return url


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Shared across the request threads and the expiry sweeper
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 5, "pool_recycle": 1800}


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        url = _normalize_database_url(get_settings().database_url)
        _engine = create_engine(url, future=True, **_engine_options(url))
    return _engine


def get_sessionmaker() -> sessionmaker[Session]:
    global _SessionLocal
    if _SessionLocal is None:
        # Records are returned to callers after commit; keep attributes loaded
        _SessionLocal = sessionmaker(bind=get_engine(), expire_on_commit=False, future=True)
    return _SessionLocal


def check_database_health() -> dict:
    """``SELECT 1`` against the approval database, for the health endpoint."""
    try:
        with get_engine().connect() as connection:
            ok = connection.execute(text("SELECT 1")).scalar() == 1
    except Exception as exc:  # noqa: BLE001 - surfaced to operators via /health
        return {"ok": False, "details": str(exc)}
    return {"ok": ok, "details": "ok" if ok else "unexpected result"}

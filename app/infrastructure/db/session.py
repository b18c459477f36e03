"""
Database session management (SQLAlchemy)

One engine per process; request handlers get a session via get_db(),
scripts use session_scope().
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import DeclarativeBase, sessionmaker, Session

from app.config import get_settings


class Base(DeclarativeBase):
    """
    Declarative base for the settings and weekly record tables
    """
    pass


_engine = None
_SessionLocal = None


def get_engine():
    """Engine for DATABASE_URL, created on first use"""
    global _engine
    if _engine is None:
        _engine = create_engine(get_settings().get_sqlalchemy_url(), pool_pre_ping=True)
    return _engine


def get_session_factory():
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)
    return _SessionLocal


def get_db() -> Iterator[Session]:
    """
    FastAPI dependency: one session per request, always closed

    Usage:
        @router.get("/api/v1/settings")
        def read_settings(db: Session = Depends(get_db)):
            ...
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for scripts: rolled back on error, always closed"""
    db = get_session_factory()()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def check_db_connection() -> None:
    """
    Readiness check: one round trip through the application engine

    Raises:
        sqlalchemy.exc.OperationalError: database unreachable
    """
    with get_engine().connect() as conn:
        conn.execute(text("SELECT 1"))

"""
Database configuration and session management.
Uses SQLAlchemy 2.0 patterns.
"""

import os
from collections.abc import Generator
from functools import wraps
from typing import Any, Callable, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from shared.config.settings import DATABASE_URL, settings
from shared.utils.exceptions import StoreError

T = TypeVar("T")


def _calculate_pool_size() -> int:
    """
    Calculate pool size based on CPU cores.
    Formula: (2 * CPU cores) + 1, capped at 20.
    """
    cores = os.cpu_count() or 4
    return min(cores * 2 + 1, 20)


def _engine_options(url: str) -> dict[str, Any]:
    """Engine keyword arguments for the configured backend."""
    if url.startswith("sqlite"):
        # Writers wait on the database lock instead of failing immediately
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings.db_busy_timeout_seconds,
            },
        }
    return {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_size": _calculate_pool_size(),
        "max_overflow": 15,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": 1800,  # Recycle connections after 30 minutes
        "connect_args": {"connect_timeout": 10},
    }


engine = create_engine(DATABASE_URL, echo=False, **_engine_options(DATABASE_URL))

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency for database sessions.

    Usage:
        @router.get("/tables")
        def list_tables(db: Session = Depends(get_db)):
            return TableLockService(db).list_tables()

    The session is automatically closed after the request completes.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def rollback_on_error(method: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator for service methods that write through self._db.

    Mutations lock and write rows before they finish validating. If the
    method raises, the session is rolled back so none of that is left
    pending for the caller's next commit.

    Usage:
        @rollback_on_error
        def add_item(self, ...):
            self._locks.lock_for_session(...)
            ...
            safe_commit(self._db, "add to cart")
    """
    @wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except Exception:
            self._db.rollback()
            raise

    return wrapper


def safe_commit(db: Session, operation: str = "commit") -> None:
    """
    Commit with automatic rollback on failure.

    The whole pending write set is applied or none of it is. Driver
    errors surface as StoreError so callers see one transient failure type.
    """
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreError(operation, error=str(e)) from e

"""
Infrastructure module: Database.

Provides:
- Database sessions, safe_commit and rollback_on_error (db.py)
"""

from shared.infrastructure.db import (
    engine,
    SessionLocal,
    get_db,
    rollback_on_error,
    safe_commit,
)

__all__ = [
    "engine",
    "SessionLocal",
    "get_db",
    "rollback_on_error",
    "safe_commit",
]

"""
Common utilities shared across routers.
"""

from .session import SESSION_HEADER, get_session_token

__all__ = [
    "SESSION_HEADER",
    "get_session_token",
]

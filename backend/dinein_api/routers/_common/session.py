"""
Diner session resolution.

The session token is an opaque value the client keeps for the length of its
visit. It is read once here, at the router boundary, and passed explicitly
to every service call. Services decide whether a missing token is an error.
"""

from fastapi import Header

SESSION_HEADER = "X-Session-Token"


def get_session_token(
    x_session_token: str | None = Header(default=None, alias=SESSION_HEADER),
) -> str | None:
    """Session token of the caller, or None when the header is absent or blank."""
    if x_session_token is None:
        return None
    token = x_session_token.strip()
    return token or None

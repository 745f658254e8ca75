"""
Test helpers shared by several test modules.
"""

from datetime import datetime, timedelta, timezone

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Injectable clock that only moves when told to."""

    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


def naive_utc(value: datetime) -> datetime:
    """SQLite hands datetimes back without tzinfo; compare on naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def session_headers(token: str) -> dict[str, str]:
    return {"X-Session-Token": token}

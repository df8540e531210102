"""
Timestamp helpers

All persisted timestamps are naive UTC so they compare cleanly across
SQLite and Postgres.
"""
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as naive UTC"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values pass through"""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

"""
Timestamps for created_at/updated_at.

All values are produced here, aware and in UTC, so ordering by creation
time compares like with like.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """
    Return ``value`` as an aware UTC datetime.

    SQLite drops tzinfo on the way back out of a DateTime(timezone=True)
    column. Everything was written by utc_now(), so naive values are UTC.

    Example:
        >>> as_utc(datetime(2024, 1, 1)).tzinfo
        datetime.timezone.utc
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

"""
UTC time helpers.

Every instant distcron stores or compares is a timezone-aware UTC
``datetime``.  Some backends (SQLite) hand naive values back; ``as_utc``
re-tags them at the boundary.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime.

    Naive datetimes are assumed to already be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_iso8601(value: datetime | None) -> str | None:
    """Format as ISO-8601 in UTC, passing ``None`` through."""
    if value is None:
        return None
    return as_utc(value).isoformat()


__all__ = ["as_utc", "to_iso8601", "utc_now"]

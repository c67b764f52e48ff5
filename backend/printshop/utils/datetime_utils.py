"""Datetime utility functions."""

from datetime import UTC, datetime

# Sort key for orders without a creation timestamp (oldest possible)
EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Convert a datetime to UTC, assuming UTC for naive values.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware UTC datetime, or None if input was None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)

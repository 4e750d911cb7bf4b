"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def from_block_time(value: int | float | str | None) -> datetime | None:
    """
    Convert a block's unix time to an aware UTC datetime.

    Args:
        value: Seconds since epoch as reported by the node

    Returns:
        Aware datetime, or None when the value is missing or unparsable
    """
    if value is None or value == "":
        return None
    try:
        seconds = int(value)
    except (TypeError, ValueError):
        return None
    if seconds <= 0:
        return None
    return datetime.fromtimestamp(seconds, tz=UTC)

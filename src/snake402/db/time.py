# src/snake402/db/time.py
"""Time utilities for database models.

Timestamps are persisted as integer milliseconds since the Unix epoch.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def to_epoch_ms(moment: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return int(moment.timestamp() * 1000)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds back to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, UTC)

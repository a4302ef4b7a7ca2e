"""
Time Utilities

Binance reports every timestamp as milliseconds since the Unix epoch, and the
market data layer keeps them in that form. The helpers here produce "now" in
milliseconds, align timestamps to interval boundaries and convert to datetime
objects where a calendar view is needed.
"""

from datetime import datetime, timezone
from typing import Union


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Timezone-aware UTC datetime for an epoch timestamp.

    Values above 1e12 are read as milliseconds, anything else as seconds,
    so both Binance times and time.time() values are accepted.

    Raises:
        ValueError: If the timestamp is negative or out of range

    Example:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """Epoch seconds (or ms) for a datetime; naive values count as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    seconds = dt.timestamp()
    return int(seconds * 1000) if milliseconds else int(seconds)


def current_utc_timestamp(milliseconds: bool = False) -> int:
    return datetime_to_timestamp(datetime.now(timezone.utc), milliseconds)


def floor_timestamp(timestamp_ms: int, step_ms: int) -> int:
    """
    Align a millisecond timestamp down to the start of its interval.

    Example:
        >>> floor_timestamp(1704112200000, 3_600_000)  # 12:30 UTC
        1704110400000                                # 12:00 UTC
    """
    if step_ms <= 0:
        raise ValueError(f"Step must be positive: {step_ms}")
    return timestamp_ms - (timestamp_ms % step_ms)


def local_hour(timestamp_ms: int) -> int:
    """Hour of day (0-23) of a millisecond timestamp in the host's local timezone."""
    return datetime.fromtimestamp(timestamp_ms / 1000.0).hour

"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: Millisecond timestamps, interval alignment, datetime conversion
    - timeframes: Timeframe -> Binance interval token / duration mapping
"""

from core.utils.time import current_utc_timestamp, floor_timestamp, to_utc_datetime
from core.utils.timeframes import resolve_timeframe, timeframe_to_interval, timeframe_to_ms

__all__ = [
    "current_utc_timestamp",
    "floor_timestamp",
    "to_utc_datetime",
    "resolve_timeframe",
    "timeframe_to_interval",
    "timeframe_to_ms",
]

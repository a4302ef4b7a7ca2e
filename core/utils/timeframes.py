"""
Timeframe Utilities

Maps the timeframe strings used by callers ("1m", "4h", ...) to the Binance
kline interval token and to the interval length in milliseconds.

Unrecognized timeframes resolve to one hour for both the token and the
duration, so a typo degrades to hourly candles instead of failing.
"""

from typing import Dict, Tuple

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

DEFAULT_TIMEFRAME = "1h"

# timeframe -> (Binance interval token, duration in ms)
TIMEFRAMES: Dict[str, Tuple[str, int]] = {
    "1m": ("1m", MINUTE_MS),
    "5m": ("5m", 5 * MINUTE_MS),
    "15m": ("15m", 15 * MINUTE_MS),
    "30m": ("30m", 30 * MINUTE_MS),
    "1h": ("1h", HOUR_MS),
    "4h": ("4h", 4 * HOUR_MS),
    "1d": ("1d", DAY_MS),
}


def resolve_timeframe(timeframe: str) -> Tuple[str, int]:
    """
    Resolve a timeframe to its (interval token, duration ms) pair.

    Example:
        >>> resolve_timeframe("15m")
        ('15m', 900000)
        >>> resolve_timeframe("2w")
        ('1h', 3600000)
    """
    return TIMEFRAMES.get(timeframe, TIMEFRAMES[DEFAULT_TIMEFRAME])


def timeframe_to_interval(timeframe: str) -> str:
    """Binance kline interval token for a timeframe."""
    return resolve_timeframe(timeframe)[0]


def timeframe_to_ms(timeframe: str) -> int:
    """Length of one candle of the given timeframe in milliseconds."""
    return resolve_timeframe(timeframe)[1]

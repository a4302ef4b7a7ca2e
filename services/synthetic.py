"""
Synthetic Market Data Generator

Produces plausible market data when the live Binance API is unavailable:
- static quotes for the handful of symbols seeded at startup
- a fixed fallback price table for price lookups
- OHLCV history generated as a random walk with session-hour volatility

The generator is the system of record in FALLBACK mode, so none of its
methods can fail: unknown symbols get the default base price and every
history request returns exactly the requested number of candles.
"""

import random
from typing import Dict, List, Optional, Tuple

from core.logging import get_logger
from core.schemas import Candle, Quote
from core.utils.time import current_utc_timestamp, floor_timestamp, local_hour
from core.utils.timeframes import timeframe_to_ms


DEFAULT_PRICE = 100.0
DEFAULT_VOLUME = 125_000.0

# Price lookups in FALLBACK mode (exact symbol match)
FALLBACK_PRICES: Dict[str, float] = {
    "BTCUSDT": 42_500.0,
    "ETHUSDT": 2_650.0,
    "ADAUSDT": 0.485,
    "DOTUSDT": 7.85,
}

# symbol -> (price, change, change_percent) for quotes seeded at startup
STATIC_QUOTES: Dict[str, Tuple[float, float, float]] = {
    "BTCUSDT": (42_500.0, 1_250.0, 3.02),
    "ETHUSDT": (2_650.0, -45.0, -1.67),
    "ADAUSDT": (0.485, 0.012, 2.54),
}

# Starting prices for generated history, matched by symbol substring in order
HISTORY_BASE_PRICES: Tuple[Tuple[str, float], ...] = (
    ("BTC", 42_500.0),
    ("ETH", 2_650.0),
    ("ADA", 0.485),
    ("SOL", 85.5),
    ("DOT", 7.85),
)

# Per-step volatility as a fraction of price
BTC_VOLATILITY = 0.008
DEFAULT_VOLATILITY = 0.012
SESSION_HOURS = (9, 16)  # inclusive, local time
SESSION_VOLATILITY_MULTIPLIER = 1.5

WICK_FRACTION = 0.005
PRICE_FLOOR_FRACTION = 0.1
VOLUME_RANGE = (50.0, 250.0)


class SyntheticDataGenerator:
    """
    Stateless source of synthetic quotes and candles.

    Attributes:
        rng: Random source (inject a seeded random.Random for reproducible output)

    Example:
        >>> gen = SyntheticDataGenerator(rng=random.Random(42))
        >>> candles = gen.generate_history("BTCUSDT", "1h", 24)
        >>> len(candles)
        24
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.logger = get_logger(__name__)

    # ============================================
    # Static Data
    # ============================================

    @staticmethod
    def fallback_price(symbol: str) -> float:
        """Fixed price used when a live price lookup is impossible."""
        return FALLBACK_PRICES.get(symbol.strip().upper(), DEFAULT_PRICE)

    def static_quote(self, symbol: str) -> Quote:
        """
        Plausible fixed quote for a symbol.

        Known symbols carry a realistic 24h change; others get the fallback
        price with zero change.
        """
        symbol = symbol.strip().upper()
        price, change, change_percent = STATIC_QUOTES.get(
            symbol, (self.fallback_price(symbol), 0.0, 0.0)
        )
        return Quote(
            symbol=symbol,
            price=price,
            change=change,
            change_percent=change_percent,
            volume=DEFAULT_VOLUME,
            timestamp=current_utc_timestamp(milliseconds=True),
        )

    # ============================================
    # History Generation
    # ============================================

    @staticmethod
    def base_price(symbol: str) -> float:
        """Starting price of generated history for a symbol."""
        symbol = symbol.upper()
        for fragment, price in HISTORY_BASE_PRICES:
            if fragment in symbol:
                return price
        return DEFAULT_PRICE

    @staticmethod
    def volatility(symbol: str) -> float:
        return BTC_VOLATILITY if "BTC" in symbol.upper() else DEFAULT_VOLATILITY

    def generate_history(
        self,
        symbol: str,
        timeframe: str,
        count: int,
        now_ms: Optional[int] = None
    ) -> List[Candle]:
        """
        Generate `count` candles ending at the current interval boundary.

        The last candle opens at the most recent timeframe boundary at or
        before `now_ms`; earlier candles step back one timeframe each. The
        walk runs oldest to newest, so each close becomes the next open.

        Args:
            symbol: Trading pair (selects base price and volatility)
            timeframe: Timeframe string (unknown values mean "1h")
            count: Number of candles to produce
            now_ms: Reference time in ms epoch (defaults to now)

        Returns:
            Candles ordered oldest first, with a constant timestamp step
        """
        if count <= 0:
            return []

        step = timeframe_to_ms(timeframe)
        now_ms = now_ms if now_ms is not None else current_utc_timestamp(milliseconds=True)
        last_open = floor_timestamp(now_ms, step)
        volatility = self.volatility(symbol)
        current_price = self.base_price(symbol)

        candles: List[Candle] = []
        for i in range(count - 1, -1, -1):
            timestamp = last_open - i * step

            hour = local_hour(timestamp)
            multiplier = (
                SESSION_VOLATILITY_MULTIPLIER
                if SESSION_HOURS[0] <= hour <= SESSION_HOURS[1]
                else 1.0
            )

            change = (self.rng.random() - 0.5) * current_price * volatility * multiplier
            open_ = current_price
            close = max(current_price * PRICE_FLOOR_FRACTION, current_price + change)

            high = max(open_, close) + self.rng.random() * current_price * WICK_FRACTION
            low = min(open_, close) - self.rng.random() * current_price * WICK_FRACTION
            volume = self.rng.uniform(*VOLUME_RANGE)

            candles.append(
                Candle(
                    timestamp=timestamp,
                    open=open_,
                    high=high,
                    low=low,
                    close=close,
                    volume=volume,
                )
            )
            current_price = close

        self.logger.debug(f"Generated {count} synthetic {timeframe} candles for {symbol.upper()}")
        return candles

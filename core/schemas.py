"""
Normalized Data Schemas

This module defines Pydantic models for all market data types served by the
market data layer. Whether a value came from the live Binance API or from the
synthetic generator, callers receive exactly these shapes.

Models:
    - Mode: LIVE or FALLBACK data sourcing
    - Quote: Latest price / 24h change snapshot for a symbol
    - Candle: Open-High-Low-Close-Volume aggregate for one interval
    - OrderBookSnapshot: Ranked bid/ask levels
    - PnLResult: Profit/loss of a position at the current price

All models are frozen: a refresh produces a new instance, it never mutates the
previous one. Timestamps are Unix epoch milliseconds, as Binance reports them.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.utils.time import current_utc_timestamp, to_utc_datetime


# ============================================
# Enumerations
# ============================================

class Mode(str, Enum):
    """Where market data is sourced from. Fixed once at startup."""

    LIVE = "live"
    FALLBACK = "fallback"


class PositionSide(str, Enum):
    """Direction of a position for PnL calculation."""

    LONG = "LONG"
    SHORT = "SHORT"


# ============================================
# Quote (Ticker) Schema
# ============================================

class Quote(BaseModel):
    """
    Latest price snapshot for a trading pair.

    Attributes:
        symbol: Trading pair in uppercase (e.g., "BTCUSDT")
        price: Last traded price
        change: Absolute 24h price change
        change_percent: 24h price change in percent
        volume: 24h traded volume in base asset
        timestamp: When the snapshot was taken (ms epoch)

    Example:
        >>> Quote(symbol="btcusdt", price=42500.0, change=1250.0,
        ...       change_percent=3.02, volume=125000.0, timestamp=1704110400000)
        Quote(symbol='BTCUSDT', ...)
    """

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., description="Trading pair symbol in uppercase", examples=["BTCUSDT"])
    price: float = Field(..., ge=0, description="Last traded price")
    change: float = Field(0.0, description="Absolute 24h price change")
    change_percent: float = Field(0.0, description="24h price change in percent")
    volume: float = Field(0.0, ge=0, description="24h volume in base asset")
    timestamp: int = Field(default_factory=lambda: current_utc_timestamp(milliseconds=True))

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Ensure symbol is uppercase"""
        return v.strip().upper()

    @classmethod
    def placeholder(cls, symbol: str) -> "Quote":
        """Zero-valued quote used before the first refresh of a subscription."""
        return cls(symbol=symbol, price=0.0, change=0.0, change_percent=0.0, volume=0.0)

    @property
    def is_placeholder(self) -> bool:
        return self.price <= 0


# ============================================
# Candle (Kline) Schema
# ============================================

class Candle(BaseModel):
    """
    Open-High-Low-Close-Volume aggregate over one interval.

    Attributes:
        timestamp: Interval open time (ms epoch)
        open: First price in the interval
        high: Highest price in the interval
        low: Lowest price in the interval
        close: Last price in the interval
        volume: Traded volume in base asset

    Invariant (enforced on construction):
        low <= min(open, close) and high >= max(open, close)
    """

    model_config = ConfigDict(frozen=True)

    timestamp: int = Field(..., ge=0, description="Interval open time in ms epoch")
    open: float = Field(..., ge=0)
    high: float = Field(..., ge=0)
    low: float = Field(..., ge=0)
    close: float = Field(..., ge=0)
    volume: float = Field(..., ge=0)

    @model_validator(mode="after")
    def check_ohlc(self) -> "Candle":
        if self.low > min(self.open, self.close):
            raise ValueError(f"Low ({self.low}) must be <= Open ({self.open}) and Close ({self.close})")
        if self.high < max(self.open, self.close):
            raise ValueError(f"High ({self.high}) must be >= Open ({self.open}) and Close ({self.close})")
        return self

    @property
    def open_time(self) -> datetime:
        """Interval open time as a UTC datetime."""
        return to_utc_datetime(self.timestamp)


# ============================================
# Order Book Schema
# ============================================

PriceLevel = Tuple[float, float]


class OrderBookSnapshot(BaseModel):
    """
    Order book depth for a symbol.

    Attributes:
        symbol: Trading pair in uppercase
        bids: (price, quantity) levels, best (highest) price first
        asks: (price, quantity) levels, best (lowest) price first
        timestamp: When the snapshot was taken (ms epoch)
    """

    model_config = ConfigDict(frozen=True)

    symbol: str
    bids: List[PriceLevel] = Field(default_factory=list)
    asks: List[PriceLevel] = Field(default_factory=list)
    timestamp: int = Field(default_factory=lambda: current_utc_timestamp(milliseconds=True))

    @field_validator("symbol")
    @classmethod
    def validate_symbol(cls, v: str) -> str:
        """Ensure symbol is uppercase"""
        return v.strip().upper()

    @property
    def best_bid(self) -> Optional[PriceLevel]:
        return self.bids[0] if self.bids else None

    @property
    def best_ask(self) -> Optional[PriceLevel]:
        return self.asks[0] if self.asks else None


# ============================================
# PnL Schema
# ============================================

class PnLResult(BaseModel):
    """Profit/loss of a position valued at `current_price`."""

    model_config = ConfigDict(frozen=True)

    pnl: float
    pnl_percent: float
    current_price: float


# ============================================
# Helper Functions
# ============================================

def validate_candle_sequence(candles: Sequence[Candle], step_ms: Optional[int] = None) -> bool:
    """
    Validate that a candle sequence is ordered and gap-consistent.

    Checks:
        - timestamps strictly increasing (ascending, no duplicates)
        - when step_ms is given, every gap equals step_ms

    Per-candle OHLC consistency is already enforced by Candle itself.

    Returns:
        True if valid

    Raises:
        ValueError: If the sequence is out of order or has irregular gaps
    """
    for previous, current in zip(candles, candles[1:]):
        if current.timestamp <= previous.timestamp:
            raise ValueError(
                f"Timestamps not strictly increasing: {previous.timestamp} -> {current.timestamp}"
            )
        if step_ms is not None and current.timestamp - previous.timestamp != step_ms:
            raise ValueError(
                f"Irregular step at {current.timestamp}: expected {step_ms}ms, "
                f"got {current.timestamp - previous.timestamp}ms"
            )
    return True

"""
Shared fixtures for the test suite.

`mock_client` stands in for BinanceSpotClient: every remote call is an
AsyncMock, and the async context manager protocol is supported, so the
service can open and close it exactly as it would a real client.
"""

import random
import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.config import Settings
from core.exceptions import MarketDataError
from core.schemas import Candle, OrderBookSnapshot, Quote
from services.synthetic import SyntheticDataGenerator


def sample_candles(count=3, start=1704110400000, step=3_600_000):
    return [
        Candle(timestamp=start + i * step, open=100.0, high=102.0, low=99.0, close=101.0, volume=5.0)
        for i in range(count)
    ]


@pytest.fixture
def test_settings():
    """Settings with fast polling and no .env influence"""
    return Settings(_env_file=None, ticker_poll_interval_ms=10, candle_poll_multiplier=1)


@pytest.fixture
def mock_client():
    """A healthy exchange client"""
    client = MagicMock()
    client.ping = AsyncMock(return_value={})
    client.get_price = AsyncMock(return_value=43000.0)
    client.get_ticker_24hr = AsyncMock(
        side_effect=lambda symbol: Quote(
            symbol=symbol, price=43000.0, change=500.0, change_percent=1.18, volume=9000.0
        )
    )
    client.get_klines = AsyncMock(return_value=sample_candles())
    client.get_depth = AsyncMock(
        return_value=OrderBookSnapshot(symbol="BTCUSDT", bids=[(42999.0, 1.0)], asks=[(43001.0, 2.0)])
    )
    client.get_symbols = AsyncMock(return_value=["BTCUSDT", "ETHUSDT"])
    return client


@pytest.fixture
def unreachable_client(mock_client):
    """An exchange client whose every call fails"""
    error = MarketDataError("Request failed for /ping: Cannot connect to host")
    for name in ("ping", "get_price", "get_ticker_24hr", "get_klines", "get_depth", "get_symbols"):
        getattr(mock_client, name).side_effect = error
    return mock_client


@pytest.fixture
def seeded_generator():
    return SyntheticDataGenerator(rng=random.Random(42))


@pytest.fixture
def utc_local_time(monkeypatch):
    """Run the test with the process's local timezone set to UTC"""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")
    monkeypatch.setenv("TZ", "UTC")
    time.tzset()
    yield
    monkeypatch.undo()
    time.tzset()

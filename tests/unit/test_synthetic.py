"""
Unit Tests for Synthetic Market Data Generator

These tests verify that generated data:
- Has exactly the requested number of candles
- Is ordered oldest first with a constant step
- Ends on the current interval boundary
- Respects the OHLC invariant and never goes non-positive

Run with:
    pytest tests/unit/test_synthetic.py -v
"""

import random

import pytest

from core.schemas import validate_candle_sequence
from services.synthetic import (
    DEFAULT_PRICE,
    DEFAULT_VOLUME,
    SyntheticDataGenerator,
)


NOW_MS = 1704112200000  # 2024-01-01 12:30 UTC
HOUR_MS = 3_600_000


@pytest.fixture
def generator():
    """Generator with a seeded random source"""
    return SyntheticDataGenerator(rng=random.Random(1234))


# ============================================
# Static Data
# ============================================

class TestStaticData:
    """Tests for fallback prices and static quotes"""

    @pytest.mark.parametrize("symbol, price", [
        ("BTCUSDT", 42500.0),
        ("ETHUSDT", 2650.0),
        ("ADAUSDT", 0.485),
        ("DOTUSDT", 7.85),
        ("XYZUSDT", DEFAULT_PRICE),
    ])
    def test_fallback_price_table(self, symbol, price):
        """Verify the fixed price table and its default"""
        assert SyntheticDataGenerator.fallback_price(symbol) == price

    def test_fallback_price_is_case_insensitive(self):
        assert SyntheticDataGenerator.fallback_price("btcusdt") == 42500.0

    def test_static_quote_known_symbol(self, generator):
        """Verify seeded quotes carry their 24h change"""
        quote = generator.static_quote("ETHUSDT")
        assert quote.price == 2650.0
        assert quote.change == -45.0
        assert quote.change_percent == -1.67
        assert quote.volume == DEFAULT_VOLUME

    def test_static_quote_unknown_symbol(self, generator):
        """Verify unknown symbols get the fallback price and zero change"""
        quote = generator.static_quote("dogeusdt")
        assert quote.symbol == "DOGEUSDT"
        assert quote.price == DEFAULT_PRICE
        assert quote.change == 0.0
        assert not quote.is_placeholder

    @pytest.mark.parametrize("symbol, price", [
        ("BTCUSDT", 42500.0),
        ("ETHBTC", 42500.0),  # BTC is matched first
        ("SOLUSDT", 85.5),
        ("DOTUSDT", 7.85),
        ("UNKNOWNSYM", DEFAULT_PRICE),
    ])
    def test_history_base_price(self, symbol, price):
        """Verify history base prices match by substring in table order"""
        assert SyntheticDataGenerator.base_price(symbol) == price

    def test_volatility(self):
        assert SyntheticDataGenerator.volatility("BTCUSDT") == 0.008
        assert SyntheticDataGenerator.volatility("ETHUSDT") == 0.012


# ============================================
# History Generation
# ============================================

class TestGenerateHistory:
    """Tests for generate_history"""

    def test_exact_count(self, generator):
        """Verify exactly `count` candles are produced"""
        candles = generator.generate_history("BTCUSDT", "1h", 24, now_ms=NOW_MS)
        assert len(candles) == 24

    def test_zero_count(self, generator):
        assert generator.generate_history("BTCUSDT", "1h", 0, now_ms=NOW_MS) == []

    def test_unknown_symbol_starts_at_default_price(self, generator):
        """Verify UNKNOWNSYM history opens at the default base price"""
        candles = generator.generate_history("UNKNOWNSYM", "1h", 50, now_ms=NOW_MS)
        assert len(candles) == 50
        assert candles[0].open == DEFAULT_PRICE

    def test_last_candle_on_interval_boundary(self, generator):
        """Verify the newest candle opens at the floored current interval"""
        candles = generator.generate_history("BTCUSDT", "1h", 10, now_ms=NOW_MS)
        assert candles[-1].timestamp == 1704110400000
        assert candles[-1].timestamp % HOUR_MS == 0

    @pytest.mark.parametrize("timeframe, step", [
        ("1m", 60_000),
        ("15m", 900_000),
        ("4h", 14_400_000),
        ("1d", 86_400_000),
    ])
    def test_constant_step(self, generator, timeframe, step):
        """Verify timestamps ascend by exactly one timeframe"""
        candles = generator.generate_history("ETHUSDT", timeframe, 30, now_ms=NOW_MS)
        assert validate_candle_sequence(candles, step_ms=step)

    def test_unknown_timeframe_uses_hour_step(self, generator):
        candles = generator.generate_history("ETHUSDT", "7x", 5, now_ms=NOW_MS)
        assert validate_candle_sequence(candles, step_ms=HOUR_MS)

    def test_close_carries_into_next_open(self, generator):
        """Verify the walk is continuous"""
        candles = generator.generate_history("ADAUSDT", "5m", 100, now_ms=NOW_MS)
        for previous, current in zip(candles, candles[1:]):
            assert current.open == previous.close

    def test_ohlc_invariant_and_positive_prices(self, generator):
        """Verify every candle is consistent and prices stay positive"""
        candles = generator.generate_history("ADAUSDT", "1m", 1000, now_ms=NOW_MS)
        for candle in candles:
            assert candle.low <= min(candle.open, candle.close)
            assert candle.high >= max(candle.open, candle.close)
            assert candle.close > 0
            assert 50.0 <= candle.volume <= 250.0

    def test_seeded_generators_are_reproducible(self):
        """Verify the same seed yields the same history"""
        first = SyntheticDataGenerator(rng=random.Random(7)).generate_history("BTCUSDT", "1h", 20, now_ms=NOW_MS)
        second = SyntheticDataGenerator(rng=random.Random(7)).generate_history("BTCUSDT", "1h", 20, now_ms=NOW_MS)
        assert first == second

    def test_defaults_to_current_time(self, generator):
        """Verify history without now_ms still ends on an interval boundary"""
        candles = generator.generate_history("BTCUSDT", "1h", 3)
        assert candles[-1].timestamp % HOUR_MS == 0


# ============================================
# Session Volatility
# ============================================

class MaxDrawRng:
    """Random source that always draws the top of its range for moves"""

    def random(self):
        return 1.0

    def uniform(self, a, b):
        return a


class TestSessionVolatility:
    """Candles opening between 09:00 and 16:59 local time move 1.5x further"""

    @pytest.mark.parametrize("utc_hour,move", [
        (8, 0.6),
        (9, 0.9),
        (12, 0.9),
        (16, 0.9),
        (17, 0.6),
        (0, 0.6),
    ])
    def test_move_size_by_hour(self, utc_local_time, utc_hour, move):
        """Verify the hour window is inclusive at both ends"""
        generator = SyntheticDataGenerator(rng=MaxDrawRng())
        now_ms = 1704067200000 + utc_hour * HOUR_MS  # 2024-01-01 at utc_hour

        candle, = generator.generate_history("UNKNOWNSYM", "1h", 1, now_ms=now_ms)

        assert candle.open == DEFAULT_PRICE
        assert candle.close - candle.open == pytest.approx(move)

    def test_multiplier_follows_each_candle(self, utc_local_time):
        """Verify a history spanning the session edge mixes both move sizes"""
        generator = SyntheticDataGenerator(rng=MaxDrawRng())
        now_ms = 1704067200000 + 17 * HOUR_MS

        candles = generator.generate_history("UNKNOWNSYM", "1h", 2, now_ms=now_ms)

        moves = [c.close - c.open for c in candles]
        assert moves[0] == pytest.approx(0.9)
        assert moves[1] == pytest.approx(candles[1].open * 0.006)

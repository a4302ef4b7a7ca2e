"""
Unit Tests for the Subscription Manager

These tests use tiny polling periods and mocked fetchers, so each test
runs a handful of real refresh rounds in well under a second.

Run with:
    pytest tests/unit/test_subscriptions.py -v
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from core.exceptions import ExchangeAPIError, MarketDataError
from core.schemas import Candle, Quote
from services.subscriptions import SubscriptionManager


INTERVAL = 0.01


def make_quote(symbol="BTCUSDT", price=42000.0):
    return Quote(symbol=symbol, price=price, change=10.0, change_percent=0.5, volume=1000.0)


def make_candles(count=3):
    return [
        Candle(timestamp=i * 60_000, open=1.0, high=2.0, low=0.5, close=1.5, volume=3.0)
        for i in range(count)
    ]


@pytest.fixture
def fetchers():
    """Mock ticker and candle fetchers"""
    fetch_ticker = AsyncMock(side_effect=lambda symbol: make_quote(symbol))
    fetch_candles = AsyncMock(return_value=make_candles())
    return fetch_ticker, fetch_candles


@pytest_asyncio.fixture
async def manager(fetchers):
    """SubscriptionManager with fast timers, cleaned up after each test"""
    fetch_ticker, fetch_candles = fetchers
    mgr = SubscriptionManager(fetch_ticker, fetch_candles, ticker_interval=INTERVAL, candle_interval=INTERVAL)
    yield mgr
    await mgr.cleanup()


# ============================================
# Ticker Subscriptions
# ============================================

class TestTickerSubscription:
    """Tests for subscribe_ticker"""

    @pytest.mark.asyncio
    async def test_placeholder_then_live_quote(self, manager, fetchers):
        """Verify the first item is a zero placeholder, then fetched quotes follow"""
        stream = manager.subscribe_ticker("btcusdt")

        first = await stream.get(timeout=1)
        second = await stream.get(timeout=1)

        assert first.symbol == "BTCUSDT"
        assert first.is_placeholder
        assert second.price == 42000.0
        fetchers[0].assert_awaited_with("BTCUSDT")

    @pytest.mark.asyncio
    async def test_one_timer_per_symbol(self, manager):
        """Verify repeated subscriptions share a single subscription and task"""
        manager.subscribe_ticker("BTCUSDT")
        manager.subscribe_ticker("btcusdt")
        manager.subscribe_ticker(" BTCUSDT ")

        stats = manager.stats()
        assert stats["tickers"] == 1
        assert stats["polling"] == 1
        assert stats["streams"] == 3

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_value_and_timer(self, manager, fetchers):
        """Verify a transient error is skipped and polling continues"""
        fetch_ticker = fetchers[0]
        responses = [make_quote(price=1.0), MarketDataError("boom"), make_quote(price=2.0)]

        async def flaky(symbol):
            result = responses.pop(0) if responses else make_quote(price=2.0)
            if isinstance(result, Exception):
                raise result
            return result

        fetch_ticker.side_effect = flaky
        stream = manager.subscribe_ticker("BTCUSDT")

        values = [await stream.get(timeout=1) for _ in range(3)]

        assert [q.price for q in values] == [0.0, 1.0, 2.0]
        assert manager.stats()["polling"] == 1

    @pytest.mark.asyncio
    async def test_refresh_round_reports_outcome(self, manager, fetchers):
        """Verify a single refresh publishes on success and not on failure"""
        manager.subscribe_ticker("BTCUSDT")
        sub = manager._tickers["BTCUSDT"]

        assert await manager._refresh(sub) is True
        assert manager.latest_quote("BTCUSDT").price == 42000.0

        fetchers[0].side_effect = MarketDataError("down")
        assert await manager._refresh(sub) is False
        assert manager.latest_quote("BTCUSDT").price == 42000.0

    @pytest.mark.asyncio
    async def test_rate_limited_round_logs_warning(self, manager, fetchers, caplog):
        """Verify rate-limit rejections are logged below ERROR and skipped"""
        manager.subscribe_ticker("BTCUSDT")
        fetchers[0].side_effect = ExchangeAPIError(-1003, "Too many requests.", status=429)

        with caplog.at_level(logging.WARNING, logger="spotfeed"):
            assert await manager._refresh(manager._tickers["BTCUSDT"]) is False

        records = [r for r in caplog.records if "rate limited" in r.getMessage()]
        assert records and records[0].levelno == logging.WARNING
        assert manager.latest_quote("BTCUSDT").is_placeholder

    @pytest.mark.asyncio
    async def test_refresh_after_cleanup_does_not_publish(self, manager):
        """Verify a round finishing after cleanup leaves the old channel untouched"""
        manager.subscribe_ticker("BTCUSDT")
        sub = manager._tickers["BTCUSDT"]
        await manager.cleanup()

        assert await manager._refresh(sub) is False
        assert sub.channel.value.is_placeholder


# ============================================
# Candle Subscriptions
# ============================================

class TestCandleSubscription:
    """Tests for subscribe_candles"""

    @pytest.mark.asyncio
    async def test_empty_list_then_candles(self, manager, fetchers):
        """Verify candle streams start empty and receive fetched lists"""
        stream = manager.subscribe_candles("ethusdt", "5m")

        assert await stream.get(timeout=1) == []
        candles = await stream.get(timeout=1)

        assert len(candles) == 3
        fetchers[1].assert_awaited_with("ETHUSDT", "5m", manager.candle_limit)

    @pytest.mark.asyncio
    async def test_keys_include_interval(self, manager):
        """Verify different intervals are independent subscriptions"""
        manager.subscribe_candles("BTCUSDT", "1m")
        manager.subscribe_candles("BTCUSDT", "1h")
        manager.subscribe_candles("btcusdt", "1m")

        assert manager.stats()["candles"] == 2
        assert manager.latest_candles("BTCUSDT", "1h") == []
        assert manager.latest_candles("BTCUSDT", "4h") is None

    def test_candle_interval_defaults_to_five_ticker_periods(self, fetchers):
        mgr = SubscriptionManager(*fetchers, ticker_interval=2.0)
        assert mgr.candle_interval == 10.0

    def test_key_format(self):
        assert SubscriptionManager.candle_key(" btcusdt", "15m") == "BTCUSDT_15m"
        assert SubscriptionManager.ticker_key("ethusdt ") == "ETHUSDT"


# ============================================
# Seeding & Cleanup
# ============================================

class TestSeedAndCleanup:
    """Tests for seed_ticker and cleanup"""

    @pytest.mark.asyncio
    async def test_seeded_quote_has_no_timer(self, manager, fetchers):
        """Verify seeding caches a quote without polling"""
        manager.seed_ticker(make_quote("ADAUSDT", 0.485))

        await asyncio.sleep(INTERVAL * 5)

        assert manager.latest_quote("ADAUSDT").price == 0.485
        assert manager.stats() == {"tickers": 1, "candles": 0, "polling": 0, "streams": 0}
        fetchers[0].assert_not_awaited()

    @pytest.mark.asyncio
    async def test_subscribe_to_seeded_replays_seed_and_polls(self, manager):
        """Verify subscribing after seeding starts the timer and replays the seed"""
        manager.seed_ticker(make_quote("ADAUSDT", 0.485))

        stream = manager.subscribe_ticker("ADAUSDT")

        assert (await stream.get(timeout=1)).price == 0.485
        assert manager.stats()["polling"] == 1

    @pytest.mark.asyncio
    async def test_seed_does_not_replace_existing(self, manager):
        """Verify seeding never overwrites an existing subscription"""
        manager.subscribe_ticker("BTCUSDT")
        manager.seed_ticker(make_quote("BTCUSDT", 1.0))

        assert manager.latest_quote("BTCUSDT").is_placeholder

    @pytest.mark.asyncio
    async def test_cleanup_resets_everything(self, manager, fetchers):
        """Verify cleanup stops timers, ends streams and forgets cached values"""
        stream = manager.subscribe_ticker("BTCUSDT")
        manager.subscribe_candles("BTCUSDT", "1m")
        await stream.get(timeout=1)
        await stream.get(timeout=1)

        await manager.cleanup()

        assert manager.stats() == {"tickers": 0, "candles": 0, "polling": 0, "streams": 0}
        assert manager.latest_quote("BTCUSDT") is None

        remaining = [q async for q in stream]
        assert all(isinstance(q, Quote) for q in remaining)

        calls = fetchers[0].await_count
        await asyncio.sleep(INTERVAL * 5)
        assert fetchers[0].await_count == calls

    @pytest.mark.asyncio
    async def test_subscribe_after_cleanup_starts_fresh(self, manager):
        """Verify a key is back to its placeholder state after cleanup"""
        stream = manager.subscribe_ticker("BTCUSDT")
        await stream.get(timeout=1)
        await stream.get(timeout=1)
        await manager.cleanup()

        fresh = manager.subscribe_ticker("BTCUSDT")

        assert (await fresh.get(timeout=1)).is_placeholder

    @pytest.mark.asyncio
    async def test_subscribe_during_cleanup_keeps_one_timer(self, manager):
        """Verify a subscription made while cleanup is awaiting gets exactly one timer"""
        manager.subscribe_ticker("ETHUSDT")

        async def resubscribe():
            await asyncio.sleep(0)
            manager.subscribe_ticker("ETHUSDT")

        await asyncio.gather(manager.cleanup(), resubscribe())
        manager.subscribe_ticker("ETHUSDT")

        polls = [t for t in asyncio.all_tasks() if t.get_name() == "poll-ETHUSDT" and not t.done()]
        assert len(polls) == 1
        assert manager.stats() == {"tickers": 1, "candles": 0, "polling": 1, "streams": 2}

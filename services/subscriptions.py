"""
Subscription Manager

Owns every polling timer in the market data layer. A subscription is keyed by
symbol (tickers) or symbol + interval (candles) and consists of:

- a LatestValueChannel holding the last known value, and
- one asyncio.Task that sleeps for the polling period, fetches, publishes,
  and repeats for the lifetime of the process.

Subscribing to a key that already exists reuses its channel and task, so the
exchange sees one request per key per period no matter how many consumers
are attached.

Refresh policy:
    A failed refresh round is logged and skipped. The channel keeps its last
    good value, nothing is published, and the task sleeps until the next round.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from core.exceptions import ExchangeAPIError
from core.logging import get_logger
from core.schemas import Candle, Quote
from services.broadcast import ChannelStream, LatestValueChannel


TickerFetcher = Callable[[str], Awaitable[Quote]]
CandleFetcher = Callable[[str, str, int], Awaitable[List[Candle]]]


@dataclass
class Subscription:
    """
    One keyed channel and the task that keeps it fresh.

    `fetch` produces the next value for this subscription only; a task
    never looks its subscription up by key again.
    """

    key: str
    kind: str
    channel: LatestValueChannel
    fetch: Callable[[], Awaitable[Any]]
    interval: float
    task: Optional[asyncio.Task] = None

    @property
    def is_polling(self) -> bool:
        return self.task is not None and not self.task.done()


class SubscriptionManager:
    """
    Registry of ticker and candle subscriptions.

    Attributes:
        ticker_interval: Seconds between ticker refresh rounds
        candle_interval: Seconds between candle refresh rounds
        candle_limit: Candles fetched per candle refresh round

    Example:
        >>> manager = SubscriptionManager(client.get_ticker_24hr, client.get_klines)
        >>> stream = manager.subscribe_ticker("btcusdt")
        >>> stream.latest.price   # 0.0 until the first refresh lands
        0.0
        >>> await manager.cleanup()
    """

    def __init__(
        self,
        fetch_ticker: TickerFetcher,
        fetch_candles: CandleFetcher,
        ticker_interval: float = 2.0,
        candle_interval: Optional[float] = None,
        candle_limit: int = 100,
    ) -> None:
        self._fetch_ticker = fetch_ticker
        self._fetch_candles = fetch_candles
        self.ticker_interval = ticker_interval
        self.candle_interval = candle_interval if candle_interval is not None else ticker_interval * 5
        self.candle_limit = candle_limit

        self._tickers: Dict[str, Subscription] = {}
        self._candles: Dict[str, Subscription] = {}
        self.logger = get_logger(__name__)

    # ============================================
    # Keys
    # ============================================

    @staticmethod
    def ticker_key(symbol: str) -> str:
        return symbol.strip().upper()

    @staticmethod
    def candle_key(symbol: str, interval: str) -> str:
        return f"{symbol.strip().upper()}_{interval}"

    # ============================================
    # Subscribe
    # ============================================

    def subscribe_ticker(self, symbol: str) -> ChannelStream[Quote]:
        """
        Attach to the ticker subscription for a symbol, creating it if needed.

        A new subscription starts from a zero-valued placeholder Quote and
        refreshes every `ticker_interval` seconds. Must be called from a
        running event loop.
        """
        key = self.ticker_key(symbol)
        sub = self._tickers.get(key)

        if sub is None:
            sub = self._new_ticker(key, Quote.placeholder(key))
            self._tickers[key] = sub
            self.logger.info(f"Ticker subscription created: {key} ({self.ticker_interval:.1f}s)")

        self._ensure_polling(sub)
        return sub.channel.attach()

    def subscribe_candles(self, symbol: str, interval: str = "1m") -> ChannelStream[List[Candle]]:
        """
        Attach to the candle subscription for symbol + interval, creating it if needed.

        A new subscription starts from an empty list and refreshes the
        `candle_limit` most recent candles every `candle_interval` seconds.
        """
        key = self.candle_key(symbol, interval)
        sub = self._candles.get(key)

        if sub is None:
            normalized = symbol.strip().upper()
            sub = Subscription(
                key=key,
                kind="Candle",
                channel=LatestValueChannel(key, []),
                fetch=lambda: self._fetch_candles(normalized, interval, self.candle_limit),
                interval=self.candle_interval,
            )
            self._candles[key] = sub
            self.logger.info(f"Candle subscription created: {key} ({self.candle_interval:.1f}s)")

        self._ensure_polling(sub)
        return sub.channel.attach()

    def seed_ticker(self, quote: Quote) -> None:
        """
        Register a known quote for a symbol without starting a timer.

        Used in FALLBACK mode so reads have data before anyone subscribes.
        A later subscribe_ticker() starts polling and replays this quote
        instead of the placeholder. Existing subscriptions are left alone.
        """
        key = self.ticker_key(quote.symbol)
        if key in self._tickers:
            return
        self._tickers[key] = self._new_ticker(key, quote)
        self.logger.debug(f"Seeded ticker {key} at {quote.price}")

    def _new_ticker(self, key: str, initial: Quote) -> Subscription:
        return Subscription(
            key=key,
            kind="Ticker",
            channel=LatestValueChannel(key, initial),
            fetch=lambda: self._fetch_ticker(key),
            interval=self.ticker_interval,
        )

    # ============================================
    # Cached Reads
    # ============================================

    def latest_quote(self, symbol: str) -> Optional[Quote]:
        """Last known quote for a symbol, or None if it was never subscribed or seeded."""
        sub = self._tickers.get(self.ticker_key(symbol))
        return sub.channel.value if sub else None

    def latest_candles(self, symbol: str, interval: str) -> Optional[List[Candle]]:
        sub = self._candles.get(self.candle_key(symbol, interval))
        return sub.channel.value if sub else None

    def stats(self) -> Dict[str, Any]:
        """Counts for health reporting."""
        subs = list(self._tickers.values()) + list(self._candles.values())
        return {
            "tickers": len(self._tickers),
            "candles": len(self._candles),
            "polling": sum(1 for s in subs if s.is_polling),
            "streams": sum(s.channel.subscriber_count for s in subs),
        }

    # ============================================
    # Refresh Rounds
    # ============================================

    async def _refresh(self, sub: Subscription) -> bool:
        """
        One refresh round for a subscription.

        Returns True if a new value was published. Nothing is published
        once the subscription's channel has been closed by cleanup().
        """
        try:
            value = await sub.fetch()
        except Exception as e:
            self._log_refresh_failure(sub.kind, sub.key, e)
            return False
        if sub.channel.closed:
            return False
        sub.channel.publish(value)
        return True

    def _log_refresh_failure(self, kind: str, key: str, error: Exception) -> None:
        if isinstance(error, ExchangeAPIError) and error.is_rate_limited:
            self.logger.warning(f"{kind} update for {key} rate limited, skipping round: {error}")
        else:
            self.logger.error(f"{kind} update error for {key}: {error}")

    def _ensure_polling(self, sub: Subscription) -> None:
        if sub.task is None:
            sub.task = asyncio.create_task(self._poll_loop(sub), name=f"poll-{sub.key}")

    async def _poll_loop(self, sub: Subscription) -> None:
        """Sleep, refresh, repeat. Rounds for one key never overlap."""
        while True:
            await asyncio.sleep(sub.interval)
            await self._refresh(sub)
            self.logger.debug(f"Refreshed {sub.key}")

    # ============================================
    # Cleanup
    # ============================================

    async def cleanup(self) -> None:
        """
        Cancel every timer, end every stream and forget all subscriptions.

        Afterwards every key is back to its never-subscribed state: the next
        subscribe call creates a fresh placeholder-seeded subscription. The
        registry is emptied before the first await, so a subscription created
        while cleanup is still running belongs to the new registry and keeps
        its own, single timer.
        """
        tickers, self._tickers = self._tickers, {}
        candles, self._candles = self._candles, {}
        subs = list(tickers.values()) + list(candles.values())
        tasks = [s.task for s in subs if s.task is not None and not s.task.done()]

        for sub in subs:
            sub.channel.close()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

        self.logger.info(f"Subscriptions cleared ({len(subs)} removed, {len(tasks)} timers cancelled)")

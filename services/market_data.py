"""
Market Data Service

The single entry point downstream code uses for market data. It wires the
Binance REST client, the synthetic generator, the connection prober and the
subscription manager together, and applies the failure policy per operation:

    Operation                          On failure
    ---------------------------------  -------------------------------------
    get_current_price                  fixed fallback price, never raises
    get_ticker / get_order_book /
    get_symbols / get_klines           MarketDataError surfaces to caller
    get_historical_data                synthetic history, never raises
    subscription refresh rounds        logged and skipped, last value kept

The service is explicitly constructed and owned by its consumer:

    async with MarketDataService() as market:
        price = await market.get_current_price("BTCUSDT")
        stream = market.subscribe_to_ticker("ETHUSDT")
"""

from typing import List, Optional, Union

from core.config import Settings, settings as default_settings
from core.exceptions import MarketDataError
from core.logging import get_logger
from core.schemas import Candle, Mode, OrderBookSnapshot, PnLResult, PositionSide, Quote
from core.utils.timeframes import timeframe_to_interval
from exchanges.binance import BinanceSpotClient
from services.broadcast import ChannelStream
from services.prober import ConnectionProber
from services.subscriptions import SubscriptionManager
from services.synthetic import SyntheticDataGenerator


class MarketDataService:
    """
    Always-available market data backed by the Binance spot REST API.

    Attributes:
        config: Settings in effect for this instance
        client: Binance REST client (session opened by initialize())
        generator: Synthetic data source for FALLBACK mode and failed history calls
        subscriptions: Owner of all polling timers and cached last values
        mode: LIVE or FALLBACK once initialize() has run, otherwise None

    Example:
        >>> market = MarketDataService()
        >>> await market.initialize()
        >>> await market.get_historical_data("BTCUSDT", "1h", 50)
        >>> await market.shutdown()
    """

    def __init__(
        self,
        client: Optional[BinanceSpotClient] = None,
        config: Optional[Settings] = None,
        generator: Optional[SyntheticDataGenerator] = None,
    ):
        self.config = config or default_settings
        self.client = client or BinanceSpotClient(
            base_url=self.config.binance_base_url,
            timeout=self.config.request_timeout,
        )
        self.generator = generator or SyntheticDataGenerator()
        self.subscriptions = SubscriptionManager(
            fetch_ticker=self._fetch_ticker,
            fetch_candles=self._fetch_candles,
            ticker_interval=self.config.ticker_poll_interval,
            candle_interval=self.config.candle_poll_interval,
            candle_limit=self.config.candle_poll_limit,
        )
        self.prober = ConnectionProber(
            self.client,
            self.subscriptions,
            self.generator,
            self.config.fallback_symbols_list,
        )
        self.mode: Optional[Mode] = None
        self.logger = get_logger(__name__)

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize(self) -> Mode:
        """
        Open the HTTP session and probe the exchange once.

        Calling it again keeps the mode decided by the first call.
        """
        if self.mode is not None:
            return self.mode

        await self.client.__aenter__()
        self.mode = await self.prober.probe()
        self.logger.info(f"Market data service initialized in {self.mode.value.upper()} mode")
        return self.mode

    async def shutdown(self) -> None:
        """Cancel all subscriptions and close the HTTP session."""
        await self.cleanup()
        await self.client.__aexit__(None, None, None)
        self.logger.info("Market data service shut down")

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()

    @property
    def is_live(self) -> bool:
        return self.mode is Mode.LIVE

    # ============================================
    # Prices & Tickers
    # ============================================

    async def get_current_price(self, symbol: str) -> float:
        """
        Latest price for a symbol. Never raises.

        Order of sources: a positive cached subscription price, then (LIVE
        only) the exchange, then the fixed fallback table.
        """
        symbol = symbol.strip().upper()

        cached = self.subscriptions.latest_quote(symbol)
        if cached is not None and not cached.is_placeholder:
            return cached.price

        if not self.is_live:
            return self.generator.fallback_price(symbol)

        try:
            return await self.client.get_price(symbol)
        except MarketDataError as e:
            self.logger.error(f"Failed to get price for {symbol}: {e}")
            return self.generator.fallback_price(symbol)

    async def get_ticker(self, symbol: str) -> Quote:
        """
        24h ticker for a symbol.

        Served from a subscription's cache when it holds a real quote,
        otherwise fetched from the exchange.

        Raises:
            MarketDataError: If the exchange call fails
        """
        symbol = symbol.strip().upper()

        cached = self.subscriptions.latest_quote(symbol)
        if cached is not None and not cached.is_placeholder:
            return cached

        return await self._fetch_ticker(symbol)

    async def _fetch_ticker(self, symbol: str) -> Quote:
        try:
            return await self.client.get_ticker_24hr(symbol)
        except MarketDataError as e:
            self.logger.error(f"Failed to get ticker for {symbol}: {e}")
            raise

    # ============================================
    # Candles
    # ============================================

    async def get_klines(
        self,
        symbol: str,
        interval: str = "1m",
        limit: Optional[int] = None
    ) -> List[Candle]:
        """
        Most recent candles straight from the exchange.

        Raises:
            MarketDataError: If the exchange call fails
        """
        if limit is None:
            limit = self.config.default_klines_limit
        try:
            return await self.client.get_klines(symbol, interval, limit)
        except MarketDataError as e:
            self.logger.error(f"Failed to get klines for {symbol}: {e}")
            raise

    async def _fetch_candles(self, symbol: str, interval: str, limit: int) -> List[Candle]:
        return await self.get_klines(symbol, interval, limit)

    async def get_historical_data(
        self,
        symbol: str,
        timeframe: str,
        limit: Optional[int] = None
    ) -> List[Candle]:
        """
        Candle history for backtesting. Never raises.

        In FALLBACK mode, or when the live call fails or returns nothing,
        the history is generated synthetically.
        """
        if limit is None:
            limit = self.config.default_history_limit

        if not self.is_live:
            return self.generator.generate_history(symbol, timeframe, limit)

        try:
            candles = await self.get_klines(symbol, timeframe_to_interval(timeframe), limit)
            if not candles:
                raise MarketDataError("No historical data available")
            return candles
        except MarketDataError as e:
            self.logger.warning(f"Using synthetic history for {symbol.upper()} {timeframe}: {e}")
            return self.generator.generate_history(symbol, timeframe, limit)

    # ============================================
    # Subscriptions
    # ============================================

    def subscribe_to_ticker(self, symbol: str) -> ChannelStream[Quote]:
        """Live ticker stream; replays the last known quote on attach."""
        return self.subscriptions.subscribe_ticker(symbol)

    def subscribe_to_candles(self, symbol: str, interval: str = "1m") -> ChannelStream[List[Candle]]:
        """Live candle-list stream; replays the last known list on attach."""
        return self.subscriptions.subscribe_candles(symbol, interval)

    async def cleanup(self) -> None:
        """Cancel every subscription timer and forget all cached values."""
        await self.subscriptions.cleanup()

    # ============================================
    # Order Book & Symbols
    # ============================================

    async def get_order_book(self, symbol: str, limit: Optional[int] = None) -> OrderBookSnapshot:
        """
        Raises:
            MarketDataError: If the exchange call fails
        """
        if limit is None:
            limit = self.config.order_book_limit
        try:
            return await self.client.get_depth(symbol, limit)
        except MarketDataError as e:
            self.logger.error(f"Failed to get order book for {symbol}: {e}")
            raise

    async def get_symbols(self) -> List[str]:
        """
        Symbols currently open for trading.

        Raises:
            MarketDataError: If the exchange call fails
        """
        try:
            return await self.client.get_symbols()
        except MarketDataError as e:
            self.logger.error(f"Failed to get symbols: {e}")
            raise

    # ============================================
    # PnL
    # ============================================

    async def calculate_pnl(
        self,
        symbol: str,
        side: Union[PositionSide, str],
        entry_price: float,
        quantity: float
    ) -> PnLResult:
        """
        Profit/loss of a position at the current price.

        LONG:  pnl = (current - entry) * quantity
        SHORT: pnl = (entry - current) * quantity
        pnl_percent = pnl / (entry * quantity) * 100

        Precondition: entry_price * quantity != 0 (ZeroDivisionError otherwise).

        Raises:
            ValueError: If side is not LONG or SHORT
        """
        side = PositionSide(side.upper()) if isinstance(side, str) else side
        current_price = await self.get_current_price(symbol)

        if side is PositionSide.LONG:
            pnl = (current_price - entry_price) * quantity
        else:
            pnl = (entry_price - current_price) * quantity

        pnl_percent = pnl / (entry_price * quantity) * 100

        return PnLResult(pnl=pnl, pnl_percent=pnl_percent, current_price=current_price)

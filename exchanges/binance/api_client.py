"""
Binance Spot REST API Client

This module provides an async HTTP client for the public Binance spot market
data endpoints (API v3). It handles:
- HTTP requests over a shared aiohttp session
- Detection of Binance error envelopes ({"code": ..., "msg": ...})
- Normalization of replies to our schemas
- Folding every failure into MarketDataError

API Documentation:
    https://binance-docs.github.io/apidocs/spot/en/

Rate Limits:
    Public endpoints are weight-limited per IP. This client makes exactly one
    attempt per call; staying under the limits is the job of the fixed
    polling periods in SubscriptionManager.

Usage:
    async with BinanceSpotClient() as client:
        await client.ping()
        candles = await client.get_klines("BTCUSDT", "1h", limit=100)
"""

import asyncio
import time
from typing import Any, Dict, List, Optional

import aiohttp

from core.exceptions import ExchangeAPIError, MarketDataError
from core.logging import get_logger, log_api_request, log_api_response
from core.schemas import Candle, OrderBookSnapshot, Quote
from core.utils.time import current_utc_timestamp


class BinanceSpotClient:
    """
    Async HTTP client for the Binance spot REST API.

    All methods return normalized data using our Pydantic schemas and raise
    MarketDataError (or its subclass ExchangeAPIError) on any failure.

    Attributes:
        base_url: API base URL including the version prefix
        timeout: Total timeout for one request in seconds
        session: aiohttp ClientSession for HTTP requests

    Example:
        >>> async with BinanceSpotClient() as client:
        ...     quote = await client.get_ticker_24hr("BTCUSDT")
        ...     print(f"{quote.symbol}: {quote.price}")
    """

    EXCHANGE = "binance"
    MAX_KLINES_LIMIT = 1000

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        """
        Initialize the Binance spot client.

        Args:
            base_url: Override for the API base URL (defaults to settings)
            timeout: Override for the request timeout in seconds (defaults to settings)
        """
        from core.config import settings

        self.base_url = (base_url or settings.binance_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None

    # ============================================
    # Context Manager for Session Management
    # ============================================

    async def __aenter__(self):
        """Enter async context - creates HTTP session."""
        self.session = aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=self.timeout)
        )
        self.logger.debug("BinanceSpotClient session created")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context - closes HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
            self.logger.debug("BinanceSpotClient session closed")

    # ============================================
    # HTTP Request Handler
    # ============================================

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Make a single GET request to the Binance API.

        Args:
            path: API endpoint path relative to base_url (e.g., "/klines")
            params: Optional query parameters

        Returns:
            Decoded JSON reply

        Raises:
            RuntimeError: If the session was never opened
            ExchangeAPIError: If the reply is a Binance error envelope
            MarketDataError: On timeout, connection failure, non-200 status
                or an undecodable body
        """
        if not self.session:
            raise RuntimeError("Client session not initialized. Use 'async with' statement.")

        url = f"{self.base_url}{path}"
        log_api_request(self.EXCHANGE, path, params)
        started = time.monotonic()

        try:
            async with self.session.get(url, params=params) as resp:
                log_api_response(self.EXCHANGE, path, resp.status, time.monotonic() - started)

                try:
                    data = await resp.json(content_type=None)
                except ValueError:
                    data = None

                if isinstance(data, dict) and "code" in data and "msg" in data:
                    raise ExchangeAPIError(data["code"], data["msg"], status=resp.status)

                if resp.status != 200:
                    raise MarketDataError(f"HTTP {resp.status} on {path}")

                if data is None:
                    raise MarketDataError(f"Undecodable reply on {path}")

                return data

        except asyncio.TimeoutError as e:
            raise MarketDataError(f"Timeout on {path}") from e

        except aiohttp.ClientError as e:
            raise MarketDataError(f"Request failed on {path}: {e}") from e

    # ============================================
    # API Methods
    # ============================================

    async def ping(self) -> None:
        """
        Test connectivity to the REST API.

        Binance Endpoint:
            GET /api/v3/ping  -> {}

        Raises:
            MarketDataError: If the API is unreachable or answers with an error
        """
        await self._get("/ping")

    async def get_price(self, symbol: str) -> float:
        """
        Fetch the latest traded price for a symbol.

        Binance Endpoint:
            GET /api/v3/ticker/price?symbol=BTCUSDT

        Response Format:
            {"symbol": "BTCUSDT", "price": "42500.01000000"}
        """
        data = await self._get("/ticker/price", {"symbol": symbol.upper()})

        try:
            return float(data["price"])
        except (KeyError, TypeError, ValueError) as e:
            raise MarketDataError(f"Malformed price reply for {symbol}: {e}") from e

    async def get_ticker_24hr(self, symbol: str) -> Quote:
        """
        Fetch 24 hour rolling window statistics for a symbol.

        Binance Endpoint:
            GET /api/v3/ticker/24hr?symbol=BTCUSDT

        Response Format (abridged):
            {
              "symbol": "BTCUSDT",
              "priceChange": "1250.00000000",
              "priceChangePercent": "3.020",
              "lastPrice": "42500.00000000",
              "volume": "25123.40000000",
              ...
            }
        """
        data = await self._get("/ticker/24hr", {"symbol": symbol.upper()})

        try:
            return Quote(
                symbol=data["symbol"],
                price=float(data["lastPrice"]),
                change=float(data["priceChange"]),
                change_percent=float(data["priceChangePercent"]),
                volume=float(data["volume"]),
                timestamp=current_utc_timestamp(milliseconds=True),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MarketDataError(f"Malformed 24hr ticker reply for {symbol}: {e}") from e

    async def get_klines(self, symbol: str, interval: str, limit: int = 100) -> List[Candle]:
        """
        Fetch the most recent candles for a symbol.

        Args:
            symbol: Trading pair (e.g., "BTCUSDT")
            interval: Binance interval token (e.g., "1m", "1h", "1d")
            limit: Number of candles (max 1000)

        Returns:
            List of Candle objects, oldest first

        Binance Endpoint:
            GET /api/v3/klines?symbol=BTCUSDT&interval=1h&limit=100

        Response Format:
            [
              [
                1499040000000,      // Open time
                "0.01634790",       // Open
                "0.80000000",       // High
                "0.01575800",       // Low
                "0.01577100",       // Close
                "148976.11427815",  // Volume
                1499644799999,      // Close time
                ...
              ]
            ]
        """
        params = {
            "symbol": symbol.upper(),
            "interval": interval,
            "limit": min(limit, self.MAX_KLINES_LIMIT)
        }

        data = await self._get("/klines", params)

        try:
            candles = [
                Candle(
                    timestamp=int(item[0]),
                    open=float(item[1]),
                    high=float(item[2]),
                    low=float(item[3]),
                    close=float(item[4]),
                    volume=float(item[5]),
                )
                for item in data
            ]
        except (IndexError, TypeError, ValueError) as e:
            raise MarketDataError(f"Malformed klines reply for {symbol}: {e}") from e

        self.logger.debug(f"Fetched {len(candles)} candles for {symbol.upper()} {interval}")
        return candles

    async def get_depth(self, symbol: str, limit: int = 20) -> OrderBookSnapshot:
        """
        Fetch order book depth for a symbol.

        Binance Endpoint:
            GET /api/v3/depth?symbol=BTCUSDT&limit=20

        Response Format:
            {
              "lastUpdateId": 1027024,
              "bids": [["4.00000000", "431.00000000"]],
              "asks": [["4.00000200", "12.00000000"]]
            }

        Notes:
            - Binance returns bids best-first (descending) and asks best-first (ascending)
        """
        data = await self._get("/depth", {"symbol": symbol.upper(), "limit": limit})

        try:
            return OrderBookSnapshot(
                symbol=symbol,
                bids=[(float(price), float(qty)) for price, qty in data["bids"]],
                asks=[(float(price), float(qty)) for price, qty in data["asks"]],
                timestamp=current_utc_timestamp(milliseconds=True),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MarketDataError(f"Malformed depth reply for {symbol}: {e}") from e

    async def get_symbols(self, status: str = "TRADING") -> List[str]:
        """
        List symbols from exchange metadata, filtered by trading status.

        Binance Endpoint:
            GET /api/v3/exchangeInfo

        Response Format (abridged):
            {"symbols": [{"symbol": "ETHBTC", "status": "TRADING", ...}, ...]}
        """
        data = await self._get("/exchangeInfo")

        try:
            symbols = [item["symbol"] for item in data["symbols"] if item.get("status") == status]
        except (KeyError, TypeError, AttributeError) as e:
            raise MarketDataError(f"Malformed exchangeInfo reply: {e}") from e

        self.logger.info(f"Fetched {len(symbols)} {status} symbols")
        return symbols

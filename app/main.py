"""
FastAPI Application - Spot Market Data API

Exposes the MarketDataService over REST and WebSocket.

Features:
    - Current price, 24h ticker, order book and symbol list
    - Raw klines and gap-free historical candles (synthetic when Binance is unreachable)
    - Position PnL at the current price
    - Live ticker / candle streams backed by shared polling subscriptions

Usage:
    uvicorn app.main:app --reload --host 0.0.0.0 --port 8000

Docs:
    - Swagger: http://localhost:8000/docs
    - ReDoc: http://localhost:8000/redoc
"""

import asyncio
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect

from core.config import validate_configuration
from core.exceptions import MarketDataError
from core.logging import logger
from core.schemas import Candle, OrderBookSnapshot, PnLResult, PositionSide, Quote
from services.broadcast import ChannelStream
from services.market_data import MarketDataService


# ============================================
# Dependencies
# ============================================

def get_market_data(request: Request) -> MarketDataService:
    """The service instance owned by the running application."""
    return request.app.state.market_data


def _upstream_error(e: MarketDataError) -> HTTPException:
    return HTTPException(status_code=502, detail=str(e))


# ============================================
# Application Factory
# ============================================

def create_app(service: Optional[MarketDataService] = None) -> FastAPI:
    """
    Build the API around a MarketDataService.

    Args:
        service: Pre-built service (tests inject one with a stubbed client).
            A default MarketDataService is created when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle application startup and shutdown."""
        logger.info("=== Application Starting ===")
        validate_configuration()
        market = service or MarketDataService()
        mode = await market.initialize()
        app.state.market_data = market
        logger.info(f"=== Started Successfully ({mode.value} mode) ===")

        yield

        logger.info("=== Shutting Down ===")
        try:
            await market.shutdown()
            logger.info("=== Shutdown Complete ===")
        except Exception as e:
            logger.error(f"Shutdown error: {e}")

    app = FastAPI(
        title="Spot Market Data API",
        description=(
            "Always-available cryptocurrency market data backed by the Binance spot REST API.\n\n"
            "When Binance is unreachable at startup the API keeps answering with fallback "
            "prices and synthetic candles. `GET /health` reports which mode is active."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # ============================================
    # Health
    # ============================================

    @app.get("/health", tags=["System"])
    async def health(market: MarketDataService = Depends(get_market_data)):
        """Active data mode and subscription counts."""
        return {
            "status": "ok",
            "mode": market.mode.value if market.mode else None,
            "subscriptions": market.subscriptions.stats(),
        }

    # ============================================
    # REST Endpoints
    # ============================================

    @app.get("/price/{symbol}", tags=["Market Data"])
    async def get_price(symbol: str, market: MarketDataService = Depends(get_market_data)):
        """Latest price. Always answers; falls back to a fixed price table."""
        return {"symbol": symbol.upper(), "price": await market.get_current_price(symbol)}

    @app.get("/ticker/{symbol}", response_model=Quote, tags=["Market Data"])
    async def get_ticker(symbol: str, market: MarketDataService = Depends(get_market_data)):
        """24h ticker statistics."""
        try:
            return await market.get_ticker(symbol)
        except MarketDataError as e:
            raise _upstream_error(e)

    @app.get("/klines/{symbol}", response_model=List[Candle], tags=["Market Data"])
    async def get_klines(
        symbol: str,
        interval: str = Query("1m", description="Binance interval token (e.g., 1m, 1h, 1d)"),
        limit: int = Query(100, ge=1, le=1000, description="Number of candles"),
        market: MarketDataService = Depends(get_market_data),
    ):
        """Most recent candles from Binance, no fallback."""
        try:
            return await market.get_klines(symbol, interval, limit)
        except MarketDataError as e:
            raise _upstream_error(e)

    @app.get("/history/{symbol}", response_model=List[Candle], tags=["Market Data"])
    async def get_history(
        symbol: str,
        timeframe: str = Query("1h", description="1m, 5m, 15m, 30m, 1h, 4h or 1d"),
        limit: int = Query(500, ge=1, le=1000, description="Number of candles"),
        market: MarketDataService = Depends(get_market_data),
    ):
        """Historical candles; synthetic when live data is unavailable."""
        return await market.get_historical_data(symbol, timeframe, limit)

    @app.get("/orderbook/{symbol}", response_model=OrderBookSnapshot, tags=["Market Data"])
    async def get_order_book(
        symbol: str,
        limit: int = Query(20, ge=1, le=5000, description="Depth per side"),
        market: MarketDataService = Depends(get_market_data),
    ):
        """Order book depth."""
        try:
            return await market.get_order_book(symbol, limit)
        except MarketDataError as e:
            raise _upstream_error(e)

    @app.get("/symbols", response_model=List[str], tags=["Market Data"])
    async def get_symbols(market: MarketDataService = Depends(get_market_data)):
        """Symbols currently trading."""
        try:
            return await market.get_symbols()
        except MarketDataError as e:
            raise _upstream_error(e)

    @app.get("/pnl/{symbol}", response_model=PnLResult, tags=["Positions"])
    async def get_pnl(
        symbol: str,
        side: PositionSide = Query(..., description="LONG or SHORT"),
        entry_price: float = Query(..., gt=0),
        quantity: float = Query(..., gt=0),
        market: MarketDataService = Depends(get_market_data),
    ):
        """Position PnL at the current price."""
        return await market.calculate_pnl(symbol, side, entry_price, quantity)

    # ============================================
    # WebSocket Endpoints
    # ============================================

    async def _pump(websocket: WebSocket, stream: ChannelStream, label: str, encode) -> None:
        """
        Forward stream values to the client until either side ends.

        The client's receive side is watched alongside the stream, so a
        client that leaves is noticed even while nothing is being published.
        """
        await websocket.accept()
        logger.info(f"WS connected: {label}")

        async def forward() -> None:
            async for value in stream:
                await websocket.send_json(encode(value))

        async def watch() -> None:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))

        sender = asyncio.create_task(forward(), name=f"ws-send-{label}")
        receiver = asyncio.create_task(watch(), name=f"ws-recv-{label}")
        try:
            done, _ = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                task.result()
        except WebSocketDisconnect:
            logger.info(f"WS disconnected: {label}")
        except Exception as e:
            logger.error(f"WS error {label}: {e}")
        finally:
            stream.close()
            for task in (sender, receiver):
                task.cancel()
            await asyncio.gather(sender, receiver, return_exceptions=True)
            logger.info(f"WS ended: {label}")

    @app.websocket("/ws/ticker/{symbol}")
    async def websocket_ticker(websocket: WebSocket, symbol: str):
        """
        Live ticker stream.

        The first message is the last known quote (price 0 for a brand-new
        subscription), followed by one message per refresh.
        """
        market: MarketDataService = websocket.app.state.market_data
        stream = market.subscribe_to_ticker(symbol)
        await _pump(websocket, stream, f"ticker/{symbol.upper()}", lambda q: q.model_dump())

    @app.websocket("/ws/candles/{symbol}")
    async def websocket_candles(
        websocket: WebSocket,
        symbol: str,
        interval: str = Query(default="1m", description="Kline interval (e.g., 1m, 5m, 1h)"),
    ):
        """Live candle stream; each message is the full list of recent candles."""
        market: MarketDataService = websocket.app.state.market_data
        stream = market.subscribe_to_candles(symbol, interval)
        await _pump(
            websocket,
            stream,
            f"candles/{symbol.upper()}/{interval}",
            lambda candles: [c.model_dump() for c in candles],
        )

    return app


app = create_app()

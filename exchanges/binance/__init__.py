"""
Binance Spot Connector

Public, unauthenticated market data from the Binance spot REST API (v3).

Endpoints Used:
    - GET /api/v3/ping          - Liveness probe
    - GET /api/v3/ticker/price  - Latest price
    - GET /api/v3/ticker/24hr   - 24h rolling statistics
    - GET /api/v3/klines        - Candlestick history
    - GET /api/v3/depth         - Order book depth
    - GET /api/v3/exchangeInfo  - Symbol metadata
"""

from .api_client import BinanceSpotClient

__all__ = ["BinanceSpotClient"]

"""
FastAPI Application Package

Serves the market data layer over REST and WebSocket endpoints.
The application owns one MarketDataService, created in its lifespan.
"""

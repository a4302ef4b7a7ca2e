"""
Core Package

Contains the exchange-agnostic building blocks of the market data layer:
- Config: Pydantic Settings loaded from environment / .env
- Logging: Centralized logger setup
- Schemas: Pydantic models for normalized data (Quote, Candle, OrderBookSnapshot, ...)
- Exceptions: Normalized failure types for remote calls

Everything above the REST client works with these types only.
"""

"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Validates all required settings
- Provides type-safe access to configuration values
- Converts comma-separated strings to lists (fallback symbols)
- Exposes polling periods both in milliseconds and seconds

Usage:
    from core.config import settings

    # Access configuration values
    print(settings.binance_base_url)
    print(settings.ticker_poll_interval)  # Seconds, for asyncio.sleep()
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application Settings

    This class defines all configuration parameters for the application.
    Values are automatically loaded from environment variables or .env file.

    Attributes:
        binance_base_url: Base URL for the Binance spot REST API (v3)
        request_timeout: Total timeout for a single HTTP request in seconds
        ticker_poll_interval_ms: Refresh period of ticker subscriptions
        candle_poll_multiplier: Candle subscriptions poll this many times slower than tickers
        candle_poll_limit: Number of candles fetched per candle refresh round
        default_klines_limit: Default candle count for get_klines()
        default_history_limit: Default candle count for get_historical_data()
        order_book_limit: Default depth for get_order_book()
        fallback_symbols: Symbols seeded with static quotes in FALLBACK mode
        app_host: Host address for FastAPI server
        app_port: Port number for FastAPI server
        environment: Current environment (development, production)
        log_level: Logging level
    """

    # ============================================
    # Binance API Configuration
    # ============================================

    binance_base_url: str = Field(
        default="https://api.binance.com/api/v3",
        description="Binance spot REST API base URL"
    )

    request_timeout: float = Field(
        default=10.0,
        description="HTTP request timeout in seconds"
    )

    # ============================================
    # Polling Configuration
    # ============================================

    ticker_poll_interval_ms: int = Field(
        default=2000,
        description="Ticker subscription refresh period in milliseconds"
    )

    candle_poll_multiplier: int = Field(
        default=5,
        description="Candle subscriptions refresh every N ticker periods"
    )

    candle_poll_limit: int = Field(
        default=100,
        description="Candles fetched per candle subscription round"
    )

    # ============================================
    # Request Defaults
    # ============================================

    default_klines_limit: int = Field(
        default=100,
        description="Default number of candles for raw kline requests"
    )

    default_history_limit: int = Field(
        default=500,
        description="Default number of candles for historical data requests"
    )

    order_book_limit: int = Field(
        default=20,
        description="Default order book depth"
    )

    fallback_symbols: str = Field(
        default="BTCUSDT,ETHUSDT,ADAUSDT",
        description="Comma-separated symbols seeded with static quotes in FALLBACK mode"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8000,
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        # Look for .env file in the project root
        env_file=".env",
        # Ignore extra fields in .env that aren't defined here
        extra="ignore",
        # Case-insensitive environment variable matching
        case_sensitive=False
    )

    # ============================================
    # Derived Properties
    # ============================================

    @property
    def fallback_symbols_list(self) -> List[str]:
        """
        Convert comma-separated fallback symbols string to a list.

        Example:
            >>> settings.fallback_symbols_list
            ['BTCUSDT', 'ETHUSDT', 'ADAUSDT']
        """
        return [s.strip().upper() for s in self.fallback_symbols.split(",") if s.strip()]

    @property
    def ticker_poll_interval(self) -> float:
        """Ticker refresh period in seconds."""
        return self.ticker_poll_interval_ms / 1000.0

    @property
    def candle_poll_interval(self) -> float:
        """Candle refresh period in seconds (ticker period x multiplier)."""
        return self.ticker_poll_interval * self.candle_poll_multiplier


# ============================================
# Global Settings Instance
# ============================================

# Default configuration, loaded once at import time.
# MarketDataService accepts its own Settings instance for tests.
settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Args:
        config: Settings to validate (defaults to the global settings)

    Raises:
        ValueError: If required configuration is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    config = config or settings

    for symbol in config.fallback_symbols_list:
        if not symbol.isalnum():
            raise ValueError(
                f"Fallback symbol '{symbol}' must be alphanumeric. "
                f"Please update FALLBACK_SYMBOLS in .env"
            )

    if config.ticker_poll_interval_ms <= 0:
        raise ValueError(
            f"Invalid TICKER_POLL_INTERVAL_MS: {config.ticker_poll_interval_ms}. Must be positive"
        )

    if config.candle_poll_multiplier < 1:
        raise ValueError(
            f"Invalid CANDLE_POLL_MULTIPLIER: {config.candle_poll_multiplier}. Must be at least 1"
        )

    if not (1 <= config.app_port <= 65535):
        raise ValueError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    logger.info("Configuration validated successfully")
    logger.info(f"Binance API: {config.binance_base_url}")
    logger.info(
        f"Polling: tickers every {config.ticker_poll_interval_ms}ms, "
        f"candles every {config.ticker_poll_interval_ms * config.candle_poll_multiplier}ms"
    )
    logger.info(f"Fallback symbols: {', '.join(config.fallback_symbols_list)}")
    logger.info(f"Log level: {config.log_level.upper()}")

"""
Logging Setup

One stdout handler is installed on the root logger at import time, at the
level named by the LOG_LEVEL setting. Modules take a child of the
"spotfeed" logger:

    from core.logging import get_logger

    logger = get_logger(__name__)   # "spotfeed.services.market_data"
    logger.warning("Using synthetic history for BTCUSDT 1h")

Levels as used here:
    DEBUG    - REST requests/responses, refresh rounds, generated history
    INFO     - Probe result, subscriptions created, cleanup
    WARNING  - Fallback decisions, rate-limited refresh rounds
    ERROR    - Failed remote calls, swallowed refresh failures
"""

import logging
import sys
from typing import Any, Dict, Optional


ROOT_LOGGER_NAME = "spotfeed"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """
    Install the stdout handler and return the "spotfeed" logger.

    Unknown level names fall back to INFO. Calling it again replaces the
    previous configuration.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        stream=sys.stdout,
        force=True
    )

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level)
    return root


try:
    from core.config import settings
    _initial_level = settings.log_level
except ImportError:
    _initial_level = "INFO"

logger = setup_logging(_initial_level)


def get_logger(name: str) -> logging.Logger:
    """Child logger "spotfeed.<name>" for a module."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


# ============================================
# REST Call Tracing
# ============================================

def log_api_request(exchange: str, endpoint: str, params: Optional[Dict[str, Any]] = None) -> None:
    """DEBUG line for an outgoing call, e.g. "API Request: binance /klines | Params: {...}"."""
    if params:
        logger.debug(f"API Request: {exchange} {endpoint} | Params: {params}")
    else:
        logger.debug(f"API Request: {exchange} {endpoint}")


def log_api_response(exchange: str, endpoint: str, status: int, response_time: Optional[float] = None) -> None:
    """DEBUG line for a reply, with the elapsed time when known."""
    time_str = f" | Time: {response_time:.3f}s" if response_time is not None else ""
    logger.debug(f"API Response: {exchange} {endpoint} | Status: {status}{time_str}")

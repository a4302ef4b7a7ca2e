"""
Market Data Errors

Every failure of a remote call is normalized into one of these before the
service applies its fallback policy:

- MarketDataError: transport failures (timeout, DNS, refused connection),
  non-success HTTP statuses and replies that cannot be parsed.
- ExchangeAPIError: the exchange answered but the payload is an error
  envelope such as {"code": -1121, "msg": "Invalid symbol."}.
"""

from typing import Optional


class MarketDataError(RuntimeError):
    """A remote market data call did not produce usable data."""


class ExchangeAPIError(MarketDataError):
    """
    Error reported by the exchange itself.

    Attributes:
        code: Exchange error code (e.g. -1121 for an invalid symbol)
        msg: Exchange error message
        status: HTTP status of the reply, when known
    """

    # Binance: 429 = request weight exceeded, 418 = IP auto-banned after repeated 429s
    RATE_LIMIT_STATUSES = (418, 429)
    RATE_LIMIT_CODES = (-1003,)

    def __init__(self, code: int, msg: str, status: Optional[int] = None):
        self.code = code
        self.msg = msg
        self.status = status
        super().__init__(f"Binance API Error {code}: {msg}")

    @property
    def is_rate_limited(self) -> bool:
        """True when the exchange rejected the call for exceeding its limits."""
        return self.status in self.RATE_LIMIT_STATUSES or self.code in self.RATE_LIMIT_CODES

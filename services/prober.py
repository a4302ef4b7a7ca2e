"""
Connection Prober

Decides once, at startup, whether market data is served LIVE from Binance or
from the synthetic generator (FALLBACK). There is no retry and no re-probe:
a failed probe commits the process to FALLBACK until restart.
"""

from typing import Iterable

from core.logging import get_logger
from core.schemas import Mode
from exchanges.binance import BinanceSpotClient
from services.subscriptions import SubscriptionManager
from services.synthetic import SyntheticDataGenerator


class ConnectionProber:
    """
    Single liveness check against the exchange.

    On FALLBACK it seeds `seed_symbols` with static quotes so price and
    ticker reads have data before any subscription exists.
    """

    def __init__(
        self,
        client: BinanceSpotClient,
        subscriptions: SubscriptionManager,
        generator: SyntheticDataGenerator,
        seed_symbols: Iterable[str],
    ):
        self.client = client
        self.subscriptions = subscriptions
        self.generator = generator
        self.seed_symbols = list(seed_symbols)
        self.logger = get_logger(__name__)

    async def probe(self) -> Mode:
        """
        Ping the exchange once.

        Returns:
            Mode.LIVE if the ping succeeded, Mode.FALLBACK on any failure
            (error status, timeout, DNS failure, refused connection)
        """
        try:
            await self.client.ping()
        except Exception as e:
            self.logger.warning(f"Connection to Binance failed, using fallback data: {e}")
            self._seed_fallback_quotes()
            return Mode.FALLBACK

        self.logger.info("Successfully connected to Binance API")
        return Mode.LIVE

    def _seed_fallback_quotes(self) -> None:
        for symbol in self.seed_symbols:
            self.subscriptions.seed_ticker(self.generator.static_quote(symbol))
        self.logger.info(f"Seeded fallback quotes: {', '.join(self.seed_symbols)}")

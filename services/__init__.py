"""
Services Package

The market data layer proper:
- market_data: MarketDataService, the public entry point
- prober: one-shot LIVE / FALLBACK decision at startup
- synthetic: fallback quotes and generated candle history
- subscriptions: shared polling subscriptions
- broadcast: latest-value channels feeding subscription streams
"""

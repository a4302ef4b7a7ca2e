"""
Test Suite

Contains unit tests for the market data layer and its HTTP surface.

Structure:
- tests/conftest.py: Shared fixtures (mocked exchange clients, fast-polling settings)
- tests/unit/: Tests for individual components (client, schemas, generator,
  subscriptions, service, API)

Uses pytest with pytest-asyncio for testing async functionality. No test
touches the network: the exchange client is always mocked.
"""

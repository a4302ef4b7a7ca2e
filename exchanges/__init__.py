"""
Exchange Connectors Package

Contains the REST client for the remote exchange that backs the market data
layer. Each exchange has its own subfolder with an api_client.py holding the
raw HTTP calls and the normalization of replies into core.schemas models.
"""

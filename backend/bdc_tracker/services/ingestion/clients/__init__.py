"""
clients package — External data access layers for ingestion.
"""

from .edgar_client import EdgarClient, EdgarClientError, EdgarClientSettings  # noqa: F401

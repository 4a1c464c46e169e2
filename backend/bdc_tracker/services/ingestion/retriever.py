"""
retriever.py — Download a filing's primary HTML document.
"""

from __future__ import annotations

from bdc_tracker.core.logging import get_logger
from bdc_tracker.services.ingestion.clients.edgar_client import EdgarClient, EdgarClientError
from bdc_tracker.services.ingestion.errors import RetrievalError

logger = get_logger(__name__)


def retrieve_document(client: EdgarClient, url: str) -> str:
    """Raises RetrievalError when the document cannot be fetched."""
    if not url:
        raise RetrievalError("Filing has no document URL")
    try:
        html = client.fetch_document(url)
    except EdgarClientError as exc:
        raise RetrievalError(f"Failed to fetch document {url}: {exc}") from exc
    logger.debug("Retrieved %s (%d chars)", url, len(html))
    return html

"""
edgar_client.py — HTTP client for SEC EDGAR endpoints.

Responsibilities:
- Direct HTTP communication with the submissions JSON feed and filing
  documents under www.sec.gov/Archives (no caching)
- Send the SEC-required identifying User-Agent on every request
- Polite rate limiting and retry behavior
- Stateless apart from the underlying `requests.Session`
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import requests
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from bdc_tracker.core.config import settings
from bdc_tracker.core.logging import get_logger


logger = get_logger(__name__)


SEC_BASE_HEADERS = {
    "Accept-Encoding": "gzip, deflate",
    "Connection": "keep-alive",
}

SUBMISSIONS_URL_TEMPLATE = "https://data.sec.gov/submissions/CIK{cik}.json"

RETRY_STATUS_CODES = {403, 429, 500, 502, 503, 504}


class EdgarClientError(RuntimeError):
    """Base exception for EDGAR client failures."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


@dataclass(frozen=True)
class EdgarClientSettings:
    user_agent: str
    sleep_seconds: float
    timeout_seconds: int
    max_retries: int
    backoff_base: float

    @classmethod
    def from_app_settings(cls) -> "EdgarClientSettings":
        return cls(
            user_agent=settings.EDGAR_USER_AGENT,
            sleep_seconds=settings.EDGAR_REQUEST_SLEEP_SECONDS,
            timeout_seconds=settings.EDGAR_REQUEST_TIMEOUT_SECONDS,
            max_retries=settings.EDGAR_MAX_RETRIES,
            backoff_base=settings.EDGAR_BACKOFF_BASE,
        )


class EdgarClient:
    """
    Thin wrapper over `requests.Session` with polite EDGAR defaults.

    The client is sync/blocking: the pipeline is sequential and the SEC caps
    clients at 10 requests per second.
    """

    def __init__(self, session: Optional[requests.Session] = None, config: Optional[EdgarClientSettings] = None):
        self._session = session or requests.Session()
        self._config = config or EdgarClientSettings.from_app_settings()
        if not self._config.user_agent:
            raise EdgarClientError("EDGAR requires an identifying User-Agent header.")
        self._session.headers.update({**SEC_BASE_HEADERS, "User-Agent": self._config.user_agent})

    # --------------------------------------------------------------------- #
    # Public API
    # --------------------------------------------------------------------- #
    def get_submissions(self, cik: Union[str, int]) -> Dict[str, Any]:
        """Fetch a company's submissions feed (filing history)."""
        padded = str(cik).strip().zfill(10)
        return self._request_json(SUBMISSIONS_URL_TEMPLATE.format(cik=padded))

    def fetch_document(self, url: str) -> str:
        """Fetch a filing document (HTML) as text."""
        response = self._request(url)
        return response.text

    # ------------------------------------------------------------------ #
    # Request helpers
    # ------------------------------------------------------------------ #
    def _request_json(self, url: str) -> Any:
        response = self._request(url)
        try:
            return response.json()
        except ValueError as exc:
            raise EdgarClientError(f"Invalid JSON from {url}", url=url, status_code=response.status_code) from exc

    def _request(self, url: str) -> requests.Response:
        try:
            response = self._retrying()(self._perform_request, url)
            response.raise_for_status()
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise EdgarClientError(f"EDGAR request failed with status {status}: {url}", url=url, status_code=status) from exc
        except requests.RequestException as exc:
            raise EdgarClientError(f"EDGAR request failed: {url} ({exc})", url=url) from exc
        finally:
            self._polite_sleep()
        return response

    def _polite_sleep(self) -> None:
        delay = max(self._config.sleep_seconds, 0.0)
        if delay:
            time.sleep(delay)

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(max(self._config.max_retries, 1)),
            wait=wait_exponential(multiplier=self._config.backoff_base, min=0.1, max=5),
            retry=retry_if_exception_type((requests.RequestException,)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def _perform_request(self, url: str) -> requests.Response:
        logger.debug("Requesting %s", url)
        response = self._session.get(url, timeout=self._config.timeout_seconds)
        if response.status_code in RETRY_STATUS_CODES:
            # Trigger retry
            msg = f"EDGAR request throttled or server error (status {response.status_code})"
            logger.warning("%s — retrying", msg)
            raise requests.HTTPError(msg, response=response)
        return response

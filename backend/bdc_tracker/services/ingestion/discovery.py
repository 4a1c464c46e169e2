"""
discovery.py — Find a company's 10-K / 10-Q filings on EDGAR.

Purpose:
- Read the submissions feed (`filings.recent` parallel arrays) for one CIK.
- Keep tracked form types whose filing date falls inside the lookback window
  (and, for incremental checks, strictly after a cutoff date).
- Build each filing's primary document URL.

Failures of the upstream index surface as `DiscoveryError`. Retrying is the
caller's job.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

from dateutil.relativedelta import relativedelta

from bdc_tracker.core.logging import get_logger
from bdc_tracker.models.filing import TRACKED_FORM_TYPES
from bdc_tracker.parsing.normalizer import parse_date
from bdc_tracker.services.ingestion.clients.edgar_client import EdgarClient, EdgarClientError
from bdc_tracker.services.ingestion.errors import DiscoveryError

logger = get_logger(__name__)

ARCHIVES_BASE_URL = "https://www.sec.gov/Archives/edgar/data"
CIK_WIDTH = 10


@dataclass(frozen=True)
class FilingMeta:
    accession_number: str
    filing_date: datetime.date
    form_type: str
    period_end_date: Optional[datetime.date]
    primary_document: str
    document_url: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accession_number": self.accession_number,
            "filing_date": self.filing_date.isoformat(),
            "form_type": self.form_type,
            "period_end_date": self.period_end_date.isoformat() if self.period_end_date else None,
            "document_url": self.document_url,
        }


def pad_cik(cik) -> str:
    """'1287750' → '0001287750'."""
    digits = str(cik).strip()
    if not digits.isdigit():
        raise DiscoveryError(f"Invalid CIK '{cik}'")
    return digits.zfill(CIK_WIDTH)


def build_document_url(cik, accession_number: str, primary_document: str) -> str:
    cik_path = str(int(str(cik).strip()))
    folder = accession_number.replace("-", "")
    return f"{ARCHIVES_BASE_URL}/{cik_path}/{folder}/{primary_document}"


def _column(recent: Dict[str, Any], key: str, length: int) -> List[Any]:
    values = recent.get(key) or []
    return list(values) + [None] * (length - len(values))


def parse_recent_filings(cik, payload: Dict[str, Any]) -> List[FilingMeta]:
    """Turn the `filings.recent` parallel arrays into `FilingMeta` rows (tracked forms only)."""
    recent = (payload.get("filings") or {}).get("recent") or {}
    forms = recent.get("form") or []
    count = len(forms)
    accessions = _column(recent, "accessionNumber", count)
    filing_dates = _column(recent, "filingDate", count)
    report_dates = _column(recent, "reportDate", count)
    documents = _column(recent, "primaryDocument", count)

    filings: List[FilingMeta] = []
    for form, accession, filed, reported, document in zip(forms, accessions, filing_dates, report_dates, documents):
        if form not in TRACKED_FORM_TYPES or not accession or not document:
            continue
        filing_date = parse_date(filed or "")
        if filing_date is None:
            logger.warning("Skipping %s %s: unparseable filing date %r", form, accession, filed)
            continue
        filings.append(
            FilingMeta(
                accession_number=accession,
                filing_date=filing_date,
                form_type=form,
                period_end_date=parse_date(reported or ""),
                primary_document=document,
                document_url=build_document_url(cik, accession, document),
            )
        )
    return filings


def filter_filings(
    filings: Iterable[FilingMeta],
    window_start: datetime.date,
    form_types: Sequence[str] = TRACKED_FORM_TYPES,
    since: Optional[datetime.date] = None,
) -> List[FilingMeta]:
    kept = [
        f for f in filings
        if f.form_type in form_types
        and f.filing_date >= window_start
        and (since is None or f.filing_date > since)
    ]
    return sorted(kept, key=lambda f: (f.filing_date, f.accession_number))


def discover_filings(
    client: EdgarClient,
    cik,
    years_back: int,
    form_types: Sequence[str] = TRACKED_FORM_TYPES,
    since: Optional[datetime.date] = None,
    today: Optional[datetime.date] = None,
) -> List[FilingMeta]:
    """
    Filings for `cik`, oldest first.

    Args:
        years_back: lookback window; filings dated before today - years_back are dropped
        form_types: subset of ("10-K", "10-Q")
        since: when given, only filings strictly newer than this date

    Raises:
        DiscoveryError: the submissions feed was unreachable or malformed
    """
    padded = pad_cik(cik)
    today = today or datetime.date.today()
    window_start = today - relativedelta(years=years_back)

    try:
        payload = client.get_submissions(padded)
    except EdgarClientError as exc:
        raise DiscoveryError(f"Filing index unavailable for CIK {padded}: {exc}") from exc

    if not isinstance(payload, dict):
        raise DiscoveryError(f"Unexpected submissions payload for CIK {padded}")

    filings = filter_filings(parse_recent_filings(cik, payload), window_start, form_types, since)
    logger.info(
        "Discovered %d filing(s) for CIK %s (forms=%s, since=%s, window_start=%s)",
        len(filings), padded, list(form_types), since, window_start,
    )
    return filings

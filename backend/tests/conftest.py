"""
Shared fixtures: in-memory database, a fake EDGAR HTTP session and sample
filing documents.
"""

import datetime
from typing import Any, Callable, Dict, List, Optional, Union

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from tenacity import wait_none

from bdc_tracker.core.database import build_session_factory, init_db
from bdc_tracker.models import Company
from bdc_tracker.services.ingestion.clients.edgar_client import EdgarClient, EdgarClientSettings
from bdc_tracker.services.ingestion.discovery import FilingMeta, build_document_url
from bdc_tracker.services.ingestion.repositories import FilingRepository
from bdc_tracker.services.ingestion.run_context import RunContext


TEST_USER_AGENT = "BDC Tracker Tests tests@example.com"


# ---------------------------------------------------------------------- #
# Sample documents
# ---------------------------------------------------------------------- #
SAMPLE_HTML_BASIC = """
<html><body>
<table>
  <tr>
    <th>Company Name</th>
    <th>Business Description</th>
    <th>Investment Type</th>
    <th>Principal Amount</th>
    <th>Fair Value</th>
  </tr>
  <tr>
    <td>ABC Corp</td>
    <td>Software services</td>
    <td>First Lien</td>
    <td>$1,000,000</td>
    <td>$950,000</td>
  </tr>
</table>
</body></html>
"""

SAMPLE_HTML_TWO_ROWS = """
<html><body>
<table>
  <tr>
    <th>Company Name</th>
    <th>Business Description</th>
    <th>Investment Type</th>
    <th>Principal Amount</th>
    <th>Fair Value</th>
  </tr>
  <tr>
    <td>ABC Corp</td><td>Software services</td><td>First Lien</td><td>$1,000,000</td><td>$950,000</td>
  </tr>
  <tr>
    <td>XYZ Inc</td><td>Manufacturing (non-accrual)</td><td>Second Lien</td><td>$2,500,000</td><td>$2,250,000</td>
  </tr>
</table>
</body></html>
"""

SAMPLE_HTML_SCHEDULE_TITLE = """
<html><body>
<h2>CONSOLIDATED SCHEDULE OF INVESTMENTS</h2>
<table>
  <thead>
    <tr>
      <th>Security Name</th>
      <th>Industry</th>
      <th>Tranche</th>
      <th>Coupon</th>
      <th>Principal</th>
      <th>Amortized Cost</th>
      <th>Fair Value</th>
    </tr>
  </thead>
  <tbody>
    <tr>
      <td>TechCorp LLC</td><td>Technology Services</td><td>Senior Secured</td><td>SOFR + 550</td>
      <td>5,000,000</td><td>4,900,000</td><td>4,750,000</td>
    </tr>
    <tr>
      <td>HealthCo Inc</td><td>Healthcare</td><td>Subordinated</td><td>12.5%</td>
      <td>3,000,000</td><td>2,950,000</td><td>3,100,000</td>
    </tr>
  </tbody>
</table>
</body></html>
"""

SAMPLE_HTML_WITH_FOOTNOTES = """
<html><body>
<table>
  <tr><th>Investment</th><th>Principal Amount</th><th>Fair Value</th></tr>
  <tr><td>RetailCo Ltd(1)</td><td>$1,500,000</td><td>$(200,000)</td></tr>
  <tr><td>ServiceCorp*</td><td>$800,000</td><td>$820,000</td></tr>
</table>
</body></html>
"""

SAMPLE_HTML_NO_SCHEDULE = """
<html><body>
<table>
  <tr><th>Unrelated Data</th><th>Other Info</th></tr>
  <tr><td>Random content</td><td>More content</td></tr>
</table>
</body></html>
"""

SAMPLE_HTML_COMPLEX = """
<html><body>
<h3>Schedule of Investments</h3>
<table>
  <tr>
    <th>Company Name</th>
    <th>Business Description</th>
    <th>Investment Tranche</th>
    <th>Coupon Rate</th>
    <th>Spread</th>
    <th>Acquisition Date</th>
    <th>Principal Amount</th>
    <th>Amortized Cost</th>
    <th>Fair Value</th>
  </tr>
  <tr>
    <td>Energy Solutions LLC</td><td>Renewable energy development</td><td>First Lien Term Loan</td>
    <td>LIBOR + 625</td><td>6.25%</td><td>03/15/2023</td>
    <td>$10,000,000</td><td>$9,800,000</td><td>$9,500,000</td>
  </tr>
  <tr>
    <td>Total Investments</td><td></td><td></td><td></td><td></td><td></td>
    <td>$10,000,000</td><td>$9,800,000</td><td>$9,500,000</td>
  </tr>
</table>
</body></html>
"""

SAMPLE_HTML_TOTAL_ONLY = """
<html><body>
<h3>Schedule of Investments</h3>
<table>
  <tr>
    <th>Company Name</th>
    <th>Investment Type</th>
    <th>Principal Amount</th>
    <th>Fair Value</th>
  </tr>
  <tr>
    <td>Total Investments</td><td></td><td>$10,000,000</td><td>$9,500,000</td>
  </tr>
  <tr>
    <td></td><td></td><td>10,000,000</td><td>9,500,000</td>
  </tr>
</table>
</body></html>
"""


# ---------------------------------------------------------------------- #
# Fake HTTP layer
# ---------------------------------------------------------------------- #
class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else ""

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON payload")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


Route = Union[FakeResponse, Callable[[str], FakeResponse], Exception]


class FakeSession:
    """Minimal stand-in for `requests.Session` keyed by exact URL."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None):
        self.headers: Dict[str, str] = {}
        self.routes: Dict[str, Route] = dict(routes or {})
        self.calls: List[Dict[str, Any]] = []

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def get(self, url: str, timeout: Optional[float] = None) -> FakeResponse:
        self.calls.append({"url": url, "headers": dict(self.headers), "timeout": timeout})
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(status_code=404)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(url)
        return route


def submissions_url(cik: str) -> str:
    return f"https://data.sec.gov/submissions/CIK{str(cik).zfill(10)}.json"


def make_submissions(filings: List[Dict[str, str]]) -> Dict[str, Any]:
    """Build a submissions payload with `filings.recent` parallel arrays."""
    recent: Dict[str, List[str]] = {
        "accessionNumber": [],
        "filingDate": [],
        "reportDate": [],
        "form": [],
        "primaryDocument": [],
    }
    for filing in filings:
        recent["accessionNumber"].append(filing["accession"])
        recent["filingDate"].append(filing["filed"])
        recent["reportDate"].append(filing.get("period", ""))
        recent["form"].append(filing["form"])
        recent["primaryDocument"].append(filing.get("document", "doc.htm"))
    return {"cik": "", "name": "Test BDC", "filings": {"recent": recent}}


def register_company_filings(
    session: FakeSession,
    cik: str,
    filings: List[Dict[str, str]],
    html: str = SAMPLE_HTML_BASIC,
) -> None:
    """Route the submissions feed and every filing document for one CIK."""
    session.add(submissions_url(cik), FakeResponse(payload=make_submissions(filings)))
    for filing in filings:
        url = build_document_url(cik, filing["accession"], filing.get("document", "doc.htm"))
        session.add(url, FakeResponse(text=filing.get("html", html)))


# ---------------------------------------------------------------------- #
# Fixtures
# ---------------------------------------------------------------------- #
@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = build_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def repository(db) -> FilingRepository:
    return FilingRepository(db)


@pytest.fixture
def context(repository) -> RunContext:
    return RunContext(repository, "test")


@pytest.fixture
def http_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def edgar_client(http_session) -> EdgarClient:
    config = EdgarClientSettings(
        user_agent=TEST_USER_AGENT,
        sleep_seconds=0,
        timeout_seconds=5,
        max_retries=1,
        backoff_base=0.01,
    )
    return EdgarClient(session=http_session, config=config)


@pytest.fixture
def no_wait():
    return wait_none()


@pytest.fixture
def make_company(db):
    def _make(ticker: str, cik: Optional[str] = "1234567", fye=(12, 31), is_active: bool = True) -> Company:
        company = Company(
            ticker=ticker,
            cik=cik,
            company_name=f"{ticker} Capital Corp",
            is_active=is_active,
            fiscal_year_end_month=fye[0] if fye else None,
            fiscal_year_end_day=fye[1] if fye else None,
        )
        db.add(company)
        db.commit()
        return company
    return _make


@pytest.fixture
def make_filing(repository):
    def _make(
        company: Company,
        accession: str = "0001234567-24-000001",
        form_type: str = "10-Q",
        filing_date: datetime.date = datetime.date(2024, 5, 15),
        document: str = "doc.htm",
    ):
        meta = FilingMeta(
            accession_number=accession,
            filing_date=filing_date,
            form_type=form_type,
            period_end_date=None,
            primary_document=document,
            document_url=build_document_url(company.cik, accession, document),
        )
        filing, _ = repository.upsert_filing(company, meta)
        return filing
    return _make

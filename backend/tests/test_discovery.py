"""
Unit tests for EdgarClient, services/ingestion/discovery.py and retriever.py
"""

import datetime

import pytest
import requests

from bdc_tracker.services.ingestion.clients.edgar_client import EdgarClient, EdgarClientError, EdgarClientSettings
from bdc_tracker.services.ingestion.discovery import (
    FilingMeta,
    build_document_url,
    discover_filings,
    filter_filings,
    pad_cik,
    parse_recent_filings,
)
from bdc_tracker.services.ingestion.errors import DiscoveryError, RetrievalError
from bdc_tracker.services.ingestion.retriever import retrieve_document

from conftest import TEST_USER_AGENT, FakeResponse, FakeSession, make_submissions, submissions_url


TODAY = datetime.date(2024, 6, 30)

FILINGS = [
    {"accession": "0001287750-24-000010", "filed": "2024-05-01", "period": "2024-03-31", "form": "10-Q", "document": "q1.htm"},
    {"accession": "0001287750-24-000002", "filed": "2024-02-10", "period": "2023-12-31", "form": "10-K", "document": "k.htm"},
    {"accession": "0001287750-24-000005", "filed": "2024-02-10", "period": "", "form": "8-K", "document": "8k.htm"},
    {"accession": "0001287750-23-000020", "filed": "2023-11-01", "period": "2023-09-30", "form": "10-Q", "document": "q3.htm"},
    {"accession": "0001287750-22-000001", "filed": "2022-05-01", "period": "2022-03-31", "form": "10-Q", "document": "old.htm"},
    {"accession": "0001287750-24-000011", "filed": "2024-05-02", "period": "2024-03-31", "form": "10-Q/A", "document": "qa.htm"},
]


def meta(accession: str, filed: datetime.date, form: str = "10-Q") -> FilingMeta:
    return FilingMeta(
        accession_number=accession,
        filing_date=filed,
        form_type=form,
        period_end_date=None,
        primary_document="doc.htm",
        document_url="",
    )


# ---------------------------------------------------------------------- #
# Pure helpers
# ---------------------------------------------------------------------- #
@pytest.mark.parametrize("cik, expected", [("1287750", "0001287750"), (1287750, "0001287750"), ("0001287750", "0001287750")])
def test_pad_cik(cik, expected):
    assert pad_cik(cik) == expected


@pytest.mark.parametrize("cik", ["", "abc", "12-34"])
def test_pad_cik_rejects_non_digits(cik):
    with pytest.raises(DiscoveryError):
        pad_cik(cik)


def test_document_url_format():
    url = build_document_url("0001287750", "0001287750-24-000010", "arcc-20240331.htm")
    assert url == "https://www.sec.gov/Archives/edgar/data/1287750/000128775024000010/arcc-20240331.htm"


def test_parse_recent_keeps_tracked_forms_only():
    filings = parse_recent_filings("1287750", make_submissions(FILINGS))
    assert {f.form_type for f in filings} == {"10-K", "10-Q"}
    assert len(filings) == 4
    annual = next(f for f in filings if f.form_type == "10-K")
    assert annual.period_end_date == datetime.date(2023, 12, 31)
    assert annual.document_url.endswith("/1287750/000128775024000002/k.htm")


def test_parse_recent_handles_missing_arrays():
    assert parse_recent_filings("1", {}) == []
    assert parse_recent_filings("1", {"filings": {"recent": {}}}) == []


def test_filter_applies_window_since_and_order():
    filings = [
        meta("B", datetime.date(2024, 5, 1)),
        meta("A", datetime.date(2024, 5, 1)),
        meta("C", datetime.date(2023, 1, 1)),
        meta("D", datetime.date(2021, 1, 1)),
        meta("E", datetime.date(2024, 2, 1), form="10-K"),
    ]
    window_start = datetime.date(2022, 1, 1)

    kept = filter_filings(filings, window_start)
    assert [f.accession_number for f in kept] == ["C", "E", "A", "B"]

    assert [f.accession_number for f in filter_filings(filings, window_start, form_types=("10-K",))] == ["E"]

    newer = filter_filings(filings, window_start, since=datetime.date(2024, 2, 1))
    assert [f.accession_number for f in newer] == ["A", "B"]


# ---------------------------------------------------------------------- #
# Against the fake EDGAR session
# ---------------------------------------------------------------------- #
def test_discover_filings_window(edgar_client, http_session):
    http_session.add(submissions_url("1287750"), FakeResponse(payload=make_submissions(FILINGS)))

    filings = discover_filings(edgar_client, "1287750", years_back=1, today=TODAY)
    assert [f.accession_number for f in filings] == [
        "0001287750-23-000020",
        "0001287750-24-000002",
        "0001287750-24-000010",
    ]

    quarterly = discover_filings(edgar_client, "1287750", years_back=5, form_types=("10-Q",), today=TODAY)
    assert [f.filing_date.year for f in quarterly] == [2022, 2023, 2024]


def test_discover_filings_since(edgar_client, http_session):
    http_session.add(submissions_url("1287750"), FakeResponse(payload=make_submissions(FILINGS)))
    filings = discover_filings(edgar_client, "1287750", years_back=5, since=datetime.date(2024, 2, 10), today=TODAY)
    assert [f.accession_number for f in filings] == ["0001287750-24-000010"]


def test_discover_filings_server_error(edgar_client, http_session):
    http_session.add(submissions_url("1287750"), FakeResponse(status_code=500))
    with pytest.raises(DiscoveryError):
        discover_filings(edgar_client, "1287750", years_back=1, today=TODAY)


def test_discover_filings_network_error(edgar_client, http_session):
    http_session.add(submissions_url("1287750"), requests.ConnectionError("connection reset"))
    with pytest.raises(DiscoveryError):
        discover_filings(edgar_client, "1287750", years_back=1, today=TODAY)


def test_discover_filings_invalid_json(edgar_client, http_session):
    http_session.add(submissions_url("1287750"), FakeResponse(payload=None, text="<html>"))
    with pytest.raises(DiscoveryError):
        discover_filings(edgar_client, "1287750", years_back=1, today=TODAY)


def test_every_request_carries_user_agent(edgar_client, http_session):
    http_session.add(submissions_url("1287750"), FakeResponse(payload=make_submissions(FILINGS)))
    http_session.add("https://www.sec.gov/doc.htm", FakeResponse(text="<html></html>"))

    discover_filings(edgar_client, "1287750", years_back=1, today=TODAY)
    retrieve_document(edgar_client, "https://www.sec.gov/doc.htm")

    assert len(http_session.calls) == 2
    assert all(call["headers"]["User-Agent"] == TEST_USER_AGENT for call in http_session.calls)


def test_client_retries_throttled_requests():
    responses = [FakeResponse(status_code=429), FakeResponse(status_code=503), FakeResponse(text="ok")]
    session = FakeSession({"https://www.sec.gov/doc.htm": lambda url: responses.pop(0)})
    config = EdgarClientSettings(
        user_agent=TEST_USER_AGENT, sleep_seconds=0, timeout_seconds=5, max_retries=3, backoff_base=0,
    )
    client = EdgarClient(session=session, config=config)

    assert client.fetch_document("https://www.sec.gov/doc.htm") == "ok"
    assert len(session.calls) == 3


def test_client_requires_user_agent():
    config = EdgarClientSettings(user_agent="", sleep_seconds=0, timeout_seconds=5, max_retries=1, backoff_base=0)
    with pytest.raises(EdgarClientError):
        EdgarClient(session=FakeSession(), config=config)


# ---------------------------------------------------------------------- #
# Retrieval
# ---------------------------------------------------------------------- #
def test_retrieve_document_returns_text(edgar_client, http_session):
    http_session.add("https://www.sec.gov/doc.htm", FakeResponse(text="<table></table>"))
    assert retrieve_document(edgar_client, "https://www.sec.gov/doc.htm") == "<table></table>"


def test_retrieve_document_not_found(edgar_client):
    with pytest.raises(RetrievalError) as excinfo:
        retrieve_document(edgar_client, "https://www.sec.gov/missing.htm")
    assert "404" in str(excinfo.value)


def test_retrieve_document_without_url(edgar_client):
    with pytest.raises(RetrievalError):
        retrieve_document(edgar_client, "")

"""
Tests for BackfillController: full backfill isolation, idempotency,
cancellation and incremental checks.
"""

import datetime

import pytest

from bdc_tracker.models import Filing, ProcessingLog, RawInvestment
from bdc_tracker.parsing import ParsePolicy
from bdc_tracker.services.ingestion.backfill_controller import BackfillController
from bdc_tracker.services.ingestion.errors import CompanyNotFoundError, DiscoveryError, MissingCikError
from bdc_tracker.services.ingestion.extraction_orchestrator import ExtractionOrchestrator

from conftest import (
    SAMPLE_HTML_TWO_ROWS,
    FakeResponse,
    make_submissions,
    register_company_filings,
    submissions_url,
)


TODAY = datetime.date(2024, 6, 30)

CIK_A, CIK_B, CIK_C = "1111111", "2222222", "3333333"


def filings_for(prefix: str):
    return [
        {"accession": f"{prefix}-24-000002", "filed": "2024-05-10", "period": "2024-03-31", "form": "10-Q"},
        {"accession": f"{prefix}-24-000001", "filed": "2024-02-20", "period": "2023-12-31", "form": "10-K"},
    ]


@pytest.fixture
def controller(repository, edgar_client, no_wait):
    return BackfillController(
        repository,
        edgar_client,
        orchestrator=ExtractionOrchestrator(repository, edgar_client, policy=ParsePolicy.lenient()),
        discovery_attempts=2,
        discovery_wait=no_wait,
        today=lambda: TODAY,
    )


@pytest.fixture
def three_companies(make_company, http_session):
    companies = {
        "AAA": make_company("AAA", cik=CIK_A),
        "BBB": make_company("BBB", cik=CIK_B),
        "CCC": make_company("CCC", cik=CIK_C),
    }
    register_company_filings(http_session, CIK_A, filings_for("0001111111"))
    register_company_filings(http_session, CIK_C, filings_for("0003333333"))
    return companies


# ---------------------------------------------------------------------- #
# Full backfill
# ---------------------------------------------------------------------- #
def test_full_backfill_isolates_company_failures(db, controller, http_session, three_companies, context):
    http_session.add(submissions_url(CIK_B), FakeResponse(status_code=500))

    summary = controller.run_full_backfill(context, years_back=9)

    assert summary.processed == 2
    assert summary.errors == 1
    assert summary.failures[0]["ticker"] == "BBB"
    assert [c["ticker"] for c in summary.companies] == ["AAA", "CCC"]

    stored = {f.ticker for f in db.query(Filing).all()}
    assert stored == {"AAA", "CCC"}
    assert db.query(Filing).filter(Filing.status == "completed").count() == 4
    assert db.query(RawInvestment).count() == 4

    errors = db.query(ProcessingLog).filter(ProcessingLog.log_level == "error").all()
    assert [e.details["ticker"] for e in errors] == ["BBB"]


def test_discovery_is_retried(controller, http_session, make_company, context):
    make_company("AAA", cik=CIK_A)
    filings = filings_for("0001111111")
    register_company_filings(http_session, CIK_A, filings, html=SAMPLE_HTML_TWO_ROWS)
    responses = [FakeResponse(status_code=503), FakeResponse(payload=make_submissions(filings))]
    http_session.add(submissions_url(CIK_A), lambda url: responses.pop(0))

    result = controller.run_ticker_backfill("AAA", context, years_back=9)

    assert result.discovered == 2
    assert result.extracted == 2
    assert result.investments == 4


def test_discovery_gives_up_after_max_attempts(controller, http_session, make_company, context):
    company = make_company("AAA", cik=CIK_A)
    http_session.add(submissions_url(CIK_A), FakeResponse(status_code=500))

    with pytest.raises(DiscoveryError):
        controller.backfill_company(company, 9, context)
    submissions_calls = [c for c in http_session.calls if c["url"] == submissions_url(CIK_A)]
    assert len(submissions_calls) == 2


def test_backfill_is_idempotent_per_accession(db, controller, three_companies, http_session, context):
    http_session.add(submissions_url(CIK_B), FakeResponse(payload=make_submissions([])))

    controller.run_full_backfill(context, years_back=9)
    second = controller.run_full_backfill(context, years_back=9)

    assert db.query(Filing).count() == 4
    accessions = [f.accession_number for f in db.query(Filing).all()]
    assert len(accessions) == len(set(accessions))
    # Completed filings are not extracted again
    assert all(c["new_filings"] == 0 and c["extracted"] == 0 for c in second.companies)
    assert db.query(RawInvestment).count() == 4


def test_failed_filings_are_counted_not_raised(db, controller, http_session, make_company, context):
    make_company("AAA", cik=CIK_A)
    http_session.add(submissions_url(CIK_A), FakeResponse(payload=make_submissions(filings_for("0001111111"))))
    # Only the 10-K document is served; the 10-Q document answers 404
    http_session.add(
        f"https://www.sec.gov/Archives/edgar/data/{int(CIK_A)}/000111111124000001/doc.htm",
        FakeResponse(text=SAMPLE_HTML_TWO_ROWS),
    )

    result = controller.run_ticker_backfill("AAA", context, years_back=9)

    assert result.extracted == 1
    assert result.failed == 1
    statuses = {f.accession_number: f.status for f in db.query(Filing).all()}
    assert statuses == {"0001111111-24-000001": "completed", "0001111111-24-000002": "failed"}


def test_full_backfill_stops_when_cancelled(db, controller, http_session, three_companies, context):
    payload = make_submissions(filings_for("0001111111"))

    def cancel_during_first_company(url):
        context.cancel()
        return FakeResponse(payload=payload)

    http_session.add(submissions_url(CIK_A), cancel_during_first_company)

    summary = controller.run_full_backfill(context, years_back=9)

    assert summary.cancelled
    assert summary.processed == 1
    assert {f.ticker for f in db.query(Filing).all()} == {"AAA"}
    assert not any(c["url"] == submissions_url(CIK_C) for c in http_session.calls)


def test_inactive_companies_are_not_backfilled(db, controller, http_session, make_company, context):
    make_company("OLD", cik=CIK_A, is_active=False)
    register_company_filings(http_session, CIK_A, filings_for("0001111111"))

    summary = controller.run_full_backfill(context, years_back=9)

    assert summary.processed == 0
    assert db.query(Filing).count() == 0


def test_ticker_backfill_errors(controller, make_company, context):
    with pytest.raises(CompanyNotFoundError):
        controller.run_ticker_backfill("NOPE", context)

    make_company("NOCIK", cik=None)
    with pytest.raises(MissingCikError):
        controller.run_ticker_backfill("NOCIK", context)


def test_ticker_lookup_is_case_insensitive(controller, make_company):
    make_company("ARCC")
    assert controller.get_company("arcc").ticker == "ARCC"


# ---------------------------------------------------------------------- #
# Incremental check
# ---------------------------------------------------------------------- #
def test_incremental_uses_latest_stored_filing_as_cutoff(db, controller, make_company, make_filing, http_session, context):
    company = make_company("AAA", cik=CIK_A)
    make_filing(company, accession="0001111111-23-000050", form_type="10-Q", filing_date=datetime.date(2023, 11, 5))

    filings = [
        {"accession": "0001111111-23-000050", "filed": "2023-11-05", "form": "10-Q"},
        {"accession": "0001111111-23-000040", "filed": "2023-08-05", "form": "10-Q"},
        {"accession": "0001111111-24-000010", "filed": "2024-05-06", "form": "10-Q"},
        {"accession": "0001111111-24-000005", "filed": "2024-02-25", "form": "10-K"},
    ]
    register_company_filings(http_session, CIK_A, filings)

    result = controller.run_incremental_check("AAA", "10-Q", context)

    assert result.cutoff == datetime.date(2023, 11, 5)
    assert result.new_filings == 1
    assert result.extracted == 1
    assert result.filings[0]["accession_number"] == "0001111111-24-000010"
    assert result.to_dict()["cutoff"] == "2023-11-05"
    assert db.query(Filing).count() == 2


def test_incremental_defaults_to_one_year_lookback(db, controller, make_company, http_session, context):
    make_company("AAA", cik=CIK_A)
    filings = [
        {"accession": "0001111111-23-000001", "filed": "2023-05-01", "form": "10-K"},
        {"accession": "0001111111-24-000001", "filed": "2024-02-28", "form": "10-K"},
    ]
    register_company_filings(http_session, CIK_A, filings)

    result = controller.run_incremental_check("AAA", "10-K", context)

    assert result.cutoff == datetime.date(2023, 6, 30)
    assert [f["accession_number"] for f in result.filings] == ["0001111111-24-000001"]
    assert db.query(Filing).one().status == "completed"


def test_incremental_rejects_unknown_form(controller, make_company, context):
    make_company("AAA", cik=CIK_A)
    with pytest.raises(ValueError):
        controller.run_incremental_check("AAA", "8-K", context)

"""
extraction_orchestrator.py — Drive one filing through the extraction pipeline.

    pending ──> processing ──> retrieve ──> parse ──> compute ──> persist ──> completed
                    │              │           │                     │
                    └──────────────┴───────────┴─────────────────────┴──> failed

Rules:
- `processing` is set and committed before the document is fetched.
- `completed` is committed in the same transaction as the filing's raw +
  computed rows, so a completed filing always has all of its rows.
- Any retrieval / parse / persistence failure leaves the filing `failed`
  with the error message recorded, then re-raises the typed error. Anything
  else is wrapped as `ExtractionError`; an interrupt is re-raised as is.
- A document with no schedule table is a valid outcome: zero rows, `completed`.
- A `completed` filing is skipped unless `force=True`, in which case its
  previous rows are replaced.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from bdc_tracker.core.logging import get_logger
from bdc_tracker.models import ComputedInvestment, Filing, FilingStatus, RawInvestment
from bdc_tracker.parsing import ExtractedInvestment, ParsePolicy, ParseResult, parse_schedule
from bdc_tracker.services.ingestion.clients.edgar_client import EdgarClient
from bdc_tracker.services.ingestion.computations import compute_mark, detect_non_accrual, quarter_year
from bdc_tracker.services.ingestion.errors import (
    ExtractionError,
    PersistenceError,
    PipelineError,
)
from bdc_tracker.services.ingestion.repositories.filing_repository import FilingRepository, InvestmentPair
from bdc_tracker.services.ingestion.retriever import retrieve_document
from bdc_tracker.services.ingestion.run_context import RunContext

logger = get_logger(__name__)


@dataclass
class ExtractionOutcome:
    filing_id: int
    accession_number: str
    status: str
    investments: int = 0
    skipped: bool = False
    no_schedule_found: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_investment_pair(filing: Filing, extracted: ExtractedInvestment) -> InvestmentPair:
    raw = RawInvestment(**extracted.record_fields())
    computed = ComputedInvestment(
        mark=compute_mark(extracted.fair_value, extracted.principal_amount),
        is_non_accrual=detect_non_accrual(extracted.business_description),
        quarter_year=quarter_year(filing.filing_date, filing.filing_type),
    )
    return raw, computed


class ExtractionOrchestrator:
    def __init__(
        self,
        repository: FilingRepository,
        client: EdgarClient,
        policy: Optional[ParsePolicy] = None,
    ) -> None:
        self._repository = repository
        self._client = client
        self._policy = policy or ParsePolicy.from_settings()

    # ------------------------------------------------------------------ #
    def extract(self, filing: Filing, context: RunContext, force: bool = False) -> ExtractionOutcome:
        if filing.status_enum is FilingStatus.COMPLETED and not force:
            logger.info("Filing %s already completed; skipping.", filing.accession_number)
            return ExtractionOutcome(
                filing_id=filing.id,
                accession_number=filing.accession_number,
                status=filing.status,
                skipped=True,
            )

        # Raises InvalidStatusTransitionError for a filing already in processing
        filing.mark_processing(reextract=force)
        self._repository.save_filing(filing, "Marking filing processing")
        logger.info("Extracting %s %s (%s)", filing.ticker, filing.filing_type, filing.accession_number)

        try:
            html = retrieve_document(self._client, filing.document_url)
            result = self._parse(html)
            pairs = [build_investment_pair(filing, row) for row in result.investments]
            stored = self._repository.store_extraction(filing, pairs, replace=force)
        except PipelineError as exc:
            self._fail(filing, exc, context)
            raise
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unexpected failure extracting %s", filing.accession_number)
            self._repository.rollback()
            error = ExtractionError(f"Unexpected failure: {exc}")
            self._fail(filing, error, context)
            raise error from exc
        except BaseException as exc:
            # Interrupted mid-run; don't leave the filing stuck in processing
            self._repository.rollback()
            self._fail(filing, exc, context)
            raise

        details = {
            "ticker": filing.ticker,
            "accession_number": filing.accession_number,
            "investments": stored,
            "tables": [t.to_dict() for t in result.tables],
        }
        if result.no_schedule_found:
            context.info("No schedule of investments found", filing_id=filing.id, **details)
        else:
            context.info(f"Extracted {stored} investment(s)", filing_id=filing.id, **details)

        return ExtractionOutcome(
            filing_id=filing.id,
            accession_number=filing.accession_number,
            status=filing.status,
            investments=stored,
            no_schedule_found=result.no_schedule_found,
        )

    # ------------------------------------------------------------------ #
    def _parse(self, html: str) -> ParseResult:
        try:
            return parse_schedule(html, self._policy)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Parser failure")
            raise ExtractionError(f"Failed to parse schedule: {exc}") from exc

    def _fail(self, filing: Filing, exc: BaseException, context: RunContext) -> None:
        message = str(exc) or exc.__class__.__name__
        filing.mark_failed(message)
        try:
            self._repository.save_filing(filing, "Marking filing failed")
        except PersistenceError as save_exc:
            logger.error("Could not record failure of %s: %s", filing.accession_number, save_exc)
        context.error(
            "Filing extraction failed",
            filing_id=filing.id,
            ticker=filing.ticker,
            accession_number=filing.accession_number,
            error_type=exc.__class__.__name__,
            error=message,
        )


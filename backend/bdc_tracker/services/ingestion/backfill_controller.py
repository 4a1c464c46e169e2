"""
backfill_controller.py — Run discovery + extraction across tracked companies.

Two modes:
    * Full backfill: every active company, long lookback window, one company
      at a time. A company that fails is logged and counted; the run moves on.
    * Incremental check: one company and one form type, only filings strictly
      newer than the latest stored one (or a short default lookback).

Discovery calls are retried here (not inside discovery) with tenacity.
Extraction of each stored filing is delegated to `ExtractionOrchestrator`.
"""

from __future__ import annotations

import datetime
import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from dateutil.relativedelta import relativedelta
from tenacity import Retrying, before_sleep_log, retry_if_exception_type, stop_after_attempt, wait_exponential

from bdc_tracker.core.config import settings
from bdc_tracker.core.logging import get_logger
from bdc_tracker.models import TRACKED_FORM_TYPES, Company, Filing
from bdc_tracker.services.ingestion.clients.edgar_client import EdgarClient
from bdc_tracker.services.ingestion.discovery import FilingMeta, discover_filings
from bdc_tracker.services.ingestion.errors import (
    CompanyNotFoundError,
    DiscoveryError,
    MissingCikError,
    PipelineError,
)
from bdc_tracker.services.ingestion.extraction_orchestrator import ExtractionOrchestrator, ExtractionOutcome
from bdc_tracker.services.ingestion.repositories.filing_repository import FilingRepository
from bdc_tracker.services.ingestion.run_context import RunContext


logger = get_logger(__name__)


# ---------------------------------------------------------------------- #
# Result types
# ---------------------------------------------------------------------- #
@dataclass
class CompanyRunResult:
    ticker: str
    discovered: int = 0
    new_filings: int = 0
    extracted: int = 0
    failed: int = 0
    investments: int = 0
    filings: List[Dict[str, Any]] = field(default_factory=list)

    def record(self, outcome: ExtractionOutcome) -> None:
        self.filings.append(outcome.to_dict())
        if outcome.error is not None:
            self.failed += 1
        elif not outcome.skipped:
            self.extracted += 1
            self.investments += outcome.investments

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BackfillSummary:
    processed: int = 0
    errors: int = 0
    cancelled: bool = False
    companies: List[Dict[str, Any]] = field(default_factory=list)
    failures: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class IncrementalResult:
    ticker: str
    form_type: str
    cutoff: Optional[datetime.date]
    new_filings: int = 0
    extracted: int = 0
    failed: int = 0
    investments: int = 0
    filings: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["cutoff"] = self.cutoff.isoformat() if self.cutoff else None
        return data


# ---------------------------------------------------------------------- #
# Controller
# ---------------------------------------------------------------------- #
class BackfillController:
    """
    Sequential by design: the SEC index is rate limited, so companies and
    their filings are processed one at a time.
    """

    def __init__(
        self,
        repository: FilingRepository,
        client: EdgarClient,
        orchestrator: Optional[ExtractionOrchestrator] = None,
        discovery_attempts: Optional[int] = None,
        discovery_wait: Optional[Callable] = None,
        today: Optional[Callable[[], datetime.date]] = None,
    ) -> None:
        self._repository = repository
        self._client = client
        self._orchestrator = orchestrator or ExtractionOrchestrator(repository, client)
        self._discovery_attempts = discovery_attempts or settings.DISCOVERY_MAX_ATTEMPTS
        self._discovery_wait = discovery_wait or wait_exponential(multiplier=1, min=1, max=10)
        self._today = today or datetime.date.today

    # ------------------------------------------------------------------ #
    # Lookups
    # ------------------------------------------------------------------ #
    def get_company(self, ticker: str) -> Company:
        company = self._repository.get_company_by_ticker(ticker)
        if company is None:
            raise CompanyNotFoundError(f"No tracked company with ticker '{ticker}'")
        return company

    @staticmethod
    def _require_cik(company: Company) -> str:
        if not company.cik:
            raise MissingCikError(f"Company {company.ticker} has no CIK")
        return company.cik

    def _discover(
        self,
        company: Company,
        years_back: int,
        form_types: Sequence[str] = TRACKED_FORM_TYPES,
        since: Optional[datetime.date] = None,
    ) -> List[FilingMeta]:
        cik = self._require_cik(company)
        retrying = Retrying(
            stop=stop_after_attempt(max(self._discovery_attempts, 1)),
            wait=self._discovery_wait,
            retry=retry_if_exception_type(DiscoveryError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        return retrying(
            discover_filings,
            self._client,
            cik,
            years_back,
            form_types=form_types,
            since=since,
            today=self._today(),
        )

    def _extract(self, filing: Filing, context: RunContext) -> ExtractionOutcome:
        try:
            return self._orchestrator.extract(filing, context)
        except PipelineError as exc:
            # Already recorded on the filing and in the operational log
            return ExtractionOutcome(
                filing_id=filing.id,
                accession_number=filing.accession_number,
                status=filing.status,
                error=str(exc),
            )

    # ------------------------------------------------------------------ #
    # Full backfill
    # ------------------------------------------------------------------ #
    def backfill_company(self, company: Company, years_back: int, context: RunContext) -> CompanyRunResult:
        """Discover, upsert, then extract every pending filing of one company."""
        result = CompanyRunResult(ticker=company.ticker)
        discovered = self._discover(company, years_back)
        result.discovered = len(discovered)

        for meta in discovered:
            _, created = self._repository.upsert_filing(company, meta)
            if created:
                result.new_filings += 1

        for filing in self._repository.pending_filings(company.id):
            result.record(self._extract(filing, context))

        context.info(
            f"Backfill complete for {company.ticker}",
            ticker=company.ticker,
            discovered=result.discovered,
            new_filings=result.new_filings,
            extracted=result.extracted,
            failed=result.failed,
            investments=result.investments,
        )
        return result

    def run_full_backfill(self, context: RunContext, years_back: Optional[int] = None) -> BackfillSummary:
        years = years_back or settings.BACKFILL_YEARS
        companies = self._repository.list_active_companies()
        summary = BackfillSummary()
        context.info("Full backfill started", companies=len(companies), years_back=years)

        for company in companies:
            if context.cancelled:
                summary.cancelled = True
                context.warning("Full backfill cancelled", processed=summary.processed, errors=summary.errors)
                break
            try:
                result = self.backfill_company(company, years, context)
                summary.processed += 1
                summary.companies.append(result.to_dict())
            except Exception as exc:  # pylint: disable=broad-except
                self._repository.rollback()
                summary.errors += 1
                summary.failures.append({"ticker": company.ticker, "error": str(exc)})
                logger.exception("Backfill failed for %s", company.ticker)
                context.error(
                    f"Backfill failed for {company.ticker}",
                    ticker=company.ticker,
                    error_type=exc.__class__.__name__,
                    error=str(exc),
                )

        context.info(
            "Full backfill finished",
            processed=summary.processed,
            errors=summary.errors,
            cancelled=summary.cancelled,
        )
        return summary

    def run_ticker_backfill(self, ticker: str, context: RunContext, years_back: Optional[int] = None) -> CompanyRunResult:
        company = self.get_company(ticker)
        return self.backfill_company(company, years_back or settings.BACKFILL_YEARS, context)

    # ------------------------------------------------------------------ #
    # Incremental check
    # ------------------------------------------------------------------ #
    def run_incremental_check(self, ticker: str, form_type: str, context: RunContext) -> IncrementalResult:
        if form_type not in TRACKED_FORM_TYPES:
            raise ValueError(f"Unsupported form type '{form_type}'")
        company = self.get_company(ticker)
        today = self._today()

        cutoff = self._repository.latest_filing_date(company.id, form_type)
        if cutoff is None:
            cutoff = today - relativedelta(years=settings.INCREMENTAL_LOOKBACK_YEARS)
            # Window has to reach back far enough to include the default cutoff
            years_back = settings.INCREMENTAL_LOOKBACK_YEARS
        else:
            years_back = max(relativedelta(today, cutoff).years + 1, 1)

        result = IncrementalResult(ticker=company.ticker, form_type=form_type, cutoff=cutoff)
        discovered = self._discover(company, years_back, form_types=(form_type,), since=cutoff)

        for meta in discovered:
            if self._repository.filing_exists(meta.accession_number):
                continue
            filing, created = self._repository.upsert_filing(company, meta)
            if not created:
                continue
            result.new_filings += 1
            outcome = self._extract(filing, context)
            result.filings.append(outcome.to_dict())
            if outcome.error is not None:
                result.failed += 1
            else:
                result.extracted += 1
                result.investments += outcome.investments

        context.info(
            f"Incremental check complete for {company.ticker} {form_type}",
            ticker=company.ticker,
            form_type=form_type,
            cutoff=cutoff,
            new_filings=result.new_filings,
            failed=result.failed,
        )
        return result

"""
ingest_orchestrator.py — Entry point for every pipeline operation.

Provides high-level orchestration for:
    * Full backfill of the tracked BDC universe
    * Single-ticker backfills and single-filing (re-)extraction
    * Incremental checks for one company / form type
    * Filing due-date schedule recomputation and due-check runs
    * Re-queueing a stuck or failed filing

The HTTP router and the CLI both call this class; each call builds its own
`RunContext` and returns a dataclass summary (`.to_dict()`) or raises a
typed `PipelineError`.
"""

from __future__ import annotations

import datetime
import threading
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from bdc_tracker.core.logging import get_logger
from bdc_tracker.parsing import ParsePolicy
from bdc_tracker.services.ingestion.backfill_controller import (
    BackfillController,
    BackfillSummary,
    CompanyRunResult,
    IncrementalResult,
)
from bdc_tracker.services.ingestion.clients import EdgarClient
from bdc_tracker.services.ingestion.errors import FilingNotFoundError
from bdc_tracker.services.ingestion.extraction_orchestrator import ExtractionOrchestrator, ExtractionOutcome
from bdc_tracker.services.ingestion.repositories import FilingRepository
from bdc_tracker.services.ingestion.run_context import RunContext
from bdc_tracker.services.scheduling.filing_scheduler import DueCheckSummary, FilingScheduler, ScheduleSummary


logger = get_logger(__name__)


@dataclass
class RequeueResult:
    filing_id: int
    accession_number: str
    previous_status: str
    status: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class IngestOrchestrator:
    """
    Coordinates pipeline workflows over one database session.
    """

    def __init__(
        self,
        db: Session,
        client: Optional[EdgarClient] = None,
        policy: Optional[ParsePolicy] = None,
        discovery_wait: Optional[Callable] = None,
        today: Optional[Callable[[], datetime.date]] = None,
    ) -> None:
        self._repository = FilingRepository(db)
        self._client = client or EdgarClient()
        self._extractor = ExtractionOrchestrator(self._repository, self._client, policy=policy)
        self._controller = BackfillController(
            self._repository,
            self._client,
            orchestrator=self._extractor,
            discovery_wait=discovery_wait,
            today=today,
        )
        self._scheduler = FilingScheduler(self._repository)

    def _context(self, operation: str, cancel_event: Optional[threading.Event] = None) -> RunContext:
        return RunContext(self._repository, operation, cancel_event=cancel_event)

    # ------------------------------------------------------------------ #
    def run_full_backfill(
        self,
        years_back: Optional[int] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BackfillSummary:
        logger.info("Starting full backfill.")
        summary = self._controller.run_full_backfill(self._context("backfill_all", cancel_event), years_back=years_back)
        logger.info("Full backfill complete: %s processed, %s errors.", summary.processed, summary.errors)
        return summary

    def run_ticker_backfill(self, ticker: str, years_back: Optional[int] = None) -> CompanyRunResult:
        logger.info("Starting backfill for %s.", ticker)
        return self._controller.run_ticker_backfill(ticker, self._context("backfill_ticker"), years_back=years_back)

    def extract_single_filing(self, filing_id: int, force: bool = False) -> ExtractionOutcome:
        filing = self._repository.get_filing(filing_id)
        if filing is None:
            raise FilingNotFoundError(f"No filing with id {filing_id}")
        return self._extractor.extract(filing, self._context("extract_filing"), force=force)

    def run_incremental_check(self, ticker: str, form_type: str) -> IncrementalResult:
        return self._controller.run_incremental_check(ticker, form_type, self._context("incremental_check"))

    def recompute_schedule(self, today: Optional[datetime.date] = None) -> ScheduleSummary:
        return self._scheduler.recompute_schedule(self._context("recompute_schedule"), today=today)

    def run_due_checks(self, now: Optional[datetime.datetime] = None) -> DueCheckSummary:
        return self._scheduler.run_due_checks(self._controller, self._context("run_due_checks"), now=now)

    def requeue_filing(self, filing_id: int) -> RequeueResult:
        """Move a `processing` / `failed` filing back to `pending`."""
        filing = self._repository.get_filing(filing_id)
        if filing is None:
            raise FilingNotFoundError(f"No filing with id {filing_id}")
        previous = filing.status
        filing.requeue()
        self._repository.save_filing(filing, "Re-queueing filing")
        self._context("requeue_filing").warning(
            "Filing re-queued",
            filing_id=filing.id,
            accession_number=filing.accession_number,
            previous_status=previous,
        )
        return RequeueResult(
            filing_id=filing.id,
            accession_number=filing.accession_number,
            previous_status=previous,
            status=filing.status,
        )

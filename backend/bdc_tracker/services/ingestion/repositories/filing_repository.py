"""
Persistence layer for the filing extraction workflow.

Every read and write the pipeline performs goes through `FilingRepository`,
so the orchestrator and controller never touch the session directly.
Store failures surface as `PersistenceError`.
"""

from __future__ import annotations

import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from bdc_tracker.core.logging import get_logger
from bdc_tracker.models import (
    Company,
    ComputedInvestment,
    Filing,
    FilingStatus,
    ProcessingLog,
    RawInvestment,
    ScheduledCheck,
)
from bdc_tracker.models.base import utcnow
from bdc_tracker.services.ingestion.errors import PersistenceError


logger = get_logger(__name__)

InvestmentPair = Tuple[RawInvestment, ComputedInvestment]


class FilingRepository:
    def __init__(self, db: Session) -> None:
        self._db = db

    # ------------------------------------------------------------------ #
    # Transaction helpers
    # ------------------------------------------------------------------ #
    def commit(self, context: str) -> None:
        try:
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise PersistenceError(f"{context}: {exc}") from exc

    def rollback(self) -> None:
        self._db.rollback()

    # ------------------------------------------------------------------ #
    # Companies
    # ------------------------------------------------------------------ #
    def get_company_by_ticker(self, ticker: str) -> Optional[Company]:
        return (
            self._db.query(Company)
            .filter(func.upper(Company.ticker) == ticker.strip().upper())
            .first()
        )

    def list_active_companies(self) -> List[Company]:
        try:
            return (
                self._db.query(Company)
                .filter(Company.is_active.is_(True))
                .order_by(Company.ticker)
                .all()
            )
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise PersistenceError(f"Unable to read the company list: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Filings
    # ------------------------------------------------------------------ #
    def get_filing(self, filing_id: int) -> Optional[Filing]:
        return self._db.get(Filing, filing_id)

    def get_filing_by_accession(self, accession_number: str) -> Optional[Filing]:
        return (
            self._db.query(Filing)
            .filter(Filing.accession_number == accession_number)
            .first()
        )

    def filing_exists(self, accession_number: str) -> bool:
        return self.get_filing_by_accession(accession_number) is not None

    def latest_filing_date(self, company_id: int, form_type: str) -> Optional[datetime.date]:
        return (
            self._db.query(func.max(Filing.filing_date))
            .filter(Filing.company_id == company_id, Filing.filing_type == form_type)
            .scalar()
        )

    def pending_filings(self, company_id: int) -> List[Filing]:
        return (
            self._db.query(Filing)
            .filter(Filing.company_id == company_id, Filing.status == FilingStatus.PENDING.value)
            .order_by(Filing.filing_date, Filing.accession_number)
            .all()
        )

    def upsert_filing(self, company: Company, meta) -> Tuple[Filing, bool]:
        """
        Insert a discovered filing, or refresh the metadata of the stored one.

        Keyed by accession number. The processing status of an existing
        filing is never touched here.

        Returns:
            (filing, created)
        """
        existing = self.get_filing_by_accession(meta.accession_number)
        if existing is not None:
            existing.filing_date = meta.filing_date
            existing.filing_type = meta.form_type
            existing.period_end_date = meta.period_end_date
            existing.document_url = meta.document_url
            self.commit(f"Refreshing filing {meta.accession_number}")
            return existing, False

        filing = Filing(
            company_id=company.id,
            cik=company.cik,
            ticker=company.ticker,
            accession_number=meta.accession_number,
            filing_date=meta.filing_date,
            filing_type=meta.form_type,
            period_end_date=meta.period_end_date,
            document_url=meta.document_url,
            status=FilingStatus.PENDING.value,
        )
        self._db.add(filing)
        try:
            self._db.commit()
        except IntegrityError:
            # Stored concurrently by another run; fall back to the stored row
            self._db.rollback()
            stored = self.get_filing_by_accession(meta.accession_number)
            if stored is None:
                raise PersistenceError(f"Unable to store filing {meta.accession_number}")
            return stored, False
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise PersistenceError(f"Storing filing {meta.accession_number}: {exc}") from exc
        return filing, True

    def save_filing(self, filing: Filing, context: str = "Saving filing status") -> None:
        self._db.add(filing)
        self.commit(f"{context} ({filing.accession_number})")

    def count_investments(self, filing_id: int) -> int:
        return self._db.query(RawInvestment).filter(RawInvestment.filing_id == filing_id).count()

    def store_extraction(self, filing: Filing, pairs: Sequence[InvestmentPair], replace: bool = False) -> int:
        """
        Persist a filing's raw + computed rows and mark it completed, all in
        one transaction. Either every pair is written and the filing is
        `completed`, or nothing is.
        """
        try:
            if replace:
                # The cascade removes each computed row.
                for stale in list(filing.raw_investments):
                    self._db.delete(stale)
                self._db.flush()
                self._db.expire(filing, ["raw_investments"])

            for raw, computed in pairs:
                raw.filing = filing
                computed.filing_id = filing.id
                raw.computed = computed
                self._db.add(raw)

            filing.mark_completed()
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise PersistenceError(f"Writing investments for filing {filing.accession_number}: {exc}") from exc
        return len(pairs)

    # ------------------------------------------------------------------ #
    # Scheduled checks
    # ------------------------------------------------------------------ #
    def upsert_scheduled_check(
        self,
        company: Company,
        job_type: str,
        scheduled_date: datetime.date,
        due_date: datetime.date,
    ) -> Tuple[ScheduledCheck, bool]:
        check = (
            self._db.query(ScheduledCheck)
            .filter(
                ScheduledCheck.company_id == company.id,
                ScheduledCheck.job_type == job_type,
                ScheduledCheck.scheduled_date == scheduled_date,
            )
            .first()
        )
        next_run_at = datetime.datetime.combine(due_date, datetime.time.min)
        created = check is None
        if created:
            check = ScheduledCheck(
                company_id=company.id,
                ticker=company.ticker,
                job_type=job_type,
                scheduled_date=scheduled_date,
                status="pending",
            )
            self._db.add(check)

        check.due_date = due_date
        if check.status == "pending":
            check.next_run_at = next_run_at
        self.commit(f"Scheduling {company.ticker} {job_type} for {scheduled_date}")
        return check, created

    def due_checks(self, now: datetime.datetime) -> List[ScheduledCheck]:
        return (
            self._db.query(ScheduledCheck)
            .filter(ScheduledCheck.status == "pending", ScheduledCheck.next_run_at <= now)
            .order_by(ScheduledCheck.next_run_at, ScheduledCheck.id)
            .all()
        )

    def save_check(self, check: ScheduledCheck) -> None:
        self._db.add(check)
        self.commit(f"Updating scheduled check {check.id}")

    # ------------------------------------------------------------------ #
    # Operational log
    # ------------------------------------------------------------------ #
    def add_log(
        self,
        level: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        filing_id: Optional[int] = None,
    ) -> None:
        """
        Append a `processing_logs` row in its own commit.

        The log is a side channel: a failed write is reported to the worker
        log and otherwise ignored.
        """
        entry = ProcessingLog(
            filing_id=filing_id,
            log_level=level,
            message=message,
            details=details,
            created_at=utcnow(),
        )
        self._db.add(entry)
        try:
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.warning("Could not write processing log '%s': %s", message, exc)

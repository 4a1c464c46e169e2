"""
filing_scheduler.py — Expected filing due dates per tracked company.

Purpose:
- From a company's fiscal year-end, compute the upcoming 10-K and 10-Q
  obligations (period end + regulatory due date) for the fiscal year ending
  on or after today.
- Upsert them as `ScheduledCheck` rows keyed by (company, form, period end).
- Run the checks that have come due as incremental checks.

Deadline offsets (large accelerated filers):
    10-K  period = fiscal year-end              due +90 days
    10-Q  periods = FYE -9 / -6 / -3 months     due +45 days
"""

from __future__ import annotations

import calendar
import datetime
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from dateutil.relativedelta import relativedelta

from bdc_tracker.core.logging import get_logger
from bdc_tracker.models import FormType
from bdc_tracker.models.base import utcnow
from bdc_tracker.services.ingestion.repositories.filing_repository import FilingRepository
from bdc_tracker.services.ingestion.run_context import RunContext

logger = get_logger(__name__)

ANNUAL_DUE_DAYS = 90
QUARTERLY_DUE_DAYS = 45
QUARTER_OFFSETS_MONTHS = (9, 6, 3)

# How far next_run_at moves after a completed check
RERUN_INTERVALS = {
    FormType.ANNUAL.value: relativedelta(years=1),
    FormType.QUARTERLY.value: relativedelta(months=3),
}


@dataclass(frozen=True)
class FilingObligation:
    form_type: str
    period_end: datetime.date
    due_date: datetime.date


@dataclass
class ScheduleSummary:
    companies: int = 0
    skipped: List[str] = field(default_factory=list)
    created: int = 0
    updated: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DueCheckSummary:
    ran: int = 0
    completed: int = 0
    failed: int = 0
    checks: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------- #
# Date arithmetic
# ---------------------------------------------------------------------- #
def _fiscal_year_end(year: int, month: int, day: int) -> datetime.date:
    last_day = calendar.monthrange(year, month)[1]
    return datetime.date(year, month, min(day, last_day))


def _is_month_end(value: datetime.date) -> bool:
    return value.day == calendar.monthrange(value.year, value.month)[1]


def next_fiscal_year_end(fye_month: int, fye_day: int, today: datetime.date) -> datetime.date:
    fye = _fiscal_year_end(today.year, fye_month, fye_day)
    if today > fye:
        fye = _fiscal_year_end(today.year + 1, fye_month, fye_day)
    return fye


def compute_filing_obligations(fye_month: int, fye_day: int, today: datetime.date) -> List[FilingObligation]:
    """
    The three 10-Qs and the 10-K of the fiscal year ending on or after `today`,
    ordered by period end. While the previous fiscal year's 10-K is not yet
    due, it leads the list.
    """
    if not 1 <= fye_month <= 12 or not 1 <= fye_day <= 31:
        raise ValueError(f"Invalid fiscal year-end {fye_month}/{fye_day}")

    fye = next_fiscal_year_end(fye_month, fye_day, today)
    snap_to_month_end = _is_month_end(fye)

    obligations: List[FilingObligation] = []
    previous_fye = _fiscal_year_end(fye.year - 1, fye_month, fye_day)
    previous_due = previous_fye + datetime.timedelta(days=ANNUAL_DUE_DAYS)
    if today <= previous_due:
        obligations.append(
            FilingObligation(form_type=FormType.ANNUAL.value, period_end=previous_fye, due_date=previous_due)
        )

    for months in QUARTER_OFFSETS_MONTHS:
        period_end = fye - relativedelta(months=months)
        if snap_to_month_end:
            period_end = period_end + relativedelta(day=31)
        obligations.append(
            FilingObligation(
                form_type=FormType.QUARTERLY.value,
                period_end=period_end,
                due_date=period_end + datetime.timedelta(days=QUARTERLY_DUE_DAYS),
            )
        )
    obligations.append(
        FilingObligation(
            form_type=FormType.ANNUAL.value,
            period_end=fye,
            due_date=fye + datetime.timedelta(days=ANNUAL_DUE_DAYS),
        )
    )
    return obligations


# ---------------------------------------------------------------------- #
# Scheduler
# ---------------------------------------------------------------------- #
class FilingScheduler:
    def __init__(self, repository: FilingRepository) -> None:
        self._repository = repository

    def recompute_schedule(self, context: RunContext, today: Optional[datetime.date] = None) -> ScheduleSummary:
        today = today or datetime.date.today()
        summary = ScheduleSummary()

        for company in self._repository.list_active_companies():
            if not company.has_fiscal_year_end:
                summary.skipped.append(company.ticker)
                context.warning(
                    f"Skipping {company.ticker}: no fiscal year-end on record",
                    ticker=company.ticker,
                )
                continue

            for obligation in compute_filing_obligations(
                company.fiscal_year_end_month, company.fiscal_year_end_day, today
            ):
                _, created = self._repository.upsert_scheduled_check(
                    company, obligation.form_type, obligation.period_end, obligation.due_date
                )
                if created:
                    summary.created += 1
                else:
                    summary.updated += 1
            summary.companies += 1

        context.info(
            "Filing schedule recomputed",
            companies=summary.companies,
            skipped=summary.skipped,
            created=summary.created,
            updated=summary.updated,
        )
        return summary

    # ------------------------------------------------------------------ #
    def run_due_checks(self, controller, context: RunContext, now: Optional[datetime.datetime] = None) -> DueCheckSummary:
        """
        Run an incremental check for every pending scheduled check whose
        `next_run_at` has passed.

        pending → running → completed (next_run_at advanced one period)
                          → failed    (error recorded)
        """
        now = now or utcnow()
        summary = DueCheckSummary()

        for check in self._repository.due_checks(now):
            summary.ran += 1
            check.status = "running"
            check.last_run_at = now
            self._repository.save_check(check)

            try:
                result = controller.run_incremental_check(check.ticker, check.job_type, context)
            except Exception as exc:  # pylint: disable=broad-except
                self._repository.rollback()
                check.status = "failed"
                check.error_message = str(exc) or exc.__class__.__name__
                self._repository.save_check(check)
                summary.failed += 1
                summary.checks.append({"id": check.id, "ticker": check.ticker, "status": "failed", "error": check.error_message})
                context.error(
                    f"Scheduled check failed for {check.ticker} {check.job_type}",
                    ticker=check.ticker,
                    job_type=check.job_type,
                    check_id=check.id,
                    error=check.error_message,
                )
                continue

            check.status = "completed"
            check.error_message = None
            check.next_run_at = (check.next_run_at or now) + RERUN_INTERVALS[check.job_type]
            self._repository.save_check(check)
            summary.completed += 1
            summary.checks.append(
                {
                    "id": check.id,
                    "ticker": check.ticker,
                    "status": "completed",
                    "new_filings": result.new_filings,
                }
            )

        context.info("Due scheduled checks processed", ran=summary.ran, completed=summary.completed, failed=summary.failed)
        return summary

"""
filing.py — ORM Model for SEC Filings and their processing status

Purpose:
- Represent one 10-K / 10-Q filing discovered on EDGAR for a tracked BDC.
- Track extraction progress through the filing state machine:

      pending ──> processing ──> completed
                      │
                      └────────> failed ──> processing (retry)

  There is no automatic processing -> pending transition. A filing left in
  `processing` by a crash is surfaced as-is and must be re-queued explicitly
  (see `requeue`).

- `accession_number` is globally unique on EDGAR and is the idempotency key:
  re-discovering a filing updates its metadata, never duplicates it.
"""

import enum

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from bdc_tracker.models.base import Base, utcnow
from bdc_tracker.services.ingestion.errors import InvalidStatusTransitionError


class FilingStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class FormType(str, enum.Enum):
    ANNUAL = "10-K"
    QUARTERLY = "10-Q"


TRACKED_FORM_TYPES = (FormType.ANNUAL.value, FormType.QUARTERLY.value)

# Allowed extraction transitions (requeue is handled separately)
_TRANSITIONS = {
    FilingStatus.PENDING: {FilingStatus.PROCESSING},
    FilingStatus.PROCESSING: {FilingStatus.COMPLETED, FilingStatus.FAILED},
    FilingStatus.FAILED: {FilingStatus.PROCESSING},
    FilingStatus.COMPLETED: set(),
}


class Filing(Base):
    __tablename__ = "filings"

    # Primary Key
    id = Column(Integer, primary_key=True, index=True)

    # Foreign Key → bdc_universe.id
    company_id = Column(Integer, ForeignKey("bdc_universe.id"), nullable=False)
    cik = Column(String, nullable=False)
    ticker = Column(String, nullable=False)

    # Filing Attributes
    accession_number = Column(String, unique=True, nullable=False)
    filing_date = Column(Date, nullable=False)            # Date filed with SEC
    filing_type = Column(String, nullable=False)          # "10-K" | "10-Q"
    period_end_date = Column(Date, nullable=True)         # Period of report
    document_url = Column(String, nullable=True)          # Primary HTML document

    # Processing Status
    status = Column(String, nullable=False, default=FilingStatus.PENDING.value)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    company = relationship("Company", backref="filings")

    __table_args__ = (
        CheckConstraint("filing_type IN ('10-K', '10-Q')", name="ck_filings_filing_type"),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_filings_status",
        ),
        Index("idx_filings_ticker_date", "ticker", "filing_date"),
        Index("idx_filings_company_type_date", "company_id", "filing_type", "filing_date"),
    )

    # ------------------------------------------------------------------ #
    # State machine helpers
    # ------------------------------------------------------------------ #
    @property
    def status_enum(self) -> FilingStatus:
        return FilingStatus(self.status)

    def _transition(self, target: FilingStatus) -> None:
        current = self.status_enum
        if target not in _TRANSITIONS[current]:
            raise InvalidStatusTransitionError(
                f"Filing {self.accession_number}: cannot move from '{current.value}' to '{target.value}'"
            )
        self.status = target.value

    def mark_processing(self, reextract: bool = False):
        """
        Set immediately before the document is retrieved. `reextract` also
        allows completed -> processing, for a forced re-extraction that
        replaces the filing's rows.
        """
        if reextract and self.status_enum is FilingStatus.COMPLETED:
            self.status = FilingStatus.PROCESSING.value
        else:
            self._transition(FilingStatus.PROCESSING)
        self.error_message = None

    def mark_completed(self):
        self._transition(FilingStatus.COMPLETED)
        self.error_message = None

    def mark_failed(self, message: str):
        self._transition(FilingStatus.FAILED)
        self.error_message = message or "Unknown error"

    def requeue(self):
        """
        External recovery action: return a stuck (`processing`) or `failed`
        filing to `pending` so the next run picks it up again.
        """
        if self.status_enum not in {FilingStatus.PROCESSING, FilingStatus.FAILED}:
            raise InvalidStatusTransitionError(
                f"Filing {self.accession_number}: only processing/failed filings can be re-queued "
                f"(status is '{self.status}')"
            )
        self.status = FilingStatus.PENDING.value
        self.error_message = None

    def __repr__(self):
        return f"<Filing {self.ticker} {self.filing_type} | {self.accession_number} | {self.status}>"

"""
company.py — ORM Model for tracked BDC issuers

Purpose:
- Represent a Business Development Company in the tracked universe.
- Provides the identifiers the pipeline needs:
    * ticker: stable human identifier, used by every pipeline operation
    * cik: SEC Central Index Key (required for EDGAR lookup)
    * fiscal year-end month/day: drives the filing due-date scheduler

Important Design Rule:
- Rows are created by administrative data entry. The pipeline reads them
  but never mutates them.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Index, Integer, String

from bdc_tracker.models.base import Base, utcnow


class Company(Base):
    __tablename__ = "bdc_universe"

    # Primary key
    id = Column(Integer, primary_key=True, index=True)

    # Identifiers
    ticker = Column(String, unique=True, index=True, nullable=False)
    cik = Column(String, nullable=True)  # SEC CIK for EDGAR filings

    # Display Metadata
    company_name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    # Fiscal year-end, e.g. 12/31 for calendar-year filers, 9/30 for GBDC
    fiscal_year_end_month = Column(Integer, nullable=True)
    fiscal_year_end_day = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "fiscal_year_end_month IS NULL OR (fiscal_year_end_month >= 1 AND fiscal_year_end_month <= 12)",
            name="ck_bdc_universe_fye_month",
        ),
        CheckConstraint(
            "fiscal_year_end_day IS NULL OR (fiscal_year_end_day >= 1 AND fiscal_year_end_day <= 31)",
            name="ck_bdc_universe_fye_day",
        ),
        Index("idx_bdc_universe_fiscal_year_end", "fiscal_year_end_month", "fiscal_year_end_day"),
    )

    @property
    def has_fiscal_year_end(self) -> bool:
        return bool(self.fiscal_year_end_month and self.fiscal_year_end_day)

    def __repr__(self):
        return f"<Company {self.ticker} | cik={self.cik} | active={self.is_active}>"

"""
investment.py — ORM Models for extracted Schedule of Investments rows

- RawInvestment: one row per extracted table row, exactly as parsed, plus an
  opaque copy of the original cells for audit (`raw_row_data`). Immutable.
- ComputedInvestment: derived analytics for its raw row (mark, non-accrual,
  quarter bucket). One-to-one with RawInvestment and always written in the
  same transaction.
"""

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from bdc_tracker.models.base import Base, utcnow


class RawInvestment(Base):
    __tablename__ = "investments_raw"

    id = Column(Integer, primary_key=True, index=True)
    filing_id = Column(Integer, ForeignKey("filings.id", ondelete="CASCADE"), nullable=False)

    company_name = Column(String, nullable=True)
    business_description = Column(Text, nullable=True)
    investment_tranche = Column(String, nullable=True)
    coupon = Column(String, nullable=True)
    reference_rate = Column(String, nullable=True)
    spread = Column(String, nullable=True)
    acquisition_date = Column(Date, nullable=True)

    # Stored as reported (no unit scaling on the primary path)
    principal_amount = Column(Float, nullable=True)
    amortized_cost = Column(Float, nullable=True)
    fair_value = Column(Float, nullable=True)

    raw_row_data = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    filing = relationship("Filing", backref="raw_investments")
    computed = relationship(
        "ComputedInvestment",
        back_populates="raw_investment",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_investments_raw_filing", "filing_id"),
    )

    def __repr__(self):
        return f"<RawInvestment {self.company_name} | fv={self.fair_value} | filing={self.filing_id}>"


class ComputedInvestment(Base):
    __tablename__ = "investments_computed"

    id = Column(Integer, primary_key=True, index=True)
    raw_investment_id = Column(
        Integer,
        ForeignKey("investments_raw.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    filing_id = Column(Integer, ForeignKey("filings.id", ondelete="CASCADE"), nullable=False)

    # fair_value / principal_amount; NULL when principal is absent or zero
    mark = Column(Float, nullable=True)
    is_non_accrual = Column(Boolean, nullable=False, default=False)
    quarter_year = Column(String, nullable=False)  # Format: Q1-2024

    created_at = Column(DateTime, default=utcnow, nullable=False)

    raw_investment = relationship("RawInvestment", back_populates="computed")

    __table_args__ = (
        Index("idx_investments_computed_filing", "filing_id"),
        Index("idx_investments_computed_quarter", "quarter_year"),
    )

    def __repr__(self):
        return f"<ComputedInvestment raw={self.raw_investment_id} mark={self.mark} {self.quarter_year}>"

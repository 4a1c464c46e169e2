"""
processing_log.py — ORM Model for operational pipeline log records

Purpose:
- Record structured outcomes of backfills, incremental checks and filing
  extractions so the dashboard can show what happened without shell access
  to the worker logs.
- Stores structured details in JSON (ex: {"ticker": "ARCC", "processed": 3}).

This is an observability side channel. Nothing in the pipeline reads it back
to make decisions.
"""

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text

from bdc_tracker.models.base import Base, utcnow

LOG_LEVELS = ("info", "warning", "error")


class ProcessingLog(Base):
    __tablename__ = "processing_logs"

    id = Column(Integer, primary_key=True, index=True)

    # Optional link to the filing the entry is about
    filing_id = Column(Integer, ForeignKey("filings.id", ondelete="CASCADE"), nullable=True)

    log_level = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("log_level IN ('info', 'warning', 'error')", name="ck_processing_logs_level"),
        Index("idx_processing_logs_created", "created_at"),
    )

    def __repr__(self):
        return f"<ProcessingLog {self.log_level} | {self.message}>"

"""
scheduled_check.py — ORM Model for upcoming filing checks

Purpose:
- One row per (company, form type, fiscal period end) with the regulatory due
  date of that filing. The due-date scheduler recomputes these rows wholesale;
  the unique key makes recomputation an upsert, never a duplicate.
- `run_due_checks` picks up pending rows whose `next_run_at` has passed and
  runs an incremental check for them.

Status lifecycle: "pending" → "running" → "completed" | "failed"
"""

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from bdc_tracker.models.base import Base, utcnow


class ScheduledCheck(Base):
    __tablename__ = "scheduled_jobs"

    id = Column(Integer, primary_key=True, index=True)

    company_id = Column(Integer, ForeignKey("bdc_universe.id"), nullable=False)
    ticker = Column(String, nullable=False)

    # "10-K" | "10-Q"
    job_type = Column(String, nullable=False)

    # Fiscal period end the filing covers, and its regulatory due date
    scheduled_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)

    status = Column(String, nullable=False, default="pending")
    last_run_at = Column(DateTime, nullable=True)
    next_run_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    company = relationship("Company", backref="scheduled_checks")

    __table_args__ = (
        UniqueConstraint("company_id", "job_type", "scheduled_date", name="uq_scheduled_jobs_period"),
        CheckConstraint("job_type IN ('10-K', '10-Q')", name="ck_scheduled_jobs_type"),
        CheckConstraint(
            "status IN ('pending', 'running', 'completed', 'failed')",
            name="ck_scheduled_jobs_status",
        ),
        Index("idx_scheduled_jobs_next_run", "next_run_at"),
        Index("idx_scheduled_jobs_status", "status"),
    )

    def __repr__(self):
        return f"<ScheduledCheck {self.ticker} {self.job_type} | {self.scheduled_date} due {self.due_date} | {self.status}>"

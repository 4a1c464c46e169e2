"""
ORM models for the filing extraction pipeline.

Importing this package registers every table on the shared `Base.metadata`.
"""

from bdc_tracker.models.base import Base  # noqa: F401
from bdc_tracker.models.company import Company  # noqa: F401
from bdc_tracker.models.filing import TRACKED_FORM_TYPES, Filing, FilingStatus, FormType  # noqa: F401
from bdc_tracker.models.investment import ComputedInvestment, RawInvestment  # noqa: F401
from bdc_tracker.models.processing_log import ProcessingLog  # noqa: F401
from bdc_tracker.models.scheduled_check import ScheduledCheck  # noqa: F401

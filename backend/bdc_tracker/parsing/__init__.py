"""
Schedule of Investments parsing.

Pure functions over BeautifulSoup handles: normalizer → table_locator →
column_mapper → row_extractor, tied together by `parse_schedule`.
"""

from bdc_tracker.parsing.policy import ParsePolicy  # noqa: F401
from bdc_tracker.parsing.row_extractor import ExtractedInvestment  # noqa: F401
from bdc_tracker.parsing.schedule_parser import ParseResult, parse_schedule  # noqa: F401

"""
computations.py — Derived analytics for an extracted investment row.

    mark            fair_value / principal_amount (None when either is
                    missing or principal is zero; never 0 for "unknown")
    is_non_accrual  business description mentions "non-accrual"
    quarter_year    "Q<n>-<yyyy>" bucket of the *filing* date; annual
                    reports always land in Q4
"""

from __future__ import annotations

import datetime
import re
from typing import Optional

from bdc_tracker.models.filing import FormType

NON_ACCRUAL_RE = re.compile(r"non-accrual", re.IGNORECASE)


def compute_mark(fair_value: Optional[float], principal_amount: Optional[float]) -> Optional[float]:
    if fair_value is None or principal_amount is None or principal_amount == 0:
        return None
    return fair_value / principal_amount


def detect_non_accrual(business_description: Optional[str]) -> bool:
    return bool(business_description and NON_ACCRUAL_RE.search(business_description))


def quarter_year(filing_date: datetime.date, form_type: str) -> str:
    if form_type == FormType.ANNUAL.value:
        return f"Q4-{filing_date.year}"
    quarter = (filing_date.month - 1) // 3 + 1
    return f"Q{quarter}-{filing_date.year}"

"""
row_extractor.py — Turn a mapped schedule table's data rows into investments.

Two paths, kept apart on purpose:

- `extract_rows`: the primary path, driven by the column mapping and the
  declarative field table.
- `extract_fallback_rows`: a positional guess used only when no header
  mapped at all. Much less precise; rows it produces are tagged
  `extraction_method="fallback"` in their audit payload.
"""

from __future__ import annotations

import datetime
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from bs4 import Tag

from bdc_tracker.core.logging import get_logger
from bdc_tracker.parsing.column_mapper import ColumnMapping
from bdc_tracker.parsing.field_specs import AMOUNT_FIELDS, FIELD_SPECS_BY_NAME
from bdc_tracker.parsing.html_table import expand_row, header_row, table_rows
from bdc_tracker.parsing.normalizer import clean_text, parse_amount, split_reference_rate
from bdc_tracker.parsing.policy import ParsePolicy

logger = get_logger(__name__)

SUMMARY_KEYWORD_RE = re.compile(r"\b(?:sub-?)?totals?\b", re.IGNORECASE)
NUMERIC_ONLY_RE = re.compile(r"^[\s\-—–$€£,\d().%]+$")

MIN_ISSUER_LENGTH = 2

# Fallback path: values below this are assumed to be reported in thousands
FALLBACK_THOUSANDS_THRESHOLD = 100_000
FALLBACK_MIN_ISSUER_LENGTH = 3

PRIMARY = "column_mapping"
FALLBACK = "fallback"


@dataclass
class ExtractedInvestment:
    company_name: Optional[str] = None
    business_description: Optional[str] = None
    investment_tranche: Optional[str] = None
    coupon: Optional[str] = None
    reference_rate: Optional[str] = None
    spread: Optional[str] = None
    acquisition_date: Optional[datetime.date] = None
    principal_amount: Optional[float] = None
    amortized_cost: Optional[float] = None
    fair_value: Optional[float] = None
    raw_row_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def extraction_method(self) -> str:
        return self.raw_row_data.get("extraction_method", PRIMARY)

    def record_fields(self) -> Dict[str, Any]:
        """Column values for `RawInvestment`."""
        return {
            "company_name": self.company_name,
            "business_description": self.business_description,
            "investment_tranche": self.investment_tranche,
            "coupon": self.coupon,
            "reference_rate": self.reference_rate,
            "spread": self.spread,
            "acquisition_date": self.acquisition_date,
            "principal_amount": self.principal_amount,
            "amortized_cost": self.amortized_cost,
            "fair_value": self.fair_value,
            "raw_row_data": self.raw_row_data,
        }


def is_summary_row(text: str) -> bool:
    """Totals, subtotals, and rows made only of numbers / punctuation."""
    stripped = text.strip()
    if not stripped:
        return False
    return bool(SUMMARY_KEYWORD_RE.search(stripped) or NUMERIC_ONLY_RE.match(stripped))


def is_valid_investment(investment: ExtractedInvestment) -> bool:
    name = (investment.company_name or "").strip()
    if len(name) < MIN_ISSUER_LENGTH:
        return False
    return any(getattr(investment, attr) is not None for attr in AMOUNT_FIELDS)


def _slot_text(cells: Sequence[str], slots: range) -> str:
    return " ".join(cells[i] for i in slots if i < len(cells) and cells[i])


def _data_rows(table: Tag):
    """Rows after the header row, skipping anything inside <thead>."""
    header = header_row(table)
    seen_header = header is None
    for row in table_rows(table):
        if not seen_header:
            if row is header:
                seen_header = True
            continue
        if row.find_parent("thead") is not None:
            continue
        yield row


def extract_mapped_row(cells: Sequence[str], mapping: ColumnMapping) -> ExtractedInvestment:
    investment = ExtractedInvestment()
    for name, span in mapping.items():
        spec = FIELD_SPECS_BY_NAME[name]
        raw = _slot_text(cells, span.slots())
        value = spec.normalize(raw)
        if value == "":
            value = None
        setattr(investment, name, value)

    # Floating-rate coupons often carry the benchmark and spread inline
    if investment.coupon and (investment.reference_rate is None or investment.spread is None):
        reference_rate, spread = split_reference_rate(investment.coupon)
        if investment.reference_rate is None:
            investment.reference_rate = reference_rate
        if investment.spread is None:
            investment.spread = spread
    return investment


def _iter_candidate_rows(table: Tag, policy: ParsePolicy):
    examined = 0
    for row in _data_rows(table):
        if examined >= policy.max_rows:
            logger.debug("Row limit %d reached; remaining rows ignored.", policy.max_rows)
            break
        cells = expand_row(row)
        text = " ".join(c for c in cells if c)
        if not text.strip():
            continue
        if is_summary_row(text):
            continue
        examined += 1
        yield cells


def extract_rows(
    table: Tag,
    mapping: ColumnMapping,
    policy: ParsePolicy,
    table_index: int = 0,
) -> List[ExtractedInvestment]:
    investments: List[ExtractedInvestment] = []
    mapped = {name: [span.start, span.width] for name, span in mapping.items()}
    for cells in _iter_candidate_rows(table, policy):
        investment = extract_mapped_row(cells, mapping)
        if not is_valid_investment(investment):
            continue
        investment.raw_row_data = {
            "cells": list(cells),
            "column_mapping": mapped,
            "table_index": table_index,
            "extraction_method": PRIMARY,
        }
        investments.append(investment)
    return investments


# ---------------------------------------------------------------------- #
# Fallback path
# ---------------------------------------------------------------------- #
def extract_fallback_row(cells: Sequence[str]) -> Optional[ExtractedInvestment]:
    """
    Issuer = first cell that starts with a letter; fair value = the last (or
    second-to-last) non-empty cell that parses as an amount, scaled x1000 when
    implausibly small for a holding.
    """
    issuer = None
    for text in cells:
        candidate = clean_text(text)
        if candidate and candidate[0].isalpha():
            issuer = candidate
            break
    if not issuer or len(issuer) < FALLBACK_MIN_ISSUER_LENGTH:
        return None

    filled = [c for c in cells if c and c.strip()]
    value = None
    for text in reversed(filled[-2:]):
        value = parse_amount(text)
        if value:
            break
    if not value:
        return None

    if abs(value) < FALLBACK_THOUSANDS_THRESHOLD:
        value = value * 1000

    return ExtractedInvestment(company_name=issuer, fair_value=value)


def extract_fallback_rows(table: Tag, policy: ParsePolicy, table_index: int = 0) -> List[ExtractedInvestment]:
    investments: List[ExtractedInvestment] = []
    for cells in _iter_candidate_rows(table, policy):
        investment = extract_fallback_row(cells)
        if investment is None or not is_valid_investment(investment):
            continue
        investment.raw_row_data = {
            "cells": list(cells),
            "table_index": table_index,
            "extraction_method": FALLBACK,
        }
        investments.append(investment)
    return investments

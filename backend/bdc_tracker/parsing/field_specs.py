"""
field_specs.py — Declarative header → field → normalizer table.

Each canonical investment field lists its header patterns in priority order
and the functions its cell text runs through. The column mapper and the row
extractor are driven entirely by this table; supporting a new header wording
means adding a pattern here.

Field order matters: a header cell is claimed by at most one field, and fields
claim cells in the order listed (so "Par Value" becomes the principal column
before fair value's generic "value" pattern sees it).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Pattern, Tuple

from bdc_tracker.parsing.normalizer import clean_text, parse_amount, parse_date, strip_footnotes


@dataclass(frozen=True)
class FieldSpec:
    name: str
    header_patterns: Tuple[Pattern, ...]
    normalizers: Tuple[Callable[[Any], Any], ...]

    def normalize(self, raw: str) -> Any:
        value: Any = raw
        for fn in self.normalizers:
            value = fn(value)
        return value


def _patterns(*expressions: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(expr, re.IGNORECASE) for expr in expressions)


TEXT = (clean_text,)
AMOUNT = (parse_amount,)

FIELD_SPECS: Tuple[FieldSpec, ...] = (
    FieldSpec(
        "company_name",
        _patterns(
            r"portfolio\s+compan|company|issuer|borrower",
            r"security|name",
            r"\binvestments?\b(?!\s*(type|tranche|class|date|rate))",
        ),
        (strip_footnotes, clean_text),
    ),
    FieldSpec(
        "business_description",
        _patterns(r"business\s*description", r"description|business|industry|sector"),
        TEXT,
    ),
    FieldSpec(
        "investment_tranche",
        _patterns(
            r"tranche",
            r"(investment|security|instrument)\s*type|type\s+of\s+investment",
            r"\btype\b|\bclass\b",
        ),
        TEXT,
    ),
    FieldSpec("coupon", _patterns(r"coupon", r"interest\s*rate"), TEXT),
    FieldSpec("spread", _patterns(r"spread|margin"), TEXT),
    FieldSpec(
        "reference_rate",
        _patterns(r"reference\s*rate|reference|\bindex\b|base\s*rate|benchmark"),
        TEXT,
    ),
    FieldSpec(
        "principal_amount",
        _patterns(r"principal", r"\bpar\b|notional|face\s*amount", r"commitment"),
        AMOUNT,
    ),
    FieldSpec("amortized_cost", _patterns(r"amortized\s*cost", r"\bcost\b"), AMOUNT),
    FieldSpec("fair_value", _patterns(r"fair\s*value", r"market\s*value", r"\bvalue\b"), AMOUNT),
    FieldSpec(
        "acquisition_date",
        _patterns(r"acquisition|purchase|origination|investment\s*date", r"\bdate\b"),
        (parse_date,),
    ),
)

FIELD_SPECS_BY_NAME = {spec.name: spec for spec in FIELD_SPECS}

AMOUNT_FIELDS = ("principal_amount", "amortized_cost", "fair_value")

"""
schedule_parser.py — Parse a filing document's Schedule of Investments.

Purpose:
- Single entry point for the parsing layer: HTML text in, extracted
  investment rows plus a per-table report out.
- Locate → map → extract, one table at a time, under one `ParsePolicy`.

A document with no qualifying table is a valid outcome
(`ParseResult.no_schedule_found`), not an error.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from bdc_tracker.core.logging import get_logger
from bdc_tracker.parsing.column_mapper import map_columns
from bdc_tracker.parsing.policy import ParsePolicy
from bdc_tracker.parsing.row_extractor import ExtractedInvestment, extract_fallback_rows, extract_rows
from bdc_tracker.parsing.table_locator import locate_schedule_tables

# EDGAR documents are often XHTML / inline-XBRL; bs4 warns about parsing them as HTML
warnings.filterwarnings("ignore", category=UserWarning, module="bs4")

logger = get_logger(__name__)


@dataclass
class TableReport:
    index: int
    score: int
    has_marker: bool
    mapped_fields: List[str] = field(default_factory=list)
    method: str = "skipped"     # "column_mapping" | "fallback" | "skipped"
    rows_extracted: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "score": self.score,
            "has_marker": self.has_marker,
            "mapped_fields": list(self.mapped_fields),
            "method": self.method,
            "rows_extracted": self.rows_extracted,
        }


@dataclass
class ParseResult:
    investments: List[ExtractedInvestment] = field(default_factory=list)
    tables: List[TableReport] = field(default_factory=list)

    @property
    def no_schedule_found(self) -> bool:
        return not self.tables

    def summary(self) -> Dict[str, Any]:
        return {
            "investments": len(self.investments),
            "no_schedule_found": self.no_schedule_found,
            "tables": [t.to_dict() for t in self.tables],
        }


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "lxml")


def parse_schedule(html: str, policy: Optional[ParsePolicy] = None) -> ParseResult:
    """Extract every investment row from the document's schedule table(s)."""
    policy = policy or ParsePolicy.lenient()
    soup = parse_document(html)
    result = ParseResult()

    for candidate in locate_schedule_tables(soup, policy):
        report = TableReport(index=candidate.index, score=candidate.score, has_marker=candidate.has_marker)
        result.tables.append(report)

        mapping = map_columns(candidate.table)
        report.mapped_fields = sorted(mapping)

        if not mapping:
            if not policy.allow_fallback:
                logger.debug("Table %d: no columns mapped and fallback disabled.", candidate.index)
                continue
            rows = extract_fallback_rows(candidate.table, policy, table_index=candidate.index)
            report.method = "fallback"
        elif len(mapping) < policy.min_mapped_fields:
            logger.debug(
                "Table %d: only %d mapped field(s) (< %d); skipping.",
                candidate.index, len(mapping), policy.min_mapped_fields,
            )
            continue
        else:
            rows = extract_rows(candidate.table, mapping, policy, table_index=candidate.index)
            report.method = "column_mapping"

        report.rows_extracted = len(rows)
        result.investments.extend(rows)

    logger.info(
        "Parsed schedule: %d table(s), %d investment(s)%s",
        len(result.tables),
        len(result.investments),
        " (no schedule found)" if result.no_schedule_found else "",
    )
    return result

"""
table_locator.py — Score and select Schedule of Investments tables.

Filings carry dozens of tables (balance sheet, per-share data, footnotes) and
none are labelled structurally. A table is scored by how many semantic header
groups its header text touches; the locator keeps those above the policy
threshold and prefers the ones with a "schedule of investments" heading near
them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from bdc_tracker.core.logging import get_logger
from bdc_tracker.parsing.html_table import header_context
from bdc_tracker.parsing.normalizer import clean_text
from bdc_tracker.parsing.policy import ParsePolicy

logger = get_logger(__name__)


HEADER_SCORE_PATTERNS = (
    re.compile(r"company|security|investment|name|issuer|borrower"),
    re.compile(r"principal|notional|cost|commitment|\bpar\b"),
    re.compile(r"fair\s*value|market\s*value|value"),
    re.compile(r"tranche|type|description"),
    re.compile(r"coupon|rate|interest"),
    re.compile(r"maturity|date"),
    re.compile(r"industry|business|sector"),
)

SCHEDULE_MARKER_RE = re.compile(
    r"schedules?\s+of\s+investments|consolidated\s+schedule",
    re.IGNORECASE,
)

# Preceding text nodes inspected for a schedule heading
MARKER_LOOKBACK_NODES = 40


@dataclass
class TableCandidate:
    index: int          # position among all <table> elements in the document
    table: Tag
    score: int
    has_marker: bool


def score_table(table: Tag) -> int:
    """Number of header pattern groups present in the table's header context."""
    text = header_context(table)
    return sum(1 for pattern in HEADER_SCORE_PATTERNS if pattern.search(text))


def schedule_context(table: Tag, lookback: int = MARKER_LOOKBACK_NODES) -> str:
    """Caption plus the text immediately preceding the table."""
    parts: List[str] = []
    caption = table.find("caption")
    if caption is not None:
        parts.append(caption.get_text(" ", strip=True))

    preceding = []
    for node in table.find_all_previous(string=True, limit=lookback * 2):
        text = clean_text(str(node))
        if text:
            preceding.append(text)
        if len(preceding) >= lookback:
            break
    parts.extend(reversed(preceding))
    return " ".join(parts)


def has_schedule_marker(table: Tag) -> bool:
    return bool(SCHEDULE_MARKER_RE.search(schedule_context(table)))


def find_candidates(soup: BeautifulSoup, policy: ParsePolicy) -> List[TableCandidate]:
    """Every table that clears the policy's score (and marker) requirements."""
    candidates: List[TableCandidate] = []
    for index, table in enumerate(soup.find_all("table")):
        score = score_table(table)
        if score < policy.min_score:
            continue
        marker = has_schedule_marker(table)
        if policy.require_marker and not marker:
            logger.debug("Table %d scored %d but has no schedule marker; skipping.", index, score)
            continue
        candidates.append(TableCandidate(index=index, table=table, score=score, has_marker=marker))
    return candidates


def select_schedule_tables(candidates: List[TableCandidate], limit: Optional[int] = None) -> List[TableCandidate]:
    """
    Marker-bearing candidates win (all of them, in document order, since a
    schedule usually continues across several tables). Otherwise the single
    highest-scoring table, earliest on ties.
    """
    if not candidates:
        return []
    marked = [c for c in candidates if c.has_marker]
    if marked:
        chosen = marked
    else:
        best = max(candidates, key=lambda c: (c.score, -c.index))
        chosen = [best]
    return chosen[:limit] if limit else chosen


def locate_schedule_tables(soup: BeautifulSoup, policy: ParsePolicy) -> List[TableCandidate]:
    candidates = find_candidates(soup, policy)
    selected = select_schedule_tables(candidates, limit=policy.max_tables)
    logger.debug(
        "Located %d schedule table(s) out of %d candidate(s): %s",
        len(selected),
        len(candidates),
        [(c.index, c.score, c.has_marker) for c in selected],
    )
    return selected

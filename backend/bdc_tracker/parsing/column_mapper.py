"""
column_mapper.py — Map a schedule table's header cells to canonical fields.
"""

from __future__ import annotations

from typing import Dict, Sequence

from bs4 import Tag

from bdc_tracker.core.logging import get_logger
from bdc_tracker.parsing.field_specs import FIELD_SPECS, FieldSpec
from bdc_tracker.parsing.html_table import ColumnSpan, header_cells, header_row

logger = get_logger(__name__)

ColumnMapping = Dict[str, ColumnSpan]


def map_header_cells(cells: Sequence[tuple], specs: Sequence[FieldSpec] = FIELD_SPECS) -> ColumnMapping:
    """
    Assign header cells to fields.

    For each field, patterns are tried in priority order and the left-most
    unclaimed cell matching a pattern wins. Once assigned, a field is never
    reassigned, and a claimed cell is not offered to later fields.
    """
    mapping: ColumnMapping = {}
    claimed = set()
    for spec in specs:
        for pattern in spec.header_patterns:
            for position, (text, span) in enumerate(cells):
                if not text or position in claimed:
                    continue
                if pattern.search(text):
                    mapping[spec.name] = span
                    claimed.add(position)
                    break
            if spec.name in mapping:
                break
    return mapping


def map_columns(table: Tag) -> ColumnMapping:
    row = header_row(table)
    if row is None:
        return {}
    cells = header_cells(row)
    mapping = map_header_cells(cells)
    logger.debug("Headers %s -> mapping %s", [text for text, _ in cells], sorted(mapping))
    return mapping

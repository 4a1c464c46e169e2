"""
html_table.py — Small helpers over BeautifulSoup `<table>` handles.

Filing tables are presentational: headers spread over `colspan` cells, `$`
signs in their own cells, blank spacer rows. These helpers give every row a
logical column grid (colspan-expanded) so header positions and data positions
line up. `rowspan` is not expanded.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from bs4 import Tag

from bdc_tracker.parsing.normalizer import clean_text


@dataclass(frozen=True)
class ColumnSpan:
    """A header cell's position on the logical grid."""
    start: int
    width: int = 1

    def slots(self) -> range:
        return range(self.start, self.start + self.width)


def table_rows(table: Tag) -> List[Tag]:
    return table.find_all("tr")


def row_cells(row: Tag) -> List[Tag]:
    return row.find_all(["td", "th"], recursive=False)


def cell_text(cell: Tag) -> str:
    return cell.get_text(" ", strip=True)


def colspan(cell: Tag) -> int:
    try:
        return max(int(cell.get("colspan", 1)), 1)
    except (TypeError, ValueError):
        return 1


def expand_row(row: Tag) -> List[str]:
    """
    Row text on the logical grid. A cell spanning N columns puts its text in
    the first slot and empty strings in the remaining N-1.
    """
    slots: List[str] = []
    for cell in row_cells(row):
        slots.append(cell_text(cell))
        slots.extend([""] * (colspan(cell) - 1))
    return slots


def header_cells(row: Tag) -> List[tuple]:
    """[(lowercased header text, ColumnSpan), ...] for a header row."""
    cells = []
    position = 0
    for cell in row_cells(row):
        width = colspan(cell)
        cells.append((clean_text(cell_text(cell)).lower(), ColumnSpan(position, width)))
        position += width
    return cells


def row_text(row: Tag) -> str:
    return clean_text(" ".join(part for part in expand_row(row) if part))


def header_row(table: Tag) -> Optional[Tag]:
    """
    The table's header row: first `<thead>` row, else the first row with `<th>`
    cells, else the first row carrying any text.
    """
    thead = table.find("thead")
    if thead is not None:
        first = thead.find("tr")
        if first is not None:
            return first

    rows = table_rows(table)
    for row in rows:
        if row.find("th", recursive=False) is not None:
            return row
    for row in rows:
        if row_text(row):
            return row
    return rows[0] if rows else None


def header_context(table: Tag) -> str:
    """Lowercased text the table scorer looks at."""
    thead = table.find("thead")
    if thead is not None:
        return clean_text(thead.get_text(" ", strip=True)).lower()
    row = header_row(table)
    return row_text(row).lower() if row is not None else ""

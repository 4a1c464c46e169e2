"""
policy.py — Parser strictness knobs.

One parser, two presets:

- lenient (default): a table qualifies with header score >= 3, needs one
  mapped column, and may use the positional fallback when none map.
- strict: score >= 4 *and* a nearby "schedule of investments" marker, at
  least three mapped columns, no fallback.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from bdc_tracker.core.config import settings


@dataclass(frozen=True)
class ParsePolicy:
    min_score: int = 3
    require_marker: bool = False
    min_mapped_fields: int = 1
    max_tables: int = 5
    max_rows: int = 50
    allow_fallback: bool = True

    @classmethod
    def lenient(cls, **overrides) -> "ParsePolicy":
        return replace(cls(), **overrides)

    @classmethod
    def strict(cls, **overrides) -> "ParsePolicy":
        base = cls(min_score=4, require_marker=True, min_mapped_fields=3, allow_fallback=False)
        return replace(base, **overrides)

    @classmethod
    def from_settings(cls) -> "ParsePolicy":
        limits = {
            "max_tables": settings.PARSER_MAX_TABLES,
            "max_rows": settings.PARSER_MAX_ROWS_PER_TABLE,
        }
        if settings.PARSER_MODE == "strict":
            return cls.strict(**limits)
        return cls.lenient(allow_fallback=settings.PARSER_ALLOW_FALLBACK, **limits)

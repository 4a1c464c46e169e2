"""
normalizer.py — Cell text → typed value conversions.

Pure functions, no state. Absence is always `None`, never `0` or `""`-as-number,
so callers can tell "not reported" apart from "reported as zero".
"""

from __future__ import annotations

import datetime
import re
from typing import Optional, Tuple

from dateutil import parser as date_parser

_QUOTES_RE = re.compile(r"[\"'‘’“”]")
_WHITESPACE_RE = re.compile(r"\s+")

# Parenthesized digits, asterisks and daggers used as footnote markers
_FOOTNOTE_RE = re.compile(r"\(\d+\)|\*+|[†‡]+")

_CURRENCY_RE = re.compile(r"[$€£¥,\s]")
_NUMBER_RE = re.compile(r"^-?(\d+(\.\d*)?|\.\d+)$")

PLACEHOLDER_TOKENS = {"", "-", "—", "–", "--"}

_REFERENCE_RATE_RE = re.compile(
    r"\b(SOFR|LIBOR|EURIBOR|SONIA|Prime|Base)\b\s*\+?\s*(\d+(?:\.\d+)?\s*%?)",
    re.IGNORECASE,
)
_RATE_NAMES = {
    "sofr": "SOFR",
    "libor": "LIBOR",
    "euribor": "EURIBOR",
    "sonia": "SONIA",
    "prime": "Prime",
    "base": "Base",
}

# Generic parsing must not invent a day/month from today's date
_DATE_DEFAULT = datetime.datetime(1900, 1, 1)


def clean_text(value: Optional[str]) -> str:
    """Strip quote characters, collapse whitespace runs, trim."""
    if not value:
        return ""
    text = _QUOTES_RE.sub("", value)
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_footnotes(value: Optional[str]) -> str:
    """`"RetailCo Ltd(1)"` -> `"RetailCo Ltd"`."""
    if not value:
        return ""
    return clean_text(_FOOTNOTE_RE.sub("", value))


def parse_amount(value: Optional[str]) -> Optional[float]:
    """
    Parse an accounting-formatted amount.

    "$1,000,000" -> 1000000.0, "$(200,000)" -> -200000.0, "—" / "-" / "" -> None.
    """
    if value is None:
        return None
    text = value.strip()
    if text in PLACEHOLDER_TOKENS:
        return None

    cleaned = _CURRENCY_RE.sub("", text)
    if cleaned in PLACEHOLDER_TOKENS:
        return None

    negative = cleaned.startswith("(") and cleaned.endswith(")")
    if negative:
        cleaned = cleaned[1:-1]

    if not _NUMBER_RE.match(cleaned):
        return None

    number = float(cleaned)
    return -number if negative else number


def parse_date(value: Optional[str]) -> Optional[datetime.date]:
    """Best-effort date parsing. Never raises."""
    if not value or not value.strip():
        return None
    text = clean_text(value)
    if not any(ch.isdigit() for ch in text):
        return None
    try:
        return date_parser.parse(text, default=_DATE_DEFAULT).date()
    except (ValueError, OverflowError):
        return None


def split_reference_rate(coupon: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Pull the benchmark and spread out of floating-rate coupon text.

    "SOFR + 550" -> ("SOFR", "550"); "12.5%" -> (None, None)
    """
    if not coupon:
        return None, None
    match = _REFERENCE_RATE_RE.search(coupon)
    if not match:
        return None, None
    rate = _RATE_NAMES[match.group(1).lower()]
    return rate, match.group(2).replace(" ", "")

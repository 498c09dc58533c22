"""Syntactic checks for single upload cells.

``is_valid(field_type, raw_value)`` answers whether a cell is acceptable for
its declared type. Blank cells are always valid; whether a column must be
filled is decided by the relational and cross-reference validators.

The parse helpers at the bottom turn accepted cells into Python values for
the importer.
"""
from __future__ import annotations

import math
import re
from datetime import date
from typing import Any, Iterable, Optional

from reach_planning.utils.text import is_blank

STRING = "string"
NUMERIC = "numeric"
PERCENTAGE = "percentage"
DATE = "date"
FIELD_TYPES = (STRING, NUMERIC, PERCENTAGE, DATE)

# Columns holding spot lengths such as 30" or 20" 10"
COPY_LENGTH_FIELDS = frozenset({"TV Copy Length"})

_PURE_NUMBER = re.compile(r"^\d+(\.\d+)?$")
_STRING_CHARS = re.compile(r"^(?:[^\W_]|[\s\-+()/&.,'])+$")
_COPY_LENGTH = re.compile(r'^[0-9\s"\\]+$')

_DATE_FORMATS = (
    re.compile(r"^(?P<year>\d{4})-(?P<month>\d{1,2})-(?P<day>\d{1,2})$"),
    re.compile(r"^(?P<day>\d{1,2})/(?P<month>\d{1,2})/(?P<year>\d{4})$"),
    re.compile(r"^(?P<day>\d{1,2})-(?P<month>\d{1,2})-(?P<year>\d{4})$"),
)


def _to_float(value: Any) -> Optional[float]:
    try:
        number = float(str(value).strip().replace(",", ""))
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def _valid_string(text: str, copy_length: bool) -> bool:
    if copy_length:
        return bool(_COPY_LENGTH.match(text))
    if _PURE_NUMBER.match(text):
        return False
    if not any(ch.isalpha() for ch in text):
        return False
    return bool(_STRING_CHARS.match(text))


def _valid_percentage(text: str, allow_negative: bool) -> bool:
    if "%" in text:
        number = _to_float(text.replace("%", ""))
        bound = 100.0
    else:
        number = _to_float(text)
        bound = 1.0
    if number is None:
        return False
    low = -bound if allow_negative else 0.0
    return low <= number <= bound


def is_valid(
    field_type: str,
    raw_value: Any,
    *,
    allow_negative: bool = False,
    field_name: Optional[str] = None,
    copy_length_fields: Iterable[str] = COPY_LENGTH_FIELDS,
) -> bool:
    """Return True when ``raw_value`` is acceptable for ``field_type``.

    Args:
        field_type: one of string | numeric | percentage | date
        raw_value: the cell as uploaded
        allow_negative: percentage ranges become [-100, 100] / [-1, 1] (trend fields)
        field_name: column header, used for the copy-length exception
    """
    if is_blank(raw_value):
        return True
    text = str(raw_value).strip()
    if field_type == STRING:
        return _valid_string(text, field_name in set(copy_length_fields))
    if field_type == NUMERIC:
        return _to_float(text) is not None
    if field_type == PERCENTAGE:
        return _valid_percentage(text, allow_negative)
    if field_type == DATE:
        return parse_date(text) is not None
    raise ValueError(f"Unknown field type '{field_type}'. Expected one of {FIELD_TYPES}")


# ----------------------------- parse helpers ----------------------------- #

def parse_number(value: Any) -> Optional[float]:
    """Numeric cell -> float; blank, '-' and unparseable cells -> None."""
    if is_blank(value) or str(value).strip() == "-":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return _to_float(value)


def parse_percentage(value: Any) -> Optional[float]:
    """Percentage cell -> fraction in [0, 1].

    "45%", "45" and "0.45" all yield 0.45; anything above 100 % is capped at 1.0.
    """
    if is_blank(value):
        return None
    text = str(value).strip()
    number = _to_float(text.replace("%", ""))
    if number is None:
        return None
    if "%" in text or abs(number) > 1:
        number = number / 100.0
    return max(min(number, 1.0), -1.0)


def parse_date(value: Any) -> Optional[date]:
    """Parse YYYY-MM-DD, D/M/YYYY or D-M-YYYY (day first); None when invalid.

    The format is checked before the calendar parse so that strings such as
    "2025/31/12" or "yesterday" are rejected outright.
    """
    if is_blank(value):
        return None
    text = str(value).strip()
    for pattern in _DATE_FORMATS:
        match = pattern.match(text)
        if not match:
            continue
        try:
            return date(int(match["year"]), int(match["month"]), int(match["day"]))
        except ValueError:
            return None
    return None


def normalize_date(value: Any) -> Optional[str]:
    """Natural-key form of a date cell: ``YYYY-MM-DD`` or None."""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else None


__all__ = [
    "STRING",
    "NUMERIC",
    "PERCENTAGE",
    "DATE",
    "FIELD_TYPES",
    "COPY_LENGTH_FIELDS",
    "is_valid",
    "parse_number",
    "parse_percentage",
    "parse_date",
    "normalize_date",
]

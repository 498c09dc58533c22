"""Name normalisation shared by every master-data lookup.

One comparison policy everywhere: surrounding whitespace trimmed, internal
runs of whitespace collapsed, case folded. Validators, the master data cache
and the importer all compare through ``normalize_name``.
"""
from __future__ import annotations

from typing import Any


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    return str(value).strip() == ""


def clean(value: Any) -> str:
    """Trimmed display value ('' for None)."""
    if value is None:
        return ""
    return " ".join(str(value).split())


def normalize_name(value: Any) -> str:
    return clean(value).casefold()


__all__ = ["is_blank", "clean", "normalize_name"]

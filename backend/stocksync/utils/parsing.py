"""Lenient field parsing for exported catalog data.

Export files carry numbers and flags as free text; malformed values degrade
to zero/False instead of failing the whole file.
"""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D+")

TRUE_FLAGS = frozenset({"Y", "T", "1", "TAK"})


def parse_float(value: str | None) -> float:
    """Parse a decimal number, accepting a comma as the decimal separator."""
    if value is None:
        return 0.0
    text = str(value).strip().replace(",", ".")
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return 0.0


def parse_int(value: str | None) -> int:
    """Parse an integer id; empty or garbage becomes 0."""
    if value is None:
        return 0
    text = str(value).strip()
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        return 0


def parse_flag(value: str | None) -> bool:
    """Map Y/T/1/TAK (any case) to True, anything else to False."""
    if value is None:
        return False
    return str(value).strip().upper() in TRUE_FLAGS


def normalize_ean(value: str | None) -> str:
    """Strip every non-digit character from a product code.

    An empty result means the code is unusable for matching.
    """
    if not value:
        return ""
    return _NON_DIGITS.sub("", value)

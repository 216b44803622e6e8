"""Beneficial-owner list parser.

Entity applicants declare their ultimate beneficial owners as free text,
one owner per line:

    Alice Martin | 1980-01-01 | 50%
    Bob Martin   | 1990-01-01 | 50%

Parsing is lenient: a line missing a field, or whose percentage is not a
number, is dropped without failing the whole list. A share outside 0-100 or
an ownership total other than 100% is a screening finding, not a parse
error, so it is kept for the UBO check to report.
"""

import math
from typing import Optional

from onboarding.models import UBOEntry


def _parse_percentage(raw: str) -> Optional[float]:
    """Parse ``"25%"`` / ``" 25.5 "`` into a float, or None if not numeric."""
    cleaned = raw.strip()
    if cleaned.endswith("%"):
        cleaned = cleaned[:-1].strip()
    try:
        value = float(cleaned)
    except ValueError:
        return None
    # float() accepts "nan" and "inf"; neither is an ownership share
    if not math.isfinite(value):
        return None
    return value


def parse_ubo_list(text: Optional[str]) -> list[UBOEntry]:
    """Parse a pipe-delimited UBO declaration into ordered entries."""
    if not text or not text.strip():
        return []

    entries: list[UBOEntry] = []
    for line in text.splitlines():
        fields = [f.strip() for f in line.split("|")]
        if len(fields) != 3 or not all(fields):
            continue

        name, date_of_birth, raw_percentage = fields
        percentage = _parse_percentage(raw_percentage)
        if percentage is None:
            continue

        entries.append(
            UBOEntry(
                name=name,
                date_of_birth=date_of_birth,
                ownership_percentage=percentage,
            )
        )
    return entries


def total_ownership(entries: list[UBOEntry]) -> float:
    return round(sum(e.ownership_percentage for e in entries), 4)

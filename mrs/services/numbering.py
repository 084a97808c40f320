"""
Document numbering: "{series}-{YY}-{NNNNN}".

The next number is the highest existing suffix for the series and year plus one.
A malformed existing number restarts the sequence at 1 instead of failing.

Numbering is read-then-write. doc_no is UNIQUE in the database, and
create_material_request retries with a fresh number when two writers collide.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Optional

from ..models import MaterialRequest, Series, utcnow

SEQUENCE_WIDTH = 5
_LEADING_DIGITS = re.compile(r"\s*(\d+)")


def year_suffix(today: Optional[date] = None) -> str:
    today = today or utcnow().date()
    return f"{today.year % 100:02d}"


def format_doc_no(series: Series | str, yy: str, number: int) -> str:
    return f"{Series(series).value}-{yy}-{number:0{SEQUENCE_WIDTH}d}"


def parse_sequence(doc_no: Optional[str]) -> Optional[int]:
    """Numeric part of the third dash segment ("PO-26-00012" -> 12); None if malformed."""
    parts = (doc_no or "").split("-")
    if len(parts) < 3:
        return None
    match = _LEADING_DIGITS.match(parts[2])
    if not match:
        return None
    return int(match.group(1))


def next_doc_no(series: Series | str, today: Optional[date] = None) -> str:
    series = Series(series)
    yy = year_suffix(today)

    latest = (
        MaterialRequest.query
        .filter(MaterialRequest.series == series)
        .filter(MaterialRequest.doc_no.contains(f"-{yy}-"))
        .order_by(MaterialRequest.doc_no.desc())
        .first()
    )

    next_number = 1
    if latest is not None:
        last_number = parse_sequence(latest.doc_no)
        if last_number is not None:
            next_number = last_number + 1

    return format_doc_no(series, yy, next_number)

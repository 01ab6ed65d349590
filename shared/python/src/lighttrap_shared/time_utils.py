"""
time_utils.py — Date parsing for partner-entered sample dates.

Community partners enter trap-check dates in several layouts depending on
the year's data-entry template:
- ISO: "2024-06-05"
- Slashed ISO: "2024/06/05"
- North American: "6/5/2024", "06/05/2024"
- Spelled month: "5-Jun-2024", "June 5, 2024"
- Timestamps: "2024-06-05 21:30:00" (time is discarded)

Usage:
    from lighttrap_shared.time_utils import parse_sample_date

    d = parse_sample_date("6/5/2024")      # date(2024, 6, 5)
    d = parse_sample_date("5-Jun-2024")    # date(2024, 6, 5)
"""

from __future__ import annotations

import re
from datetime import date, datetime

from dateutil import parser as date_parser

_ISO_RE = re.compile(r"(\d{4})[-/](\d{1,2})[-/](\d{1,2})")


def parse_sample_date(raw: str | date | datetime | None) -> date | None:
    """
    Parse a sample date into a Python date.

    Returns None for blank input. Ambiguous numeric dates are read
    month-first, matching the data-entry templates.

    Raises:
        ValueError: the string is not a recognisable date.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    s = raw.strip()
    if not s:
        return None

    # Fast path for the common ISO layout (optionally with a time part)
    m = _ISO_RE.match(s)
    if m:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    try:
        return date_parser.parse(s, dayfirst=False, yearfirst=False).date()
    except (date_parser.ParserError, OverflowError) as exc:
        raise ValueError(f"Unrecognised date: {raw!r}") from exc

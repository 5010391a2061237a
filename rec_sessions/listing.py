"""Adapter for booking-page listings rendered as blocks of text.

A listing reads top to bottom as::

    Mon, Jan 12th, 2026
    Public Skate #12345
    9:00 am - 10:30 am
    Queen's Park Arena

Date headers apply to every activity block below them until the next
header. Pages may be given as HTML or as already-extracted text.
"""

from __future__ import annotations

import re
from typing import List, Optional

from bs4 import BeautifulSoup

from .models import RawEventRecord
from .timeparse import parse_date, parse_time_range

_DATE_HEADER_RE = re.compile(r"^\w+,\s+\w+\.?\s+\d{1,2}\w*,?\s*(?:\d{4})?$")
_ACTIVITY_RE = re.compile(r"^(.+?)\s+#(\d+)$")
_OPENINGS_RE = re.compile(r"(\d+)\s+spots?\s+left|openings?:?\s*(\d+)", re.I)


def page_lines(page: str) -> List[str]:
    if "<" in page and ">" in page:
        page = BeautifulSoup(page, "html.parser").get_text("\n")
    return [line.strip() for line in page.splitlines() if line.strip()]


def _openings(line: str) -> Optional[int]:
    match = _OPENINGS_RE.search(line)
    if not match:
        return None
    return int(match.group(1) or match.group(2))


def parse_listing(page: str, *, default_year: Optional[int] = None) -> List[RawEventRecord]:
    lines = page_lines(page)
    records: List[RawEventRecord] = []
    current_date: Optional[str] = None
    for i, line in enumerate(lines):
        if _DATE_HEADER_RE.match(line):
            current_date = parse_date(line, default_year)
            continue
        match = _ACTIVITY_RE.match(line)
        if not match or not current_date:
            continue
        time_line = lines[i + 1] if i + 1 < len(lines) else ""
        if not parse_time_range(time_line):
            continue
        location = lines[i + 2] if i + 2 < len(lines) else ""
        extra = lines[i + 3] if i + 3 < len(lines) else ""
        records.append(
            RawEventRecord(
                activityNameText=match.group(1).strip(),
                refNumber=match.group(2),
                isoDate=current_date,
                startTimeText=time_line,
                facilityText=location,
                openings=_openings(extra),
            )
        )
    return records

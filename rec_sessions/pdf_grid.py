"""Adapter for PDF schedule grids with one column per weekday.

The input is the text of the PDF extracted in layout mode, so column
positions survive as character offsets. Each time range found on an
activity's row is attributed to the day header whose column centre is
horizontally closest. When even the closest header is further than the
threshold the time range is rejected instead of being guessed.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Mapping, Optional, Tuple

import pdfplumber

from .models import ScheduleRule
from .timeparse import parse_date_range, parse_day_of_week, parse_time_range

DEFAULT_THRESHOLD = 40
FALLBACK_RANGE = ("01-01", "03-31")

_DAY_TOKEN_RE = re.compile(
    r"\b(?:mon(?:day)?|tue(?:s|sday)?|wed(?:nesday)?|thu(?:r|rs|rsday)?"
    r"|fri(?:day)?|sat(?:urday)?|sun(?:day)?)\b",
    re.I,
)
_GRID_RANGE_RE = re.compile(
    r"\d{1,2}(?::\d{2})?\s*(?:[ap]\.?m\.?)?\s*[-–—]\s*\d{1,2}(?::\d{2})?\s*(?:[ap]\.?m\.?)?",
    re.I,
)


@dataclass
class GridSchedule:
    rules: List[ScheduleRule] = field(default_factory=list)
    validFrom: Optional[date] = None
    validTo: Optional[date] = None
    rejected: int = 0


def pdf_to_text(data: bytes) -> str:
    """Layout-mode text of every page of a PDF, pages separated by newlines."""

    pages: List[str] = []
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        for page in pdf.pages:
            pages.append(page.extract_text(layout=True) or "")
    return "\n".join(pages)


def day_columns(line: str) -> Dict[int, float]:
    """Column centre per weekday for a header line, empty if not a header."""

    columns: Dict[int, float] = {}
    for match in _DAY_TOKEN_RE.finditer(line):
        dow = parse_day_of_week(match.group(0))
        if dow is not None and dow not in columns:
            columns[dow] = (match.start() + match.end()) / 2
    if len(columns) < 2 or _GRID_RANGE_RE.search(line):
        return {}
    return columns


def nearest_day(
    position: float, columns: Mapping[int, float], threshold: float = DEFAULT_THRESHOLD
) -> Optional[int]:
    best: Optional[int] = None
    best_dist = float("inf")
    for dow, centre in columns.items():
        dist = abs(position - centre)
        if dist < best_dist:
            best, best_dist = dow, dist
    if best is None or best_dist > threshold:
        return None
    return best


def effective_range(
    lines: List[str],
    *,
    default_year: Optional[int] = None,
    fallback: Tuple[str, str] = FALLBACK_RANGE,
) -> Tuple[date, date]:
    year = default_year or date.today().year
    for line in lines:
        if "effective" in line.lower():
            rng = parse_date_range(line, year)
            if rng:
                return rng
    for line in lines:
        rng = parse_date_range(line, year)
        if rng:
            return rng
    logging.warning("No effective dates in schedule, assuming %s to %s", *fallback)
    return date.fromisoformat(f"{year}-{fallback[0]}"), date.fromisoformat(f"{year}-{fallback[1]}")


def _activity_on(line: str, names: List[str]) -> Optional[Tuple[str, int]]:
    lower = line.lower()
    for name in names:
        idx = lower.find(name.lower())
        if idx != -1:
            return name, idx + len(name)
    return None


def parse_grid(
    text: str,
    *,
    facility_ref: str,
    activities: Mapping[str, Optional[str]],
    threshold: float = DEFAULT_THRESHOLD,
    default_year: Optional[int] = None,
    fallback: Tuple[str, str] = FALLBACK_RANGE,
) -> GridSchedule:
    """Turn a layout-mode grid into weekly rules.

    ``activities`` maps the activity names to look for onto their type
    (``None`` leaves the type to the classifier). Longer names are tried
    first so "Adult Public Skate" is not read as "Public Skate".
    """

    lines = text.splitlines()
    start, end = effective_range(lines, default_year=default_year, fallback=fallback)
    schedule = GridSchedule(validFrom=start, validTo=end)
    names = sorted(activities, key=len, reverse=True)
    columns: Dict[int, float] = {}
    seen = set()

    for i, line in enumerate(lines):
        header = day_columns(line)
        if header:
            columns = header
            continue
        found = _activity_on(line, names)
        if not found or not columns:
            continue
        name, offset = found
        row = [(line, offset)]
        for follow in lines[i + 1 : i + 3]:
            if not follow.strip() or day_columns(follow) or _activity_on(follow, names):
                break
            row.append((follow, 0))

        for row_line, row_offset in row:
            for match in _GRID_RANGE_RE.finditer(row_line, row_offset):
                rng = parse_time_range(match.group(0))
                if not rng:
                    continue
                dow = nearest_day((match.start() + match.end()) / 2, columns, threshold)
                if dow is None:
                    schedule.rejected += 1
                    logging.warning(
                        "%s %s-%s: no day column within %s characters",
                        name,
                        rng[0],
                        rng[1],
                        threshold,
                    )
                    continue
                key = (dow, name, rng[0])
                if key in seen:
                    continue
                seen.add(key)
                schedule.rules.append(
                    ScheduleRule(
                        facilityRef=facility_ref,
                        dayOfWeek=dow,
                        startTime=rng[0],
                        endTime=rng[1],
                        activityName=name,
                        type=activities[name],
                        validFrom=start.isoformat(),
                        validTo=end.isoformat(),
                    )
                )
    return schedule

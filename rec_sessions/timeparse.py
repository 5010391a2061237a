"""Parsing of free-text dates and times into canonical ISO dates and HH:MM."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional, Tuple, Union

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

DAYS = {
    "sun": 0,
    "sunday": 0,
    "mon": 1,
    "monday": 1,
    "tue": 2,
    "tues": 2,
    "tuesday": 2,
    "wed": 3,
    "wednesday": 3,
    "thu": 4,
    "thur": 4,
    "thurs": 4,
    "thursday": 4,
    "fri": 5,
    "friday": 5,
    "sat": 6,
    "saturday": 6,
}

_PERIOD = r"(?:a\.?m\.?|p\.?m\.?)"
_CLOCK = rf"\d{{1,2}}(?::\d{{2}})?(?::\d{{2}})?\s*{_PERIOD}?"

_TIME_SEARCH_RE = re.compile(
    rf"(?<![\d:])(\d{{1,2}})(?::(\d{{2}}))?(?::\d{{2}})?\s*({_PERIOD})?(?!\d)", re.I
)
_TOKEN_RE = re.compile(
    rf"^(\d{{1,2}})(?::(\d{{2}}))?(?::\d{{2}})?\s*({_PERIOD})?$", re.I
)
_RANGE_RE = re.compile(
    rf"(?<![\d:/\-])({_CLOCK})\s*(?:-|–|—|\bto\b)\s*({_CLOCK})(?!\d)", re.I
)
_ISO_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_MONTH_DAY_RE = re.compile(
    r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+"
    r"(\d{1,2})(?:st|nd|rd|th)?\b(?:,?\s*(\d{4}))?",
    re.I,
)
_SAME_MONTH_RANGE_RE = re.compile(
    r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+"
    r"(\d{1,2})(?:st|nd|rd|th)?\s*(?:-|–|—|\bto\b)\s*(\d{1,2})(?:st|nd|rd|th)?\b",
    re.I,
)
_YEAR_RE = re.compile(r"\b(20\d{2})\b")


def _to_hhmm(hour: int, minute: int, period: Optional[str]) -> Optional[str]:
    if minute > 59:
        return None
    if period:
        if not 1 <= hour <= 12:
            return None
        if period == "p" and hour != 12:
            hour += 12
        elif period == "a" and hour == 12:
            hour = 0
    elif hour > 23:
        return None
    return f"{hour:02d}:{minute:02d}"


def _period(raw: Optional[str]) -> Optional[str]:
    return raw[0].lower() if raw else None


def parse_time(text: Optional[str]) -> Optional[str]:
    """Return the first clock time in ``text`` as 24-hour ``HH:MM``.

    Accepts ``7:30am``, ``7 PM``, ``19:30`` and ``11:15:00``. A bare number
    without minutes or am/pm is not treated as a time.
    """

    if not text:
        return None
    for match in _TIME_SEARCH_RE.finditer(text):
        hour, minute, period = match.group(1), match.group(2), match.group(3)
        if minute is None and period is None:
            continue
        value = _to_hhmm(int(hour), int(minute or 0), _period(period))
        if value:
            return value
    return None


def _split_token(token: str) -> Optional[Tuple[int, int, Optional[str]]]:
    match = _TOKEN_RE.match(token.strip())
    if not match:
        return None
    return int(match.group(1)), int(match.group(2) or 0), _period(match.group(3))


def parse_time_range(text: Optional[str]) -> Optional[Tuple[str, str]]:
    """Parse ``7:30-9:00am``, ``10-1pm`` or ``7:30 am – 9:00 pm``.

    When only the end carries am/pm the start inherits it, unless that would
    put the start at or after the end (``10-1pm`` is 10am to 1pm).
    """

    if not text:
        return None
    match = _RANGE_RE.search(text)
    if not match:
        return None
    start = _split_token(match.group(1))
    end = _split_token(match.group(2))
    if not start or not end:
        return None
    end_value = _to_hhmm(*end)
    if not end_value:
        return None
    s_hour, s_minute, s_period = start
    if s_period is None and end[2] is not None:
        start_value = _to_hhmm(s_hour, s_minute, end[2])
        if start_value is None or start_value >= end_value:
            start_value = _to_hhmm(s_hour, s_minute, "a")
    else:
        start_value = _to_hhmm(s_hour, s_minute, s_period)
    if not start_value:
        return None
    return start_value, end_value


def parse_date(text: Optional[str], default_year: Optional[int] = None) -> Optional[str]:
    """Return the first date in ``text`` as ``YYYY-MM-DD``.

    Handles ISO dates (with or without a trailing time), ``January 12, 2026``
    and ``Mon, Jan 12th, 2026``. Dates without a year use ``default_year``
    or the current year.
    """

    if not text:
        return None
    match = _ISO_RE.search(text)
    if match:
        try:
            return date(*(int(g) for g in match.groups())).isoformat()
        except ValueError:
            return None
    match = _MONTH_DAY_RE.search(text)
    if not match:
        return None
    year = int(match.group(3)) if match.group(3) else (default_year or date.today().year)
    try:
        return date(year, MONTHS[match.group(1).lower()], int(match.group(2))).isoformat()
    except ValueError:
        return None


def parse_date_range(
    text: Optional[str], default_year: Optional[int] = None
) -> Optional[Tuple[date, date]]:
    """Parse ``Jan 5 – Mar 13`` or ``January 5 to March 13, 2026``.

    An end date that falls before the start rolls over to the next year.
    """

    if not text:
        return None
    year_match = _YEAR_RE.search(text)
    year = int(year_match.group(1)) if year_match else (default_year or date.today().year)
    matches = list(_MONTH_DAY_RE.finditer(text))
    try:
        if len(matches) >= 2:
            first, second = matches[0], matches[1]
            start = date(year, MONTHS[first.group(1).lower()], int(first.group(2)))
            end = date(year, MONTHS[second.group(1).lower()], int(second.group(2)))
        else:
            same = _SAME_MONTH_RANGE_RE.search(text)
            if not same:
                return None
            month = MONTHS[same.group(1).lower()]
            start = date(year, month, int(same.group(2)))
            end = date(year, month, int(same.group(3)))
        if end < start:
            end = end.replace(year=end.year + 1)
    except ValueError:
        return None
    return start, end


def parse_day_of_week(text: Optional[str]) -> Optional[int]:
    """Map a day name (``Mon``, ``Tuesday``, ``Sundays``) to 0-6, Sunday first."""

    if not text:
        return None
    key = text.strip().lower().rstrip(".")
    if key in DAYS:
        return DAYS[key]
    if key.endswith("s") and key[:-1] in DAYS:
        return DAYS[key[:-1]]
    return None


def day_index(d: date) -> int:
    """Day of week with Sunday as 0."""
    return (d.weekday() + 1) % 7


def to_date(value: Union[str, date, datetime, None]) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])


def iter_dates(start: date, end: date) -> Iterator[date]:
    cur = start
    while cur <= end:
        yield cur
        cur += timedelta(days=1)


def dates_for_weekday(day_of_week: int, start: date, end: date) -> List[date]:
    """All dates in ``[start, end]`` falling on ``day_of_week`` (Sunday=0)."""

    return [d for d in iter_dates(start, end) if day_index(d) == day_of_week]

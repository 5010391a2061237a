"""ICS calendar builder."""

from __future__ import annotations

import hashlib
from calendar import monthrange
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Tuple
from zoneinfo import ZoneInfo

from .models import Session

PRODID = "-//Metro Vancouver Recreation Sessions//EN"
CALENDAR_NAME = "Metro Vancouver Drop-in Sessions"


def _parse_time(s: str) -> time:
    return datetime.strptime(s, "%H:%M").time()


def _format(dt: datetime) -> str:
    """Format a datetime in UTC with trailing Z."""
    return dt.strftime("%Y%m%dT%H%M%SZ")


def _format_local(dt: datetime) -> str:
    """Format a datetime in local time without timezone suffix."""
    return dt.strftime("%Y%m%dT%H%M%S")


def _escape_text(value: str) -> str:
    """Escape text for RFC5545 TEXT value."""

    normalized = value.replace("\r\n", "\n").replace("\r", "\n")
    escaped = normalized.replace("\\", "\\\\")
    escaped = escaped.replace("\n", "\\n")
    escaped = escaped.replace(",", "\\,")
    escaped = escaped.replace(";", "\\;")
    return escaped


def _fold_line(line: str, limit: int = 75) -> List[str]:
    """Fold a line according to RFC5545 (75 octets)."""

    if len(line.encode("utf-8")) <= limit:
        return [line]

    folded: List[str] = []
    current_chars: List[str] = []
    current_bytes = 0

    for ch in line:
        ch_bytes = len(ch.encode("utf-8"))
        if current_bytes + ch_bytes > limit:
            folded.append("".join(current_chars))
            current_chars = [" "]
            current_bytes = 1
        current_chars.append(ch)
        current_bytes += ch_bytes

    folded.append("".join(current_chars))
    return folded


_WEEKDAYS = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


def _offset(td: timedelta) -> str:
    minutes = int(td.total_seconds() // 60)
    sign = "+" if minutes >= 0 else "-"
    hours, minutes = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}{minutes:02d}"


def _transitions(tz: ZoneInfo, year: int) -> List[Tuple[datetime, timedelta, timedelta]]:
    """UTC instants in ``year`` where the offset of ``tz`` changes, with old and new offsets."""

    found = []
    cur = datetime(year, 1, 1, tzinfo=timezone.utc)
    end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    prev = cur.astimezone(tz).utcoffset()
    step = timedelta(minutes=15)
    while cur < end:
        cur += step
        offset = cur.astimezone(tz).utcoffset()
        if offset != prev:
            found.append((cur, prev, offset))
            prev = offset
    return found


def _vtimezone(tz: ZoneInfo, year: int) -> List[str]:
    lines = ["BEGIN:VTIMEZONE", f"TZID:{tz.key}", f"X-LIC-LOCATION:{tz.key}"]
    transitions = _transitions(tz, year)
    if not transitions:
        sample = datetime(year, 1, 1, tzinfo=tz)
        offset = _offset(sample.utcoffset())
        lines.extend(
            [
                "BEGIN:STANDARD",
                f"TZOFFSETFROM:{offset}",
                f"TZOFFSETTO:{offset}",
                f"TZNAME:{sample.tzname()}",
                "DTSTART:19700101T000000",
                "END:STANDARD",
            ]
        )
    for instant, before, after in transitions:
        local = (instant + before).replace(tzinfo=None)
        after_local = instant.astimezone(tz)
        kind = "DAYLIGHT" if after_local.dst() else "STANDARD"
        days_in_month = monthrange(local.year, local.month)[1]
        nth = -1 if local.day + 7 > days_in_month else (local.day - 1) // 7 + 1
        lines.extend(
            [
                f"BEGIN:{kind}",
                f"TZOFFSETFROM:{_offset(before)}",
                f"TZOFFSETTO:{_offset(after)}",
                f"TZNAME:{after_local.tzname()}",
                f"DTSTART:{_format_local(local)}",
                f"RRULE:FREQ=YEARLY;BYMONTH={local.month};BYDAY={nth}{_WEEKDAYS[local.weekday()]}",
                f"END:{kind}",
            ]
        )
    lines.append("END:VTIMEZONE")
    return lines


def session_uid(s: Session) -> str:
    base = f"{s.facility}|{s.date}|{s.startTime}|{s.activityName}"
    return hashlib.sha1(base.encode()).hexdigest()


def build_events(sessions: Iterable[Session], *, tz: ZoneInfo) -> List[dict]:
    """One VEVENT structure per session."""

    events: List[dict] = []
    for s in sessions:
        day = date.fromisoformat(s.date)
        description_parts = [
            s.activityName,
            s.ageRange or "",
            s.description or "",
            s.facility,
            s.city,
        ]
        events.append(
            {
                "uid": session_uid(s),
                "summary": f"{s.type.value} - {s.facility}",
                "location": s.address,
                "description": "\n".join(filter(None, description_parts)),
                "categories": s.type.value,
                "start": datetime.combine(day, _parse_time(s.startTime), tz),
                "end": datetime.combine(day, _parse_time(s.endTime), tz),
                "geo": f"{s.lat};{s.lng}",
                "url": s.activityUrl or s.scheduleUrl or "",
            }
        )
    return events


def build_ics(sessions: Iterable[Session], *, tz: ZoneInfo) -> Tuple[str, List[dict]]:
    events = build_events(sessions, tz=tz)

    now = datetime.now(timezone.utc)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        f"X-WR-CALNAME:{CALENDAR_NAME}",
    ]

    year = min((e["start"].year for e in events), default=now.year)
    lines.extend(_vtimezone(tz, year))

    for e in events:
        lines.append("BEGIN:VEVENT")
        lines.append(f"UID:{e['uid']}")
        lines.append(f"DTSTAMP:{_format(now)}")
        lines.append(f"SUMMARY:{_escape_text(e['summary'])}")
        lines.append(f"DTSTART;TZID={tz.key}:{_format_local(e['start'])}")
        lines.append(f"DTEND;TZID={tz.key}:{_format_local(e['end'])}")
        if e["location"]:
            lines.append(f"LOCATION:{_escape_text(e['location'])}")
        if e["description"]:
            lines.append(f"DESCRIPTION:{_escape_text(e['description'])}")
        lines.append(f"CATEGORIES:{_escape_text(e['categories'])}")
        lines.append(f"GEO:{e['geo']}")
        if e["url"]:
            lines.append(f"URL:{e['url']}")
        lines.append("STATUS:CONFIRMED")
        lines.append("TRANSP:OPAQUE")
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    folded_lines: List[str] = []
    for line in lines:
        folded_lines.extend(_fold_line(line))
    ics = "\r\n".join(folded_lines) + "\r\n"
    return ics, events


def output_filename(sport: str) -> str:
    return f"rec_sessions_{sport}.ics"

"""Mapping of raw API/DOM event records onto canonical sessions."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, Iterable, List, Optional, Tuple

from .classify import classify, should_skip
from .facilities import FacilityDirectory
from .models import ActivityType, RawEventRecord, Session, session_at
from .timeparse import parse_date, parse_time, parse_time_range

Classifier = Callable[[Optional[str]], ActivityType]

SKIPPED = "skipped"
UNPARSABLE = "unparsable"
UNRESOLVED = "unresolved"
INVALID = "invalid"


class DropRecord(Exception):
    def __init__(self, reason: str, detail: str) -> None:
        super().__init__(detail)
        self.reason = reason


def _date_of(record: RawEventRecord, default_year: Optional[int]) -> str:
    value = parse_date(record.isoDate) or parse_date(record.dateText, default_year)
    if not value:
        raise DropRecord(UNPARSABLE, f"no date in {record.isoDate or record.dateText!r}")
    return value


def _times_of(record: RawEventRecord) -> Tuple[str, str]:
    start = parse_time(record.startIso) or parse_time(record.startTimeText)
    end = parse_time(record.endIso) or parse_time(record.endTimeText)
    if (not start or not end) and record.startTimeText and not record.endTimeText:
        # "9:00 am - 10:30 am" supplied as a single field
        rng = parse_time_range(record.startTimeText)
        if rng:
            start, end = rng
    if not start or not end:
        raise DropRecord(
            UNPARSABLE,
            f"no times in {record.startIso or record.startTimeText!r}"
            f" / {record.endIso or record.endTimeText!r}",
        )
    return start, end


def session_from_raw(
    record: RawEventRecord,
    *,
    city: str,
    directory: FacilityDirectory,
    classifier: Classifier = classify,
    default_facility: Optional[str] = None,
    schedule_url: Optional[str] = None,
    default_year: Optional[int] = None,
) -> Session:
    """Return the session for ``record`` or raise :class:`DropRecord`."""

    name = (record.activityNameText or "").strip()
    if should_skip(name):
        raise DropRecord(SKIPPED, f"not a session: {name!r}")
    facility = directory.get(record.facilityRef) or directory.resolve_or_default(
        record.facilityText, city, default_facility
    )
    if facility is None:
        raise DropRecord(UNRESOLVED, f"unknown facility {record.facilityText!r}")
    iso = _date_of(record, default_year)
    start, end = _times_of(record)
    try:
        return session_at(
            facility,
            date=iso,
            startTime=start,
            endTime=end,
            type=classifier(name),
            activityName=name,
            ageRange=record.ageRange or None,
            description=record.description or None,
            activityUrl=record.activityUrl or schedule_url,
            scheduleUrl=schedule_url,
            eventItemId=str(record.eventItemId) if record.eventItemId else None,
        )
    except ValueError as exc:
        raise DropRecord(INVALID, str(exc)) from exc


def sessions_from_raw(
    records: Iterable[RawEventRecord],
    *,
    city: str,
    directory: FacilityDirectory,
    classifier: Classifier = classify,
    default_facility: Optional[str] = None,
    schedule_url: Optional[str] = None,
    default_year: Optional[int] = None,
) -> Tuple[List[Session], Counter]:
    sessions: List[Session] = []
    dropped: Counter = Counter()
    for record in records:
        try:
            sessions.append(
                session_from_raw(
                    record,
                    city=city,
                    directory=directory,
                    classifier=classifier,
                    default_facility=default_facility,
                    schedule_url=schedule_url,
                    default_year=default_year,
                )
            )
        except DropRecord as exc:
            dropped[exc.reason] += 1
            logging.debug("Dropped %r: %s", record.activityNameText, exc)
    if dropped:
        logging.info("%s: dropped %s", city, dict(dropped))
    return sessions, dropped

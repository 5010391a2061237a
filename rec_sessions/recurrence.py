"""Expansion of weekly schedule rules and dated exceptions into sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Callable, Iterable, List, Mapping, Optional, Tuple

from .classify import classify
from .facilities import FacilityDirectory
from .models import (
    ActivityType,
    ExceptionSet,
    Facility,
    ScheduleRule,
    Session,
    SpecialEvent,
    session_at,
)
from .timeparse import dates_for_weekday, to_date
from . import util

DEFAULT_WINDOW_DAYS = 90

Classifier = Callable[[Optional[str]], ActivityType]


def resolve_window(
    range_start: Optional[date],
    range_end: Optional[date],
    today: date,
) -> Tuple[date, date]:
    """Clamp the window start to today and default the end to a rolling window.

    Past occurrences are never back-filled.
    """

    start = max(range_start, today) if range_start else today
    end = range_end or today + timedelta(days=DEFAULT_WINDOW_DAYS)
    return start, end


def activity_type(value: Optional[str], name: str, classifier: Classifier) -> ActivityType:
    if value:
        try:
            return ActivityType(value)
        except ValueError:
            logging.warning("Unknown activity type %r for %r, classifying", value, name)
    return classifier(name)


@dataclass
class _PreparedRule:
    rule: ScheduleRule
    facility: Facility
    valid_from: Optional[date]
    valid_to: Optional[date]
    exceptions: Optional[ExceptionSet]
    type: ActivityType


def _prepare(
    rules: Iterable[ScheduleRule],
    exceptions: Mapping[str, ExceptionSet],
    directory: FacilityDirectory,
    classifier: Classifier,
) -> List[_PreparedRule]:
    prepared: List[_PreparedRule] = []
    for rule in rules:
        facility = directory.get(rule.facilityRef)
        if facility is None:
            logging.warning(
                "Rule %r references unknown facility %r", rule.activityName, rule.facilityRef
            )
            continue
        try:
            valid_from = to_date(rule.validFrom)
            valid_to = to_date(rule.validTo)
        except ValueError:
            logging.warning("Rule %r has a bad validity date", rule.activityName)
            continue
        exc = None
        if rule.exceptionKey:
            exc = exceptions.get(rule.exceptionKey)
            if exc is None:
                logging.debug("No exceptions recorded for key %r", rule.exceptionKey)
        prepared.append(
            _PreparedRule(
                rule=rule,
                facility=facility,
                valid_from=valid_from,
                valid_to=valid_to,
                exceptions=exc,
                type=activity_type(rule.type, rule.activityName, classifier),
            )
        )
    return prepared


def expand(
    rules: Iterable[ScheduleRule],
    exceptions: Mapping[str, ExceptionSet],
    range_start: Optional[date] = None,
    range_end: Optional[date] = None,
    *,
    directory: FacilityDirectory,
    today: Optional[date] = None,
    classifier: Classifier = classify,
    schedule_url: Optional[str] = None,
) -> List[Session]:
    """Expand weekly rules into concrete sessions over a date window.

    Each rule emits on its weekday for every date of
    ``[max(range_start, today), range_end]`` inside its own validity bounds,
    subject to its exception set: cancelled dates emit nothing, time
    changes replace the rule's default times. A cancellation beats a time
    change recorded for the same date. Overlapping rules all emit;
    deduplication is left to the aggregator.
    """

    today = today or util.today()
    start, end = resolve_window(range_start, range_end, today)
    prepared = _prepare(rules, exceptions, directory, classifier)
    emitted: List[Tuple[date, int, Session]] = []
    if start > end or not prepared:
        return []

    for index, p in enumerate(prepared):
        lo = max(start, p.valid_from) if p.valid_from else start
        hi = min(end, p.valid_to) if p.valid_to else end
        for d in dates_for_weekday(p.rule.dayOfWeek, lo, hi):
            iso = d.isoformat()
            start_time, end_time = p.rule.startTime, p.rule.endTime
            if p.exceptions is not None:
                if p.exceptions.is_cancelled(iso):
                    continue
                change = p.exceptions.time_change(iso)
                if change is not None:
                    start_time, end_time = change.start, change.end
            try:
                session = session_at(
                    p.facility,
                    date=iso,
                    startTime=start_time,
                    endTime=end_time,
                    type=p.type,
                    activityName=p.rule.activityName,
                    ageRange=p.rule.ageRange,
                    activityUrl=p.rule.activityUrl or schedule_url,
                    scheduleUrl=schedule_url,
                )
            except ValueError as exc:
                logging.warning("Dropping %s on %s: %s", p.rule.activityName, iso, exc)
                continue
            emitted.append((d, index, session))
    # date first, then rule order within a date
    emitted.sort(key=lambda item: (item[0], item[1]))
    return [session for _, _, session in emitted]


def special_sessions(
    events: Iterable[SpecialEvent],
    range_start: Optional[date] = None,
    range_end: Optional[date] = None,
    *,
    directory: FacilityDirectory,
    today: Optional[date] = None,
    classifier: Classifier = classify,
    schedule_url: Optional[str] = None,
) -> List[Session]:
    """One-off sessions, kept only when they fall inside the window."""

    today = today or util.today()
    start, end = resolve_window(range_start, range_end, today)
    sessions: List[Session] = []
    for event in events:
        facility = directory.get(event.facilityRef)
        if facility is None:
            logging.warning(
                "Special event %r references unknown facility %r",
                event.activityName,
                event.facilityRef,
            )
            continue
        try:
            d = to_date(event.date)
        except ValueError:
            logging.warning("Special event %r has a bad date %r", event.activityName, event.date)
            continue
        if d is None or d < start or d > end:
            continue
        try:
            sessions.append(
                session_at(
                    facility,
                    date=d.isoformat(),
                    startTime=event.startTime,
                    endTime=event.endTime,
                    type=activity_type(event.type, event.activityName, classifier),
                    activityName=event.activityName,
                    ageRange=event.ageRange,
                    description=event.description,
                    activityUrl=schedule_url,
                    scheduleUrl=schedule_url,
                )
            )
        except ValueError as exc:
            logging.warning("Dropping special event %s: %s", event.activityName, exc)
    return sessions

"""Data models for schedule sessions and the rules that produce them."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ActivityType(str, Enum):
    # skating
    FAMILY_HOCKEY = "Family Hockey"
    DROP_IN_HOCKEY = "Drop-in Hockey"
    PARA_HOCKEY = "Para Hockey"
    HOCKEY = "Hockey"
    FAMILY_SKATE = "Family Skate"
    FIGURE_SKATING = "Figure Skating"
    PUBLIC_SKATING = "Public Skating"
    DISCOUNT_SKATE = "Discount Skate"
    SKATING_LESSONS = "Skating Lessons"
    PRACTICE = "Practice"
    SKATING = "Skating"
    # swimming
    LESSONS = "Lessons"
    AQUAFIT = "Aquafit"
    LAP_SWIM = "Lap Swim"
    FAMILY_SWIM = "Family Swim"
    ADULT_SWIM = "Adult Swim"
    PUBLIC_SWIM = "Public Swim"


@dataclass(frozen=True)
class Session:
    facility: str
    city: str
    address: str
    lat: float
    lng: float
    date: str  # ISO date string
    startTime: str  # HH:MM, 24 hour
    endTime: str
    type: ActivityType
    activityName: str
    ageRange: Optional[str] = None
    description: Optional[str] = None
    activityUrl: Optional[str] = None
    scheduleUrl: Optional[str] = None
    facilityUrl: Optional[str] = None
    eventItemId: Optional[str] = None

    def __post_init__(self) -> None:
        if not _DATE_RE.match(self.date or ""):
            raise ValueError(f"Bad session date: {self.date!r}")
        for value in (self.startTime, self.endTime):
            if not _TIME_RE.match(value or ""):
                raise ValueError(f"Bad session time: {value!r}")
        # No overnight sessions
        if self.endTime <= self.startTime:
            raise ValueError(
                f"Session ends before it starts: {self.date} {self.startTime}-{self.endTime}"
            )

    def to_dict(self) -> dict:
        """Serialize to the JSON field set, leaving out unset optionals."""
        data = {
            "facility": self.facility,
            "city": self.city,
            "address": self.address,
            "lat": self.lat,
            "lng": self.lng,
            "date": self.date,
            "startTime": self.startTime,
            "endTime": self.endTime,
            "type": self.type.value,
            "activityName": self.activityName,
        }
        for name in (
            "ageRange",
            "description",
            "activityUrl",
            "scheduleUrl",
            "facilityUrl",
            "eventItemId",
        ):
            value = getattr(self, name)
            if value:
                data[name] = value
        return data


@dataclass(frozen=True)
class Facility:
    id: str
    name: str
    city: str
    address: str
    lat: float
    lng: float
    aliases: Tuple[str, ...] = ()
    scheduleUrl: Optional[str] = None
    url: Optional[str] = None


def session_at(facility: Facility, **fields) -> Session:
    """Build a Session at ``facility``, copying its identity and location."""

    fields.setdefault("facilityUrl", facility.url or facility.scheduleUrl)
    if not fields.get("scheduleUrl"):
        fields["scheduleUrl"] = facility.scheduleUrl
    return Session(
        facility=facility.name,
        city=facility.city,
        address=facility.address,
        lat=facility.lat,
        lng=facility.lng,
        **fields,
    )


@dataclass
class ScheduleRule:
    facilityRef: str
    dayOfWeek: int  # 0 = Sunday
    startTime: str
    endTime: str
    activityName: str
    type: Optional[str] = None
    ageRange: Optional[str] = None
    validFrom: Optional[str] = None  # ISO date string
    validTo: Optional[str] = None
    exceptionKey: Optional[str] = None
    activityUrl: Optional[str] = None


@dataclass(frozen=True)
class TimeChange:
    start: str
    end: str


@dataclass
class ExceptionSet:
    key: str
    cancelledDates: FrozenSet[str] = frozenset()
    timeChanges: Dict[str, TimeChange] = field(default_factory=dict)

    def is_cancelled(self, iso_date: str) -> bool:
        return iso_date in self.cancelledDates

    def time_change(self, iso_date: str) -> Optional[TimeChange]:
        # A cancellation on the same date always wins
        if self.is_cancelled(iso_date):
            return None
        return self.timeChanges.get(iso_date)


@dataclass
class SpecialEvent:
    facilityRef: str
    date: str
    startTime: str
    endTime: str
    activityName: str
    type: Optional[str] = None
    ageRange: Optional[str] = None
    description: Optional[str] = None


@dataclass
class RawEventRecord:
    activityNameText: str
    facilityText: Optional[str] = None
    facilityRef: Optional[str] = None
    dateText: Optional[str] = None
    isoDate: Optional[str] = None
    startTimeText: Optional[str] = None
    startIso: Optional[str] = None
    endTimeText: Optional[str] = None
    endIso: Optional[str] = None
    openings: Optional[int] = None
    refNumber: Optional[str] = None
    eventItemId: Optional[str] = None
    description: Optional[str] = None
    ageRange: Optional[str] = None
    activityUrl: Optional[str] = None

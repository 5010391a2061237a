"""Loading of the static facility and source configuration."""

from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .aggregate import KEY_FUNCTIONS, KeyFunc
from .classify import SKATING, SWIMMING
from .facilities import FacilityDirectory
from .models import ActivityType, ExceptionSet, Facility, ScheduleRule, SpecialEvent, TimeChange
from .timeparse import to_date

CONFIG_ENV = "REC_SESSIONS_CONFIG_DIR"
DATA_DIR = Path(__file__).resolve().parent / "data"
FACILITIES_FILE = "facilities.json"
SOURCES_FILE = "sources.json"

KINDS = ("weekly", "seasonal", "activenet", "listing", "pdf_grid")
SPORTS = (SKATING, SWIMMING)


class ConfigError(RuntimeError):
    pass


@dataclass
class SourceConfig:
    name: str
    kind: str
    city: str
    sport: str = SKATING
    url: Optional[str] = None
    scheduleUrl: Optional[str] = None
    validFrom: Optional[str] = None
    validTo: Optional[str] = None
    season: Optional[Dict[str, str]] = None
    dedupKey: str = "default"
    defaultFacility: Optional[str] = None
    facilityRef: Optional[str] = None
    rules: List[ScheduleRule] = field(default_factory=list)
    exceptions: Dict[str, ExceptionSet] = field(default_factory=dict)
    specialEvents: List[SpecialEvent] = field(default_factory=list)
    centers: Dict[str, str] = field(default_factory=dict)
    activities: Dict[str, Optional[str]] = field(default_factory=dict)
    threshold: float = 40
    facilityUrlTemplate: Optional[str] = None
    enabled: bool = True

    @property
    def key(self) -> KeyFunc:
        return KEY_FUNCTIONS[self.dedupKey]

    def window(self, today: date) -> Tuple[Optional[date], Optional[date]]:
        """Validity window of the published schedule, if one is known."""
        if self.season:
            return season_window(self.season, today)
        return to_date(self.validFrom), to_date(self.validTo)


def _month_day(value: str) -> Tuple[int, int]:
    month, day = value.split("-")
    return int(month), int(day)


def season_window(season: Dict[str, str], today: date) -> Tuple[date, date]:
    """Resolve ``{"start": "11-28", "end": "02-28"}`` to the current season.

    Seasons that wrap the new year belong to last year's start while today
    is still before the season end.
    """

    start_md = _month_day(season["start"])
    end_md = _month_day(season["end"])
    year = today.year
    wraps = end_md < start_md
    if wraps and (today.month, today.day) <= end_md:
        year -= 1
    start = date(year, *start_md)
    end = date(year + 1 if wraps else year, *end_md)
    return start, end


def config_dir(path: Optional[str | Path] = None) -> Path:
    if path:
        return Path(path)
    env = os.getenv(CONFIG_ENV)
    return Path(env) if env else DATA_DIR


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc


def _build(cls, data: Dict[str, Any], where: str):
    names = {f.name for f in dataclasses.fields(cls)}
    try:
        return cls(**{k: v for k, v in data.items() if k in names})
    except TypeError as exc:
        raise ConfigError(f"{where}: {exc}") from exc


def _check_type(value: Optional[str], where: str) -> None:
    if value is None:
        return
    try:
        ActivityType(value)
    except ValueError as exc:
        raise ConfigError(f"{where}: unknown activity type {value!r}") from exc


def parse_facility(data: Dict[str, Any]) -> Facility:
    fac = _build(Facility, data, f"facility {data.get('id')!r}")
    return dataclasses.replace(fac, aliases=tuple(a.lower() for a in fac.aliases or ()))


def parse_exceptions(data: Dict[str, Any]) -> Dict[str, ExceptionSet]:
    sets: Dict[str, ExceptionSet] = {}
    for key, value in (data or {}).items():
        if isinstance(value, list):
            # Shorthand: a plain list is a list of cancelled dates
            value = {"cancelled": value}
        changes = {
            d: TimeChange(start=t["start"], end=t["end"])
            for d, t in (value.get("timeChanges") or {}).items()
        }
        sets[key] = ExceptionSet(
            key=key,
            cancelledDates=frozenset(value.get("cancelled") or ()),
            timeChanges=changes,
        )
    return sets


def parse_source(data: Dict[str, Any]) -> SourceConfig:
    name = data.get("name", "?")
    raw = dict(data)
    rules = [_build(ScheduleRule, r, f"{name} rule") for r in raw.pop("rules", [])]
    events = [_build(SpecialEvent, e, f"{name} special event") for e in raw.pop("specialEvents", [])]
    exceptions = parse_exceptions(raw.pop("exceptions", {}))
    source = _build(SourceConfig, raw, f"source {name!r}")
    source.rules = rules
    source.specialEvents = events
    source.exceptions = exceptions
    source.centers = {str(k): v for k, v in source.centers.items()}

    if source.kind not in KINDS:
        raise ConfigError(f"source {name!r}: unknown kind {source.kind!r}")
    if source.sport not in SPORTS:
        raise ConfigError(f"source {name!r}: unknown sport {source.sport!r}")
    if source.dedupKey not in KEY_FUNCTIONS:
        raise ConfigError(f"source {name!r}: unknown dedup key {source.dedupKey!r}")
    for item in [*rules, *events]:
        _check_type(item.type, f"source {name!r} {item.activityName!r}")
    for rule in rules:
        if not 0 <= rule.dayOfWeek <= 6:
            raise ConfigError(f"source {name!r}: bad dayOfWeek {rule.dayOfWeek}")
    for activity_name, value in source.activities.items():
        _check_type(value, f"source {name!r} activity {activity_name!r}")
    try:
        source.window(date.today())
    except (ValueError, KeyError) as exc:
        raise ConfigError(f"source {name!r}: bad validity window: {exc}") from exc
    return source


def load_facilities(path: Path) -> FacilityDirectory:
    data = _read_json(path)
    items = data.get("facilities") if isinstance(data, dict) else None
    if not items:
        raise ConfigError(f"No facilities in {path}")
    try:
        return FacilityDirectory(parse_facility(item) for item in items)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc


def load_sources(path: Path) -> List[SourceConfig]:
    data = _read_json(path)
    items = data.get("sources") if isinstance(data, dict) else None
    if items is None:
        raise ConfigError(f"No sources in {path}")
    return [parse_source(item) for item in items]


def load(path: Optional[str | Path] = None) -> Tuple[FacilityDirectory, List[SourceConfig]]:
    base = config_dir(path)
    directory = load_facilities(base / FACILITIES_FILE)
    sources = load_sources(base / SOURCES_FILE)
    logging.debug("Loaded %d facilities and %d sources from %s", len(directory), len(sources), base)
    return directory, sources


def expired_sources(sources: List[SourceConfig], today: date) -> List[SourceConfig]:
    """Sources whose published schedule has already ended."""

    expired = []
    for source in sources:
        if source.season:
            continue
        end = to_date(source.validTo)
        if end and today > end:
            expired.append(source)
    return expired

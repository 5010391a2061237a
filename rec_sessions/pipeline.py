"""One refresh run: adapt every source, expand, normalize and aggregate."""

from __future__ import annotations

import logging
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from . import activenet, listing, pdf_grid, util
from .aggregate import Batch, KeyFunc, aggregate, default_key, within
from .api import SourceClient
from .classify import classifier_for
from .config import SourceConfig
from .facilities import FacilityDirectory
from .models import Session
from .normalize import sessions_from_raw
from .recurrence import expand, resolve_window, special_sessions

Window = Tuple[Optional[date], Optional[date]]


@dataclass
class SourceResult:
    name: str
    city: str
    sport: str
    sessions: List[Session] = field(default_factory=list)
    key: KeyFunc = default_key
    dropped: Counter = field(default_factory=Counter)
    error: Optional[str] = None

    def batch(self) -> Batch:
        return Batch(self.sessions, key=self.key, source=self.name)


@dataclass
class RunResult:
    sessions: List[Session]
    results: List[SourceResult]
    last_updated: str

    def counts(self) -> Dict[str, int]:
        return {r.name: len(r.sessions) for r in self.results}

    def failures(self) -> List[SourceResult]:
        return [r for r in self.results if r.error]


def _narrow(window: Window, start: Optional[date], end: Optional[date]) -> Window:
    lo, hi = window
    if start and (lo is None or start > lo):
        lo = start
    if end and (hi is None or end < hi):
        hi = end
    return lo, hi


def _expand_rules(source, rules, window, *, directory, today) -> List[Session]:
    classifier = classifier_for(source.sport)
    lo, hi = window
    sessions = expand(
        rules,
        source.exceptions,
        lo,
        hi,
        directory=directory,
        today=today,
        classifier=classifier,
        schedule_url=source.scheduleUrl,
    )
    sessions.extend(
        special_sessions(
            source.specialEvents,
            lo,
            hi,
            directory=directory,
            today=today,
            classifier=classifier,
            schedule_url=source.scheduleUrl,
        )
    )
    return sessions


def _run_weekly(source, *, directory, client, today, window):
    return _expand_rules(source, source.rules, window, directory=directory, today=today), Counter()


def _run_activenet(source, *, directory, client, today, window):
    payload = client.get(source.url, name=source.name, kind="json")
    records = activenet.parse_events(
        payload, centers=source.centers, directory=directory, city=source.city
    )
    urls = activenet.facility_schedule_urls(source.centers, source.facilityUrlTemplate)
    by_ref: Dict[str, list] = {}
    for record in records:
        by_ref.setdefault(record.facilityRef, []).append(record)
    sessions: List[Session] = []
    dropped: Counter = Counter()
    for ref, group in by_ref.items():
        found, lost = sessions_from_raw(
            group,
            city=source.city,
            directory=directory,
            classifier=classifier_for(source.sport),
            schedule_url=urls.get(ref, source.scheduleUrl),
        )
        sessions.extend(found)
        dropped.update(lost)
    return within(sessions, *resolve_window(*window, today)), dropped


def _run_listing(source, *, directory, client, today, window):
    page = client.get(source.url, name=source.name, kind="text")
    records = listing.parse_listing(page, default_year=today.year)
    sessions, dropped = sessions_from_raw(
        records,
        city=source.city,
        directory=directory,
        classifier=classifier_for(source.sport),
        default_facility=source.defaultFacility,
        schedule_url=source.scheduleUrl or source.url,
    )
    return within(sessions, *resolve_window(*window, today)), dropped


def _run_pdf_grid(source, *, directory, client, today, window):
    data = client.get(source.url, name=source.name, kind="pdf")
    text = data if isinstance(data, str) else pdf_grid.pdf_to_text(data)
    grid = pdf_grid.parse_grid(
        text,
        facility_ref=source.facilityRef,
        activities=source.activities,
        threshold=source.threshold,
        default_year=today.year,
    )
    logging.info("%s: %d weekly slots from grid", source.name, len(grid.rules))
    lo, hi = window
    grid_window = _narrow((grid.validFrom, grid.validTo), lo, hi)
    sessions = _expand_rules(source, grid.rules, grid_window, directory=directory, today=today)
    dropped: Counter = Counter()
    if grid.rejected:
        dropped["rejected"] = grid.rejected
    return sessions, dropped


RUNNERS: Dict[str, Callable] = {
    "weekly": _run_weekly,
    "seasonal": _run_weekly,
    "activenet": _run_activenet,
    "listing": _run_listing,
    "pdf_grid": _run_pdf_grid,
}


def run_source(
    source: SourceConfig,
    *,
    directory: FacilityDirectory,
    client: SourceClient,
    today: date,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> SourceResult:
    """Run one source; any failure yields an empty result, never an exception."""

    result = SourceResult(name=source.name, city=source.city, sport=source.sport, key=source.key)
    try:
        window = _narrow(source.window(today), start, end)
        sessions, dropped = RUNNERS[source.kind](
            source, directory=directory, client=client, today=today, window=window
        )
    except Exception as exc:
        logging.error("%s failed: %s", source.name, exc)
        result.error = str(exc) or exc.__class__.__name__
        return result
    result.sessions = sessions
    result.dropped = dropped
    logging.info("%s: %d sessions", source.name, len(sessions))
    return result


def run_all(
    sources: Iterable[SourceConfig],
    *,
    directory: FacilityDirectory,
    client: SourceClient,
    today: Optional[date] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    max_workers: int = 1,
) -> RunResult:
    """Run every enabled source, then fold the batches in source order."""

    today = today or util.today()
    client.cache.clear()
    enabled = [s for s in sources if s.enabled]

    def run(source: SourceConfig) -> SourceResult:
        return run_source(
            source, directory=directory, client=client, today=today, start=start, end=end
        )

    if max_workers > 1 and len(enabled) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(run, enabled))
    else:
        results = [run(s) for s in enabled]

    sessions = aggregate(r.batch() for r in results)
    last_updated = datetime.now(timezone.utc).isoformat()
    return RunResult(sessions=sessions, results=results, last_updated=last_updated)

"""Merging of per-source session batches into one deduplicated, sorted list."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple, Union

from .models import Session

KeyFunc = Callable[[Session], Hashable]


def slot_key(s: Session) -> Hashable:
    return (s.facility, s.date, s.startTime)


def event_key(s: Session) -> Hashable:
    return (s.facility, s.eventItemId)


def activity_key(s: Session) -> Hashable:
    # Several activities can share one facility and time slot (two rinks)
    return (s.date, s.startTime, s.activityName)


def default_key(s: Session) -> Hashable:
    if s.eventItemId:
        return event_key(s)
    return slot_key(s)


KEY_FUNCTIONS: Dict[str, KeyFunc] = {
    "default": default_key,
    "event": event_key,
    "slot": slot_key,
    "activity": activity_key,
}


@dataclass
class Batch:
    sessions: Sequence[Session] = field(default_factory=list)
    key: KeyFunc = default_key
    source: str = ""


class Aggregated(list):
    """Output of :func:`aggregate`, remembering the key each session was kept under.

    Feeding it back to ``aggregate`` reuses those keys, so sessions that a
    finer batch key kept apart are not collapsed by the default key.
    """

    def __init__(self, sessions: Iterable[Session] = (), keys: Iterable[Hashable] = ()) -> None:
        super().__init__(sessions)
        self.keys: List[Hashable] = list(keys)


def _sort_key(s: Session):
    return (s.date, s.startTime)


def _keyed(batch: Union[Batch, Sequence[Session]]) -> Iterable[Tuple[Hashable, Session]]:
    if isinstance(batch, Aggregated) and len(batch.keys) == len(batch):
        return zip(batch.keys, batch)
    if not isinstance(batch, Batch):
        batch = Batch(list(batch))
    return ((batch.key(s), s) for s in batch.sessions)


def aggregate(batches: Iterable[Union[Batch, Sequence[Session]]]) -> Aggregated:
    """Deduplicate and sort sessions from many sources.

    Batches are folded in submission order; within the fold the first
    session seen for a key wins. Each batch brings its own key function.
    The result is sorted by ``(date, startTime)`` with a stable sort, so
    ties keep their input order.
    """

    seen = set()
    merged: List[Tuple[Hashable, Session]] = []
    for batch in batches:
        for key, session in _keyed(batch):
            if key in seen:
                continue
            seen.add(key)
            merged.append((key, session))
    merged.sort(key=lambda pair: _sort_key(pair[1]))
    return Aggregated((s for _, s in merged), (k for k, _ in merged))


def within(
    sessions: Iterable[Session], start: Optional[date], end: Optional[date]
) -> List[Session]:
    lo = start.isoformat() if start else None
    hi = end.isoformat() if end else None
    return [
        s
        for s in sessions
        if (lo is None or s.date >= lo) and (hi is None or s.date <= hi)
    ]

"""JSON output of aggregated sessions."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Iterable, List

from .models import Session


def result_payload(sessions: List[Session], last_updated: str) -> dict:
    return {
        "success": True,
        "lastUpdated": last_updated,
        "sessions": [s.to_dict() for s in sessions],
        "count": len(sessions),
    }


def write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _by_date(sessions: Iterable[Session]) -> Dict[str, List[Session]]:
    grouped: Dict[str, List[Session]] = {}
    for s in sessions:
        grouped.setdefault(s.date, []).append(s)
    return grouped


def write_daily_files(
    sessions: List[Session],
    out_dir: Path,
    sport: str,
    last_updated: str,
) -> int:
    """Write ``YYYY/MM/DD/<sport>.json`` per day plus an ``index.json``.

    Returns the number of day files written.
    """

    grouped = _by_date(sessions)
    dates = sorted(grouped)
    for day in dates:
        year, month, dom = day.split("-")
        day_sessions = grouped[day]
        write_json(
            out_dir / year / month / dom / f"{sport}.json",
            {
                "date": day,
                "sessions": [s.to_dict() for s in day_sessions],
                "count": len(day_sessions),
            },
        )

    write_json(
        out_dir / "index.json",
        {
            "success": True,
            "lastUpdated": last_updated,
            "totalSessions": len(sessions),
            "dateRange": {
                "start": dates[0] if dates else None,
                "end": dates[-1] if dates else None,
            },
            "dates": dates,
        },
    )

    logging.info("Wrote %d day files, %d sessions", len(dates), len(sessions))
    for day in dates:
        logging.debug("%s: %3d %s", day, len(grouped[day]), "#" * min(len(grouped[day]), 30))
    return len(dates)

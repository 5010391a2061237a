"""Adapter for multi-centre calendar API payloads.

The calendar answers with ``body.center_events``: one entry per centre,
each holding a list of events whose ``start_time``/``end_time`` look like
``2026-01-12 11:15:00``.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Mapping, Optional

from bs4 import BeautifulSoup

from .facilities import FacilityDirectory
from .models import RawEventRecord

_AGE_RE = re.compile(r"(\d+\s*[-–]\s*\d+\s*(?:yrs?|years?))", re.I)
DESCRIPTION_LIMIT = 200


def html_to_text(html: Optional[str]) -> str:
    if not html:
        return ""
    text = BeautifulSoup(html, "html.parser").get_text(" ")
    return re.sub(r"\s+", " ", text).strip()


def clean_title(title: Optional[str]) -> str:
    return (title or "").replace("|", "").strip()


def age_range(text: str) -> Optional[str]:
    match = _AGE_RE.search(text or "")
    return match.group(1) if match else None


def center_facility_ref(
    center: Mapping[str, Any],
    *,
    centers: Mapping[str, str],
    directory: FacilityDirectory,
    city: str,
) -> Optional[str]:
    """Facility id for a centre: configured id map first, then its name."""

    ref = centers.get(str(center.get("center_id")))
    if ref and ref in directory:
        return ref
    fac = directory.resolve(center.get("center_name"), city)
    return fac.id if fac else None


def parse_events(
    payload: Mapping[str, Any],
    *,
    centers: Mapping[str, str],
    directory: FacilityDirectory,
    city: str,
) -> List[RawEventRecord]:
    body = payload.get("body") or {}
    records: List[RawEventRecord] = []
    seen_ids = set()
    for center in body.get("center_events") or []:
        ref = center_facility_ref(center, centers=centers, directory=directory, city=city)
        if ref is None:
            logging.warning(
                "Unknown centre %s (ID: %s)", center.get("center_name"), center.get("center_id")
            )
            continue
        for event in center.get("events") or []:
            event_id = event.get("event_item_id")
            if event_id is not None:
                if event_id in seen_ids:
                    continue
                seen_ids.add(event_id)
            start = event.get("start_time")
            end = event.get("end_time")
            if not start or not end:
                continue
            description = html_to_text(event.get("description"))
            records.append(
                RawEventRecord(
                    activityNameText=clean_title(event.get("title")),
                    facilityRef=ref,
                    isoDate=start[:10],
                    startIso=start,
                    endIso=end,
                    eventItemId=str(event_id) if event_id is not None else None,
                    description=description[:DESCRIPTION_LIMIT].strip() or None,
                    ageRange=age_range(description),
                    activityUrl=event.get("activity_detail_url") or None,
                )
            )
    return records


def facility_schedule_urls(
    centers: Mapping[str, str], template: Optional[str]
) -> Dict[str, str]:
    """Per-facility calendar links built from ``template`` (``{center_id}``)."""

    if not template:
        return {}
    return {ref: template.format(center_id=center_id) for center_id, ref in centers.items()}

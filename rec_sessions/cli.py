"""Command line interface for the recreation session aggregator."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List

from . import api, config, ics_builder, output, pipeline, util
from .classify import SKATING, classifier_for


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recreation session aggregator")
    parser.add_argument("--config-dir", help="Directory holding facilities.json and sources.json")
    parser.add_argument(
        "--city",
        action="append",
        help="Only run sources for this city (repeatable, comma separated)",
    )
    parser.add_argument("--sport", default=SKATING, choices=config.SPORTS)
    parser.add_argument("--start")
    parser.add_argument("--end")
    parser.add_argument("--tz", default=util.DEFAULT_TZ)
    parser.add_argument(
        "--offline", action="store_true", help="Use saved JSON/text fixtures"
    )
    parser.add_argument("--fixtures-dir", default="out/json")
    parser.add_argument("--dump-json", action="store_true")
    parser.add_argument("--workers", type=int, default=1)
    parser.add_argument(
        "--delay", type=float, default=1.0, help="Seconds between network requests"
    )
    parser.add_argument("--ical", action="store_true", help="Write iCalendar instead of JSON")
    parser.add_argument(
        "--daily", action="store_true", help="Write one JSON file per day under --output"
    )
    parser.add_argument("--output")
    parser.add_argument("--preview", action="store_true")
    parser.add_argument(
        "--strict", action="store_true", help="Fail when a configured schedule has expired"
    )
    parser.add_argument("--classify", metavar="NAME", help="Print the activity type and exit")
    parser.add_argument("--resolve", metavar="TEXT", help="Print the matching facility and exit")
    parser.add_argument("--resolve-city")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def _cities(values: List[str] | None) -> set[str] | None:
    if not values:
        return None
    return {c.strip().lower() for v in values for c in v.split(",") if c.strip()}


def _select(sources: List[config.SourceConfig], cities: set[str] | None, sport: str):
    selected = [s for s in sources if s.sport == sport]
    if cities:
        selected = [
            s
            for s in selected
            if s.city.lower() in cities or s.city.lower().replace(" ", "") in cities
        ]
    return selected


def main(argv: List[str] | None = None) -> int:
    args = parse_args(argv)
    util.configure_logging(args.verbose)

    if args.classify is not None:
        print(classifier_for(args.sport)(args.classify).value)
        return 0

    try:
        directory, sources = config.load(args.config_dir)
    except config.ConfigError as exc:
        logging.error("Configuration error: %s", exc)
        return 2

    if args.resolve is not None:
        if not args.resolve_city:
            logging.error("--resolve needs --resolve-city")
            return 2
        fac = directory.resolve(args.resolve, args.resolve_city)
        if fac is None:
            known = ", ".join(f.name for f in directory.in_city(args.resolve_city))
            logging.warning("Known facilities in %s: %s", args.resolve_city, known or "none")
        print(fac.name if fac else "(no match)")
        return 0 if fac else 1

    tz = util.parse_timezone(args.tz)
    today = util.today(tz)
    start = date.fromisoformat(args.start) if args.start else None
    end = date.fromisoformat(args.end) if args.end else None

    selected = _select(sources, _cities(args.city), args.sport)
    expired = config.expired_sources(selected, today)
    for source in expired:
        logging.warning("%s schedule ended %s and needs updating", source.name, source.validTo)
    if expired and args.strict:
        logging.error("Expired schedules: %s", ", ".join(s.name for s in expired))
        return 1

    client = api.SourceClient(
        offline=args.offline,
        dump_json=args.dump_json,
        fixtures_dir=args.fixtures_dir,
        delay=args.delay,
    )
    result = pipeline.run_all(
        selected,
        directory=directory,
        client=client,
        today=today,
        start=start,
        end=end,
        max_workers=args.workers,
    )
    for failed in result.failures():
        logging.warning("%s returned no sessions: %s", failed.name, failed.error)

    if args.daily:
        if not args.output:
            logging.error("--daily needs --output")
            return 2
        output.write_daily_files(
            result.sessions, Path(args.output), args.sport, result.last_updated
        )
    elif args.ical:
        ics, _ = ics_builder.build_ics(result.sessions, tz=tz)
        path = Path(args.output or "out/ics")
        if not args.output or path.is_dir():
            path = path / ics_builder.output_filename(args.sport)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(ics, encoding="utf-8")
        logging.info("Wrote %s", path)
    else:
        payload = output.result_payload(result.sessions, result.last_updated)
        if args.output:
            output.write_json(Path(args.output), payload)
        else:
            print(json.dumps(payload, indent=2))

    if args.preview:
        for s in result.sessions[:10]:
            print(
                f"{s.date} {s.startTime}-{s.endTime} {s.type.value}: {s.activityName} @ {s.facility}",
                file=sys.stderr,
            )
    logging.info("Found %d sessions", len(result.sessions))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

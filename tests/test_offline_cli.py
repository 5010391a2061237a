import json
import subprocess
import sys
from datetime import date, timedelta
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

FACILITIES = {
    "facilities": [
        {
            "id": "van-hillcrest",
            "name": "Hillcrest Centre",
            "city": "Vancouver",
            "address": "4575 Clancy Loranger Way, Vancouver, BC V5Y 2M4",
            "lat": 49.24407,
            "lng": -123.10781,
            "aliases": ["hillcrest"],
        },
        {
            "id": "nv-shipyards",
            "name": "Shipyards Skate Plaza",
            "city": "North Vancouver",
            "address": "125 Victory Ship Way, North Vancouver, BC V7L 0B2",
            "lat": 49.30958,
            "lng": -123.07878,
            "aliases": ["shipyards"],
        },
    ]
}


def _write(path: Path, data) -> None:
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f)


def _setup(tmp_path: Path, extra_sources=()):
    cfg = tmp_path / "config"
    fixtures = tmp_path / "json"
    cfg.mkdir()
    fixtures.mkdir()
    sources = [
        {
            "name": "shipyards",
            "kind": "weekly",
            "city": "North Vancouver",
            "rules": [
                {
                    "facilityRef": "nv-shipyards",
                    "dayOfWeek": day,
                    "startTime": "12:00",
                    "endTime": "20:00",
                    "activityName": "Outdoor Skating",
                }
                for day in range(7)
            ],
        },
        {
            "name": "vancouver",
            "kind": "activenet",
            "city": "Vancouver",
            "url": "https://example.org/events",
            "dedupKey": "event",
            "centers": {"22": "van-hillcrest"},
        },
        *extra_sources,
    ]
    _write(cfg / "facilities.json", FACILITIES)
    _write(cfg / "sources.json", {"sources": sources})

    day = (date.today() + timedelta(days=3)).isoformat()
    _write(
        fixtures / "vancouver.json",
        {
            "body": {
                "center_events": [
                    {
                        "center_id": 22,
                        "center_name": "Hillcrest Centre",
                        "events": [
                            {
                                "event_item_id": 1,
                                "title": "Family Hockey",
                                "start_time": f"{day} 11:15:00",
                                "end_time": f"{day} 12:30:00",
                            }
                        ],
                    }
                ]
            }
        },
    )
    return cfg, fixtures


def _run(*args):
    return subprocess.run(
        [sys.executable, "-m", "rec_sessions.cli", *args],
        cwd=ROOT,
        capture_output=True,
        text=True,
    )


def test_offline_cli_execution(tmp_path):
    cfg, fixtures = _setup(tmp_path)
    out = tmp_path / "out" / "sessions.json"
    proc = _run("--offline", "--config-dir", str(cfg), "--fixtures-dir", str(fixtures), "--output", str(out))
    assert proc.returncode == 0, proc.stderr

    with out.open(encoding="utf-8") as f:
        payload = json.load(f)
    assert payload["success"] is True
    assert payload["count"] == len(payload["sessions"]) > 0
    facilities = {s["facility"] for s in payload["sessions"]}
    assert facilities == {"Shipyards Skate Plaza", "Hillcrest Centre"}
    hockey = [s for s in payload["sessions"] if s["type"] == "Family Hockey"]
    assert len(hockey) == 1


def test_offline_cli_city_filter_and_ical(tmp_path):
    cfg, fixtures = _setup(tmp_path)
    out = tmp_path / "sessions.ics"
    proc = _run(
        "--offline",
        "--config-dir",
        str(cfg),
        "--fixtures-dir",
        str(fixtures),
        "--city",
        "Vancouver",
        "--ical",
        "--output",
        str(out),
    )
    assert proc.returncode == 0, proc.stderr
    ics = out.read_text(encoding="utf-8")
    assert ics.count("BEGIN:VEVENT") == 1
    assert "Hillcrest Centre" in ics


def test_offline_cli_daily_files(tmp_path):
    cfg, fixtures = _setup(tmp_path)
    out = tmp_path / "daily"
    proc = _run(
        "--offline",
        "--config-dir",
        str(cfg),
        "--fixtures-dir",
        str(fixtures),
        "--daily",
        "--output",
        str(out),
        "--start",
        date.today().isoformat(),
        "--end",
        (date.today() + timedelta(days=6)).isoformat(),
    )
    assert proc.returncode == 0, proc.stderr
    with (out / "index.json").open(encoding="utf-8") as f:
        index = json.load(f)
    assert index["success"] is True
    assert 6 <= len(index["dates"]) <= 7


def test_strict_fails_on_expired_schedule(tmp_path):
    expired = {
        "name": "old-pdf",
        "kind": "weekly",
        "city": "Vancouver",
        "validFrom": "2020-01-06",
        "validTo": "2020-03-13",
        "rules": [],
    }
    cfg, fixtures = _setup(tmp_path, [expired])
    args = ("--offline", "--config-dir", str(cfg), "--fixtures-dir", str(fixtures))
    proc = _run(*args, "--strict")
    assert proc.returncode == 1
    assert "old-pdf" in proc.stderr
    assert _run(*args).returncode == 0


def test_bad_config_exits_with_status_2(tmp_path):
    proc = _run("--config-dir", str(tmp_path / "missing"))
    assert proc.returncode == 2


def test_debug_helpers(tmp_path):
    cfg, _ = _setup(tmp_path)
    proc = _run("--classify", "Toonie Skate")
    assert proc.stdout.strip() == "Public Skating"
    proc = _run("--config-dir", str(cfg), "--resolve", "*Hillcrest Rink 1", "--resolve-city", "Vancouver")
    assert proc.returncode == 0
    assert proc.stdout.strip() == "Hillcrest Centre"


def test_offline_cli_swimming(tmp_path):
    extra = {
        "name": "vancouver-swimming",
        "kind": "activenet",
        "city": "Vancouver",
        "sport": "swimming",
        "url": "https://example.org/swim-events",
        "dedupKey": "event",
    }
    cfg, fixtures = _setup(tmp_path, [extra])
    day = (date.today() + timedelta(days=2)).isoformat()
    events = [
        ("Lane Swim", "06:00", "08:00"),
        ("Aquafit - Deep Water", "09:00", "10:00"),
        ("Sauna & Whirlpool", "10:00", "21:00"),
        ("Public Swim", "13:00", "15:00"),
    ]
    _write(
        fixtures / "vancouver-swimming.json",
        {
            "body": {
                "center_events": [
                    {
                        "center_id": 901,
                        "center_name": "Hillcrest Centre",
                        "events": [
                            {
                                "event_item_id": 100 + i,
                                "title": title,
                                "start_time": f"{day} {start}:00",
                                "end_time": f"{day} {end}:00",
                            }
                            for i, (title, start, end) in enumerate(events)
                        ],
                    }
                ]
            }
        },
    )
    out = tmp_path / "swimming.json"
    proc = _run(
        "--offline",
        "--config-dir",
        str(cfg),
        "--fixtures-dir",
        str(fixtures),
        "--sport",
        "swimming",
        "--output",
        str(out),
    )
    assert proc.returncode == 0, proc.stderr

    with out.open(encoding="utf-8") as f:
        payload = json.load(f)
    assert [(s["activityName"], s["type"]) for s in payload["sessions"]] == [
        ("Lane Swim", "Lap Swim"),
        ("Aquafit - Deep Water", "Aquafit"),
        ("Public Swim", "Public Swim"),
    ]
    assert {s["facility"] for s in payload["sessions"]} == {"Hillcrest Centre"}


def test_unresolved_name_lists_city_facilities(tmp_path):
    cfg, _ = _setup(tmp_path)
    proc = _run("--config-dir", str(cfg), "--resolve", "Britannia Rink", "--resolve-city", "Vancouver")
    assert proc.returncode == 1
    assert proc.stdout.strip() == "(no match)"
    assert "Hillcrest Centre" in proc.stderr


def test_ical_into_directory_uses_sport_filename(tmp_path):
    cfg, fixtures = _setup(tmp_path)
    out = tmp_path / "ics"
    out.mkdir()
    proc = _run(
        "--offline",
        "--config-dir",
        str(cfg),
        "--fixtures-dir",
        str(fixtures),
        "--ical",
        "--output",
        str(out),
    )
    assert proc.returncode == 0, proc.stderr
    ics = (out / "rec_sessions_ice-skating.ics").read_text(encoding="utf-8")
    assert "TZID:America/Vancouver" in ics

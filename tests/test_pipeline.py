import json
from datetime import date

from rec_sessions import pipeline
from rec_sessions.api import SourceClient
from rec_sessions.config import parse_source
from rec_sessions.facilities import FacilityDirectory
from rec_sessions.models import Facility

TODAY = date(2026, 1, 10)


def make_facility(id, name, city, alias):
    return Facility(
        id=id,
        name=name,
        city=city,
        address=f"{name}, {city}, BC",
        lat=49.2,
        lng=-123.0,
        aliases=(alias,),
    )


DIRECTORY = FacilityDirectory(
    [
        make_facility("van-hillcrest", "Hillcrest Centre", "Vancouver", "hillcrest"),
        make_facility("nw-queens-park", "Queen's Park Arena", "New Westminster", "queen's park"),
        make_facility("nw-moody-park", "Moody Park Arena", "New Westminster", "moody park"),
        make_facility("bby-kensington", "Kensington Complex", "Burnaby", "kensington"),
    ]
)


def weekly_source(name="hillcrest-weekly", **overrides):
    base = {
        "name": name,
        "kind": "weekly",
        "city": "Vancouver",
        "validFrom": "2026-01-05",
        "validTo": "2026-01-31",
        "rules": [
            {
                "facilityRef": "van-hillcrest",
                "dayOfWeek": 1,
                "startTime": "12:00",
                "endTime": "13:00",
                "activityName": "Public Skate",
            }
        ],
    }
    base.update(overrides)
    return parse_source(base)


def activenet_source():
    return parse_source(
        {
            "name": "vancouver",
            "kind": "activenet",
            "city": "Vancouver",
            "url": "https://example.org/events",
            "dedupKey": "event",
            "centers": {"22": "van-hillcrest"},
            "facilityUrlTemplate": "https://example.org/calendar?locationId={center_id}",
        }
    )


def client_for(tmp_path):
    return SourceClient(offline=True, fixtures_dir=tmp_path)


def run(sources, tmp_path, **kwargs):
    return pipeline.run_all(sources, directory=DIRECTORY, client=client_for(tmp_path), today=TODAY, **kwargs)


def write_activenet_fixture(tmp_path):
    payload = {
        "body": {
            "center_events": [
                {
                    "center_id": 22,
                    "center_name": "Hillcrest Centre",
                    "events": [
                        {
                            "event_item_id": 9001,
                            "title": "Family Hockey",
                            "start_time": "2026-01-12 12:00:00",
                            "end_time": "2026-01-12 13:00:00",
                        },
                        {
                            "event_item_id": 9002,
                            "title": "Public Skate",
                            "start_time": "2026-01-08 12:00:00",
                            "end_time": "2026-01-08 13:00:00",
                        },
                    ],
                }
            ]
        }
    }
    (tmp_path / "vancouver.json").write_text(json.dumps(payload), encoding="utf-8")


def test_weekly_source(tmp_path):
    result = run([weekly_source()], tmp_path)
    assert [s.date for s in result.sessions] == ["2026-01-12", "2026-01-19", "2026-01-26"]
    assert result.counts() == {"hillcrest-weekly": 3}
    assert result.failures() == []
    assert result.last_updated


def test_failing_source_is_isolated(tmp_path):
    result = run([activenet_source(), weekly_source()], tmp_path)
    failed = result.failures()
    assert [r.name for r in failed] == ["vancouver"]
    assert failed[0].sessions == []
    assert len(result.sessions) == 3


def test_activenet_source_offline(tmp_path):
    write_activenet_fixture(tmp_path)
    result = run([activenet_source()], tmp_path)
    # The 2026-01-08 event is before today
    assert len(result.sessions) == 1
    s = result.sessions[0]
    assert s.eventItemId == "9001"
    assert s.scheduleUrl == "https://example.org/calendar?locationId=22"


def test_source_order_breaks_sort_ties(tmp_path):
    write_activenet_fixture(tmp_path)
    result = run([activenet_source(), weekly_source()], tmp_path)
    on_12th = [s for s in result.sessions if s.date == "2026-01-12"]
    assert len(on_12th) == 2
    assert on_12th[0].activityName == "Family Hockey"

    result = run([weekly_source(), activenet_source()], tmp_path)
    on_12th = [s for s in result.sessions if s.date == "2026-01-12"]
    assert [s.activityName for s in on_12th] == ["Public Skate", "Family Hockey"]


def test_slot_keys_collapse_across_sources(tmp_path):
    longer = {
        "facilityRef": "van-hillcrest",
        "dayOfWeek": 1,
        "startTime": "12:00",
        "endTime": "14:00",
        "activityName": "Long Skate",
    }
    result = run([weekly_source("first"), weekly_source("second", rules=[longer])], tmp_path)
    assert len(result.sessions) == 3
    assert {s.activityName for s in result.sessions} == {"Public Skate"}
    assert result.counts() == {"first": 3, "second": 3}


def test_listing_source_offline(tmp_path):
    page = "\n".join(
        [
            "Mon, Jan 12th, 2026",
            "Public Skate #1",
            "9:00 am - 10:30 am",
            "Moody Park Arena",
            "Stick and Puck #2",
            "9:00 am - 10:30 am",
            "Moody Park Arena",
            "Public Skate #3",
            "1:00 pm - 2:00 pm",
            "Outdoor Oval",
        ]
    )
    (tmp_path / "newwest.txt").write_text(page, encoding="utf-8")
    source = parse_source(
        {
            "name": "newwest",
            "kind": "listing",
            "city": "New Westminster",
            "url": "https://example.org/newwest",
            "defaultFacility": "nw-queens-park",
            "dedupKey": "activity",
        }
    )
    result = run([source], tmp_path)
    assert [(s.facility, s.activityName) for s in result.sessions] == [
        ("Moody Park Arena", "Public Skate"),
        ("Moody Park Arena", "Stick and Puck"),
        ("Queen's Park Arena", "Public Skate"),
    ]
    assert result.sessions[0].scheduleUrl == "https://example.org/newwest"


def test_pdf_grid_source_offline(tmp_path):
    header = "".ljust(20) + "Monday".center(20) + "Tuesday".center(20)
    grid = "\n".join(
        [
            "Effective Jan 5 - Jan 31, 2026",
            header,
            "Public Skate".ljust(20) + "9:00-10:30am".center(20) + "1-2pm".center(20),
            "Lap Skate".ljust(20) + " " * 100 + "6:00-7:00pm",
        ]
    )
    (tmp_path / "kensington.txt").write_text(grid, encoding="utf-8")
    source = parse_source(
        {
            "name": "kensington",
            "kind": "pdf_grid",
            "city": "Burnaby",
            "url": "https://example.org/kensington.pdf",
            "facilityRef": "bby-kensington",
            "activities": {"Public Skate": "Public Skating", "Lap Skate": None},
        }
    )
    result = run([source], tmp_path, end=date(2026, 1, 20))
    assert [(s.date, s.startTime) for s in result.sessions] == [
        ("2026-01-12", "09:00"),
        ("2026-01-13", "13:00"),
        ("2026-01-19", "09:00"),
        ("2026-01-20", "13:00"),
    ]
    assert result.results[0].dropped == {"rejected": 1}


def test_disabled_sources_are_not_run(tmp_path):
    result = run([weekly_source(enabled=False)], tmp_path)
    assert result.results == []
    assert result.sessions == []


def test_parallel_run_keeps_source_order(tmp_path):
    write_activenet_fixture(tmp_path)
    sources = [activenet_source(), weekly_source()]
    sequential = run(sources, tmp_path)
    parallel = run(sources, tmp_path, max_workers=4)
    assert parallel.sessions == sequential.sessions
    assert [r.name for r in parallel.results] == ["vancouver", "hillcrest-weekly"]

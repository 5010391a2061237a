from datetime import timedelta

from rec_sessions import ics_builder
from rec_sessions.models import ActivityType, Session
from rec_sessions.util import parse_timezone


def make_session(day):
    return Session(
        facility="Richmond Ice Centre",
        city="Richmond",
        address="14140 Triangle Rd, Richmond, BC V6W 1K4",
        lat=49.13639,
        lng=-123.06669,
        date=day,
        startTime="12:00",
        endTime="13:00",
        type=ActivityType.PUBLIC_SKATING,
        activityName="Public Skate",
    )


def test_dst_conversion():
    tz = parse_timezone("America/Vancouver")
    sessions = [make_session("2026-03-07"), make_session("2026-03-09")]
    ics, events = ics_builder.build_ics(sessions, tz=tz)
    assert events[0]["start"].utcoffset() == timedelta(hours=-8)
    assert events[1]["start"].utcoffset() == timedelta(hours=-7)
    # Wall-clock time is unchanged across the switch
    assert "DTSTART;TZID=America/Vancouver:20260307T120000" in ics
    assert "DTSTART;TZID=America/Vancouver:20260309T120000" in ics


def _block(ics, component):
    lines = ics.split("\r\n")
    start = lines.index(f"BEGIN:{component}")
    return lines[start : lines.index(f"END:{component}", start) + 1]


def test_vtimezone_rules_for_vancouver():
    tz = parse_timezone("America/Vancouver")
    ics, _ = ics_builder.build_ics([make_session("2026-03-09")], tz=tz)
    assert "TZID:America/Vancouver" in ics
    daylight = _block(ics, "DAYLIGHT")
    assert "TZOFFSETFROM:-0800" in daylight
    assert "TZOFFSETTO:-0700" in daylight
    assert "TZNAME:PDT" in daylight
    assert "DTSTART:20260308T020000" in daylight
    assert "RRULE:FREQ=YEARLY;BYMONTH=3;BYDAY=2SU" in daylight
    standard = _block(ics, "STANDARD")
    assert "TZOFFSETTO:-0800" in standard
    assert "RRULE:FREQ=YEARLY;BYMONTH=11;BYDAY=1SU" in standard


def test_calendar_is_labelled_with_the_requested_zone():
    tz = parse_timezone("Europe/London")
    ics, events = ics_builder.build_ics([make_session("2026-07-01")], tz=tz)
    assert "America/Vancouver" not in ics
    assert "DTSTART;TZID=Europe/London:20260701T120000" in ics
    assert events[0]["start"].utcoffset() == timedelta(hours=1)
    daylight = _block(ics, "DAYLIGHT")
    assert "TZOFFSETTO:+0100" in daylight
    assert "RRULE:FREQ=YEARLY;BYMONTH=3;BYDAY=-1SU" in daylight
    assert "RRULE:FREQ=YEARLY;BYMONTH=10;BYDAY=-1SU" in _block(ics, "STANDARD")


def test_zone_without_daylight_saving():
    ics, _ = ics_builder.build_ics([make_session("2026-07-01")], tz=parse_timezone("UTC"))
    assert "BEGIN:DAYLIGHT" not in ics
    standard = _block(ics, "STANDARD")
    assert "TZOFFSETFROM:+0000" in standard
    assert "TZOFFSETTO:+0000" in standard

"""Tests for export.py – calendar store, iCalendar, CSV and JSON output."""
import json
from datetime import date, datetime, timedelta

import pytest

from zf_timetable_export.export import (
    CalendarAccessError,
    CalendarStoreError,
    ExportError,
    export,
    export_to_calendar_store,
    to_calendar_events,
    to_ical,
)
from zf_timetable_export.models import CanonicalSession
from zf_timetable_export.schedule import expand_all
from zf_timetable_export.semester import SemesterContext
from zf_timetable_export.weeks import WeekRange

SEMESTER = SemesterContext(start_date=date(2026, 2, 16))


def _occurrences(weeks=WeekRange(1, 3), name="Algorithms", teacher="Li", room="B201"):
    session = CanonicalSession(name, teacher, room, 3, 1, 2, weeks)
    return expand_all([session], SEMESTER)


def _without_uids(text):
    return "\r\n".join(line for line in text.split("\r\n") if not line.startswith("UID:"))


class TestCalendarEvents:
    def test_fields(self):
        (event,) = to_calendar_events(_occurrences(WeekRange(1, 1)))
        assert event.title == "Algorithms"
        assert event.location == "B201"
        assert event.notes == "教师：Li"
        assert event.start.replace(tzinfo=None) == datetime(2026, 2, 18, 8, 0)
        assert event.end.replace(tzinfo=None) == datetime(2026, 2, 18, 9, 35)
        assert event.start.utcoffset() == timedelta(hours=8)


class FakeStore:
    def __init__(self, granted=True, reject=(), error=CalendarStoreError):
        self.granted = granted
        self.reject = set(reject)
        self.error = error
        self.saved = []

    def request_access(self):
        return self.granted

    def save_event(self, event):
        if event.start.date() in self.reject:
            raise self.error("rejected")
        self.saved.append(event)


class TestCalendarStore:
    def test_saves_all(self):
        store = FakeStore()
        assert export_to_calendar_store(_occurrences(), store) == 3
        assert [e.start.date() for e in store.saved] == [
            date(2026, 2, 18), date(2026, 2, 25), date(2026, 3, 4),
        ]

    def test_single_failure_does_not_abort_batch(self):
        store = FakeStore(reject={date(2026, 2, 25)})
        assert export_to_calendar_store(_occurrences(), store) == 2
        assert len(store.saved) == 2

    @pytest.mark.parametrize("error", [RuntimeError, ValueError, OSError])
    def test_unexpected_store_error_does_not_abort_batch(self, error):
        store = FakeStore(reject={date(2026, 2, 18)}, error=error)
        assert export_to_calendar_store(_occurrences(), store) == 2
        assert [e.start.date() for e in store.saved] == [date(2026, 2, 25), date(2026, 3, 4)]

    def test_access_denied(self):
        store = FakeStore(granted=False)
        with pytest.raises(CalendarAccessError, match="access"):
            export_to_calendar_store(_occurrences(), store)
        assert store.saved == []


class TestICal:
    def test_structure(self):
        text = to_ical(_occurrences(WeekRange(1, 1)))
        assert text.startswith("BEGIN:VCALENDAR\r\n")
        assert text.rstrip("\r\n").endswith("END:VCALENDAR")
        assert "VERSION:2.0" in text
        assert "PRODID:" in text
        assert "BEGIN:VTIMEZONE" in text
        assert "TZID:Asia/Shanghai" in text
        assert "TZOFFSETFROM:+0800" in text
        assert "TZOFFSETTO:+0800" in text
        assert "DTSTART;TZID=Asia/Shanghai:20260218T080000" in text
        assert "DTEND;TZID=Asia/Shanghai:20260218T093500" in text
        assert "SUMMARY:Algorithms" in text
        assert "LOCATION:B201" in text
        assert "DESCRIPTION:教师：Li" in text
        assert "UID:" in text
        assert "@zf-timetable-export" in text

    def test_crlf_only(self):
        text = to_ical(_occurrences())
        assert "\n" not in text.replace("\r\n", "")

    def test_one_event_per_occurrence(self):
        occurrences = _occurrences(WeekRange(1, 16))
        text = to_ical(occurrences)
        assert len(text.split("BEGIN:VEVENT")) == len(occurrences) + 1 == 17

    def test_empty(self):
        text = to_ical([])
        assert len(text.split("BEGIN:VEVENT")) == 1
        assert "BEGIN:VTIMEZONE" in text

    def test_text_is_escaped(self):
        text = to_ical(_occurrences(WeekRange(1, 1), name="A,B;C\\D", teacher="X\nY", room="R,1"))
        assert r"SUMMARY:A\,B\;C\\D" in text
        assert r"LOCATION:R\,1" in text
        assert r"DESCRIPTION:教师：X\nY" in text

    def test_uids_are_unique(self):
        text = to_ical(_occurrences(WeekRange(1, 5)))
        uids = [line for line in text.split("\r\n") if line.startswith("UID:")]
        assert len(uids) == len(set(uids)) == 5

    def test_reproducible_apart_from_uids(self):
        occurrences = _occurrences(WeekRange(1, 8))
        assert _without_uids(to_ical(occurrences)) == _without_uids(to_ical(occurrences))


class TestExportFiles:
    def test_ics(self, tmp_path):
        out = tmp_path / "t.ics"
        export(_occurrences(), out, "ics")
        data = out.read_bytes()
        assert data.count(b"BEGIN:VEVENT") == 3
        assert b"\r\n" in data

    def test_csv(self, tmp_path):
        out = tmp_path / "t.csv"
        export(_occurrences(), out, "CSV")
        lines = out.read_text(encoding="utf-8").splitlines()
        assert lines[0] == "DATE,WEEK,DAY_OF_WEEK,START,END,COURSE,TEACHER,CLASSROOM,SECTIONS"
        assert lines[1] == "2026-02-18,1,3,08:00,09:35,Algorithms,Li,B201,1-2"
        assert len(lines) == 4

    def test_csv_empty(self, tmp_path):
        out = tmp_path / "t.csv"
        export([], out, "csv")
        assert out.read_text(encoding="utf-8") == ""

    def test_json(self, tmp_path):
        out = tmp_path / "t.json"
        export(_occurrences(name="算法"), out, "json")
        rows = json.loads(out.read_text(encoding="utf-8"))
        assert len(rows) == 3
        assert rows[0]["COURSE"] == "算法"
        assert rows[2]["DATE"] == "2026-03-04"

    def test_unknown_format(self, tmp_path):
        with pytest.raises(ValueError):
            export([], tmp_path / "t.xml", "xml")

    def test_write_failure_is_typed(self, tmp_path):
        with pytest.raises(ExportError):
            export(_occurrences(), tmp_path / "missing" / "t.ics", "ics")

"""
Export occurrences to a calendar store, iCalendar (.ics), CSV, and JSON.
"""
from __future__ import annotations

import csv
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, List, Protocol

import icalendar
import pytz

from .models import Occurrence

log = logging.getLogger(__name__)

# China Standard Time; fixed +08:00, no DST
TZ_SHANGHAI = "Asia/Shanghai"
TZ_OFFSET = timedelta(hours=8)

PRODID = "-//ZF Timetable Export//CN"
CALENDAR_NAME = "课程表"
UID_DOMAIN = "zf-timetable-export"
TEACHER_LABEL = "教师："


class ExportError(RuntimeError):
    """Writing an export file failed."""


class CalendarAccessError(RuntimeError):
    """The calendar store refused access."""


class CalendarStoreError(RuntimeError):
    """The calendar store rejected a single event."""


def _notes(occ: Occurrence) -> str:
    return f"{TEACHER_LABEL}{occ.session.teacher}"


def _localize(dt: datetime, tz_name: str) -> datetime:
    return pytz.timezone(tz_name).localize(dt)


# ──────────────────────────────────────────────────────────────────
#  Calendar store
# ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CalendarEvent:
    title: str
    location: str
    notes: str
    start: datetime
    end: datetime


class CalendarStore(Protocol):
    def request_access(self) -> bool: ...

    def save_event(self, event: CalendarEvent) -> None: ...


def to_calendar_events(
    occurrences: Iterable[Occurrence], tz_name: str = TZ_SHANGHAI
) -> List[CalendarEvent]:
    """One store event per occurrence, with zone-aware start/end."""
    return [
        CalendarEvent(
            title=occ.session.course_name,
            location=occ.session.classroom,
            notes=_notes(occ),
            start=_localize(occ.starts_at(), tz_name),
            end=_localize(occ.ends_at(), tz_name),
        )
        for occ in occurrences
    ]


def export_to_calendar_store(
    occurrences: Iterable[Occurrence],
    store: CalendarStore,
    tz_name: str = TZ_SHANGHAI,
) -> int:
    """
    Save every occurrence to ``store`` and return how many were saved.

    Raises CalendarAccessError if the store denies access. An event the store
    rejects (CalendarStoreError, or any other exception raised by
    ``save_event``) is logged and skipped; the rest of the batch still goes
    through.
    """
    if not store.request_access():
        raise CalendarAccessError(
            "Calendar access was not granted. Allow calendar access in settings and try again."
        )

    saved = 0
    failed = 0
    for event in to_calendar_events(occurrences, tz_name):
        try:
            store.save_event(event)
        except Exception as e:
            failed += 1
            log.warning("Could not save %s at %s: %s", event.title, event.start, e)
            continue
        saved += 1

    if failed:
        log.info("Saved %d event(s), %d failed", saved, failed)
    return saved


# ──────────────────────────────────────────────────────────────────
#  iCalendar
# ──────────────────────────────────────────────────────────────────

def _timezone_component(tz_name: str) -> icalendar.Timezone:
    tz = icalendar.Timezone()
    tz.add("tzid", tz_name)
    standard = icalendar.TimezoneStandard()
    standard.add("dtstart", datetime(1970, 1, 1))
    standard.add("tzoffsetfrom", TZ_OFFSET)
    standard.add("tzoffsetto", TZ_OFFSET)
    tz.add_component(standard)
    return tz


def build_calendar(
    occurrences: Iterable[Occurrence],
    tz_name: str = TZ_SHANGHAI,
    calendar_name: str = CALENDAR_NAME,
) -> icalendar.Calendar:
    """
    Calendar with one VEVENT per occurrence.

    Times are wall-clock times tagged with TZID, not UTC. Each event gets a
    random UID; no DTSTAMP is written so the rest of the output only depends
    on the occurrences.
    """
    cal = icalendar.Calendar()
    cal.add("prodid", PRODID)
    cal.add("version", "2.0")
    cal.add("calscale", "GREGORIAN")
    cal.add("x-wr-calname", calendar_name)
    cal.add("x-wr-timezone", tz_name)
    cal.add_component(_timezone_component(tz_name))

    for occ in occurrences:
        event = icalendar.Event()
        event.add("uid", f"{uuid.uuid4()}@{UID_DOMAIN}")
        event.add("dtstart", _localize(occ.starts_at(), tz_name))
        event.add("dtend", _localize(occ.ends_at(), tz_name))
        event.add("summary", occ.session.course_name)
        event.add("location", occ.session.classroom)
        event.add("description", _notes(occ))
        cal.add_component(event)

    return cal


def to_ical(
    occurrences: Iterable[Occurrence],
    tz_name: str = TZ_SHANGHAI,
    calendar_name: str = CALENDAR_NAME,
) -> str:
    """iCalendar text (CRLF line endings) for the occurrences."""
    return build_calendar(occurrences, tz_name, calendar_name).to_ical().decode("utf-8")


# ──────────────────────────────────────────────────────────────────
#  Files
# ──────────────────────────────────────────────────────────────────

def _rows(occurrences: Iterable[Occurrence]) -> List[dict]:
    return [
        {
            "DATE": occ.date.isoformat(),
            "WEEK": occ.week,
            "DAY_OF_WEEK": occ.session.day_of_week,
            "START": occ.start.strftime("%H:%M"),
            "END": occ.end.strftime("%H:%M"),
            "COURSE": occ.session.course_name,
            "TEACHER": occ.session.teacher,
            "CLASSROOM": occ.session.classroom,
            "SECTIONS": f"{occ.session.start_section}-{occ.session.end_section}",
        }
        for occ in occurrences
    ]


def _write(out_path: str | Path, data: bytes) -> None:
    try:
        Path(out_path).write_bytes(data)
    except OSError as e:
        raise ExportError(f"Could not write {out_path}: {e}") from e


def export_ics(
    occurrences: Iterable[Occurrence],
    out_path: str | Path,
    tz_name: str = TZ_SHANGHAI,
    calendar_name: str = CALENDAR_NAME,
) -> None:
    """Export occurrences to iCalendar (.ics) for Apple/Google calendar."""
    _write(out_path, build_calendar(occurrences, tz_name, calendar_name).to_ical())


def export_csv(occurrences: Iterable[Occurrence], out_path: str | Path) -> None:
    """Export occurrences to CSV."""
    rows = _rows(occurrences)
    if not rows:
        _write(out_path, b"")
        return
    try:
        with open(out_path, "w", newline="", encoding="utf-8") as f:
            w = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
            w.writeheader()
            w.writerows(rows)
    except OSError as e:
        raise ExportError(f"Could not write {out_path}: {e}") from e


def export_json(occurrences: Iterable[Occurrence], out_path: str | Path) -> None:
    """Export occurrences to JSON."""
    text = json.dumps(_rows(occurrences), indent=2, ensure_ascii=False)
    _write(out_path, text.encode("utf-8"))


def export(occurrences: Iterable[Occurrence], out_path: str | Path, fmt: str) -> None:
    """Export to the given format: ics, csv, or json."""
    fmt = fmt.lower()
    if fmt == "ics":
        export_ics(occurrences, out_path)
    elif fmt == "csv":
        export_csv(occurrences, out_path)
    elif fmt == "json":
        export_json(occurrences, out_path)
    else:
        raise ValueError(f"Unsupported format: {fmt}. Use ics, csv, or json.")

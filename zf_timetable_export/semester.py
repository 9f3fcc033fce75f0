"""
Semester configuration: week-1 Monday, number of weeks and the clock times
of each class period (section).
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import date, time, timedelta
from pathlib import Path
from typing import Dict, Iterable, Sequence, Tuple

from .models import SectionTime

DEFAULT_TOTAL_WEEKS = 20

# Gap and length used when the table reports more periods than configured
_NEW_SECTION_GAP_MINUTES = 10
_NEW_SECTION_MINUTES = 45
_LATEST_MINUTE = 23 * 60 + 59


def parse_clock(text: str) -> time:
    """Parse 'HH:MM' (e.g. '08:00', '8:00')."""
    m = re.match(r"^\s*(\d{1,2}):(\d{2})\s*$", text or "")
    if not m:
        raise ValueError(f"Invalid clock time: {text!r} (expected HH:MM)")
    return time(int(m.group(1)), int(m.group(2)))


def _section(n: int, start: str, end: str) -> SectionTime:
    return SectionTime(n, parse_clock(start), parse_clock(end))


DEFAULT_SECTION_TIMES: Tuple[SectionTime, ...] = (
    _section(1, "08:00", "08:45"),
    _section(2, "08:50", "09:35"),
    _section(3, "09:50", "10:35"),
    _section(4, "10:40", "11:25"),
    _section(5, "11:30", "12:15"),
    _section(6, "13:30", "14:15"),
    _section(7, "14:20", "15:05"),
    _section(8, "15:20", "16:05"),
    _section(9, "16:10", "16:55"),
    _section(10, "18:30", "19:15"),
    _section(11, "19:20", "20:05"),
    _section(12, "20:10", "20:55"),
)


def monday_of_week(d: date) -> date:
    return d - timedelta(days=d.weekday())


def _add_minutes(t: time, minutes: int) -> time:
    total = min(t.hour * 60 + t.minute + minutes, _LATEST_MINUTE)
    return time(total // 60, total % 60)


def resize_section_times(
    times: Sequence[SectionTime], count: int
) -> Tuple[SectionTime, ...]:
    """
    Fit the section table to ``count`` periods (the table's totalSections).

    Extra periods start 10 minutes after the previous one ends and last
    45 minutes; surplus periods are dropped. Sections are renumbered 1..count.
    A non-positive count leaves the table as it is.
    """
    if count <= 0:
        return tuple(times)
    resized = [SectionTime(i, s.start, s.end) for i, s in enumerate(times[:count], start=1)]
    while len(resized) < count:
        last_end = resized[-1].end if resized else time(8, 0)
        start = _add_minutes(last_end, _NEW_SECTION_GAP_MINUTES)
        end = _add_minutes(start, _NEW_SECTION_MINUTES)
        resized.append(SectionTime(len(resized) + 1, start, end))
    return tuple(resized)


@dataclass(frozen=True)
class SemesterContext:
    """
    Everything the expander needs about the active semester.

    start_date is the Monday of week 1.
    """

    start_date: date
    total_weeks: int = DEFAULT_TOTAL_WEEKS
    section_times: Tuple[SectionTime, ...] = DEFAULT_SECTION_TIMES
    name: str = ""

    def __post_init__(self) -> None:
        if self.total_weeks < 1:
            raise ValueError(f"total_weeks must be >= 1, got {self.total_weeks}")

    @property
    def section_table(self) -> Dict[int, Tuple[time, time]]:
        return {s.section: (s.start, s.end) for s in self.section_times}

    def date_for(self, week: int, day_of_week: int) -> date:
        """Date of ``day_of_week`` (1=Mon..7=Sun) in teaching week ``week``."""
        return self.start_date + timedelta(days=(week - 1) * 7 + (day_of_week - 1))

    def week_of(self, d: date) -> int:
        """Unclamped teaching week containing ``d`` (<= 0 before the semester)."""
        return (d - self.start_date).days // 7 + 1

    def with_sections(self, count: int) -> "SemesterContext":
        """Copy of this context with the section table resized to ``count``."""
        return SemesterContext(
            start_date=self.start_date,
            total_weeks=self.total_weeks,
            section_times=resize_section_times(self.section_times, count),
            name=self.name,
        )


def _config_int(value, what: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {what}: {value!r} (expected an integer)") from None


def _section_times_from_list(items: Iterable[dict]) -> Tuple[SectionTime, ...]:
    times = []
    for i, item in enumerate(items, start=1):
        if not isinstance(item, dict):
            raise ValueError(f"section_times[{i - 1}] must be an object")
        times.append(
            SectionTime(
                _config_int(item.get("section", i), "section"),
                parse_clock(str(item.get("start", ""))),
                parse_clock(str(item.get("end", ""))),
            )
        )
    return tuple(sorted(times, key=lambda s: s.section))


def semester_from_dict(data: dict) -> SemesterContext:
    """Build a SemesterContext from a parsed semester config object."""
    if not isinstance(data, dict):
        raise ValueError("Semester config must be a JSON object.")
    start_text = data.get("start_date")
    if not start_text:
        raise ValueError("Semester config is missing start_date (YYYY-MM-DD).")
    try:
        start = date.fromisoformat(str(start_text))
    except ValueError:
        raise ValueError(f"Invalid start_date: {start_text!r} (expected YYYY-MM-DD)") from None

    section_items = data.get("section_times")
    section_times = (
        _section_times_from_list(section_items) if section_items else DEFAULT_SECTION_TIMES
    )
    return SemesterContext(
        start_date=start,
        total_weeks=_config_int(data.get("total_weeks", DEFAULT_TOTAL_WEEKS), "total_weeks"),
        section_times=section_times,
        name=str(data.get("name", "")),
    )


def load_semester(path: str | Path) -> SemesterContext:
    """Load a semester config JSON file."""
    p = Path(path)
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Semester config {p} is not valid JSON: {e}") from e
    return semester_from_dict(data)


def semester_to_dict(semester: SemesterContext) -> dict:
    return {
        "name": semester.name,
        "start_date": semester.start_date.isoformat(),
        "total_weeks": semester.total_weeks,
        "section_times": [
            {
                "section": s.section,
                "start": s.start.strftime("%H:%M"),
                "end": s.end.strftime("%H:%M"),
            }
            for s in semester.section_times
        ],
    }

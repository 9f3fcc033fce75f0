"""
Expand recurring sessions into dated occurrences.

Every consumer (week grid, "today" list, conflict check, exporters) goes
through ``occurrences_for`` and ``current_week`` so they agree on which
dates a session meets.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import FrozenSet, Iterable, Iterator, List, Optional

from .models import CanonicalSession, Occurrence
from .semester import SemesterContext

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeekFilter:
    """Restricts expansion to a set of weeks and/or a date window (inclusive)."""

    weeks: Optional[FrozenSet[int]] = None
    first_date: Optional[date] = None
    last_date: Optional[date] = None

    @classmethod
    def all(cls) -> "WeekFilter":
        return cls()

    @classmethod
    def only(cls, week: int) -> "WeekFilter":
        return cls(weeks=frozenset({week}))

    @classmethod
    def of_weeks(cls, weeks: Iterable[int]) -> "WeekFilter":
        return cls(weeks=frozenset(weeks))

    @classmethod
    def between(cls, first_date: date | None, last_date: date | None) -> "WeekFilter":
        return cls(first_date=first_date, last_date=last_date)

    def allows_week(self, week: int) -> bool:
        return self.weeks is None or week in self.weeks

    def allows_date(self, d: date) -> bool:
        if self.first_date is not None and d < self.first_date:
            return False
        if self.last_date is not None and d > self.last_date:
            return False
        return True


def current_week(today: date, semester_start: date, total_weeks: int) -> int:
    """Teaching week containing ``today``, clamped into [1, total_weeks]."""
    week = (today - semester_start).days // 7 + 1
    return max(1, min(week, total_weeks))


def occurrences_for(
    session: CanonicalSession,
    semester: SemesterContext,
    week_filter: WeekFilter | None = None,
) -> Iterator[Occurrence]:
    """
    Yield the session's occurrences in ascending week order.

    The start time comes from the session's first section and the end time
    from its last; if either section is missing from the semester's table
    nothing is yielded.
    """
    table = semester.section_table
    start_slot = table.get(session.start_section)
    end_slot = table.get(session.end_section)
    if start_slot is None or end_slot is None:
        log.debug(
            "No clock times for sections %d-%d of %s; skipping",
            session.start_section, session.end_section, session.course_name,
        )
        return

    week_filter = week_filter or WeekFilter.all()
    for week in session.week_range.weeks():
        if not week_filter.allows_week(week):
            continue
        try:
            day = semester.date_for(week, session.day_of_week)
        except OverflowError:
            log.debug("Week %d of %s is past the last representable date", week, session.course_name)
            return
        if not week_filter.allows_date(day):
            continue
        yield Occurrence(
            date=day,
            start=start_slot[0],
            end=end_slot[1],
            session=session,
            week=week,
        )


def expand_all(
    sessions: Iterable[CanonicalSession],
    semester: SemesterContext,
    week_filter: WeekFilter | None = None,
) -> List[Occurrence]:
    """Occurrences of all sessions, ordered by date, start time, course name."""
    occurrences = [
        occ for s in sessions for occ in occurrences_for(s, semester, week_filter)
    ]
    occurrences.sort(key=lambda o: (o.date, o.start, o.session.course_name))
    return occurrences


def sessions_in_week(
    sessions: Iterable[CanonicalSession], week: int
) -> List[CanonicalSession]:
    """Sessions meeting in teaching week ``week`` (the grid view's filter)."""
    return [s for s in sessions if s.week_range.includes(week)]


def sessions_on(
    sessions: Iterable[CanonicalSession], semester: SemesterContext, day: date
) -> List[CanonicalSession]:
    """Sessions meeting on ``day``, ordered by start section."""
    week = current_week(day, semester.start_date, semester.total_weeks)
    day_of_week = day.isoweekday()
    todays = [
        s for s in sessions_in_week(sessions, week) if s.day_of_week == day_of_week
    ]
    return sorted(todays, key=lambda s: (s.start_section, s.end_section))


@dataclass(frozen=True)
class Conflict:
    date: date
    first: Occurrence
    second: Occurrence


def find_conflicts(
    sessions: Iterable[CanonicalSession],
    semester: SemesterContext,
    week_filter: WeekFilter | None = None,
) -> List[Conflict]:
    """Pairs of occurrences on the same date whose clock times overlap."""
    conflicts: List[Conflict] = []
    by_date: dict = {}
    for occ in expand_all(sessions, semester, week_filter):
        by_date.setdefault(occ.date, []).append(occ)

    for day, occs in by_date.items():
        # occs is sorted by start time
        for i, first in enumerate(occs):
            for second in occs[i + 1:]:
                if second.start >= first.end:
                    break
                conflicts.append(Conflict(day, first, second))
    return conflicts

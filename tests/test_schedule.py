"""Tests for schedule.py – occurrence expansion and week math."""
from datetime import date, time, timedelta

import pytest

from zf_timetable_export.models import CanonicalSession, SectionTime
from zf_timetable_export.schedule import (
    WeekFilter,
    current_week,
    expand_all,
    find_conflicts,
    occurrences_for,
    sessions_in_week,
    sessions_on,
)
from zf_timetable_export.semester import SemesterContext
from zf_timetable_export.weeks import Parity, WeekRange

START = date(2026, 2, 16)  # Monday
SEMESTER = SemesterContext(start_date=START, total_weeks=20)


def _session(day=1, start=1, end=2, weeks=WeekRange(1, 16), name="高等数学"):
    return CanonicalSession(name, "张三", "理四-201", day, start, end, weeks)


class TestOccurrencesFor:
    @pytest.mark.parametrize("day", range(1, 8))
    def test_even_parity_weeks(self, day):
        s = _session(day=day, weeks=WeekRange(5, 9, Parity.EVEN))
        assert [o.week for o in occurrences_for(s, SEMESTER)] == [6, 8]

    def test_odd_parity_weeks(self):
        s = _session(weeks=WeekRange(5, 9, Parity.ODD))
        assert [o.week for o in occurrences_for(s, SEMESTER)] == [5, 7, 9]

    @pytest.mark.parametrize("day", range(1, 8))
    def test_weekly_dates_are_seven_days_apart(self, day):
        s = _session(day=day, weeks=WeekRange(1, 16))
        dates = [o.date for o in occurrences_for(s, SEMESTER)]
        assert len(dates) == 16
        assert all(b - a == timedelta(days=7) for a, b in zip(dates, dates[1:]))

    def test_monday_is_day_one_and_sunday_day_seven(self):
        monday = next(occurrences_for(_session(day=1), SEMESTER))
        sunday = next(occurrences_for(_session(day=7), SEMESTER))
        assert monday.date == START
        assert sunday.date == START + timedelta(days=6)
        assert sunday.date.isoweekday() == 7

    def test_date_formula(self):
        s = _session(day=3, weeks=WeekRange(4, 4))
        (occ,) = occurrences_for(s, SEMESTER)
        assert occ.date == START + timedelta(days=3 * 7 + 2)

    def test_clock_times_span_first_to_last_section(self):
        (occ,) = occurrences_for(_session(start=3, end=5, weeks=WeekRange(1, 1)), SEMESTER)
        assert (occ.start, occ.end) == (time(9, 50), time(12, 15))
        assert occ.starts_at().isoformat() == "2026-02-16T09:50:00"

    def test_unknown_section_yields_nothing(self):
        assert list(occurrences_for(_session(start=12, end=13), SEMESTER)) == []
        short = SemesterContext(START, section_times=(SectionTime(1, time(8), time(8, 45)),))
        assert list(occurrences_for(_session(start=1, end=2), short)) == []

    def test_restartable_and_deterministic(self):
        s = _session(weeks=WeekRange(2, 12, Parity.EVEN))
        first = list(occurrences_for(s, SEMESTER))
        second = list(occurrences_for(s, SEMESTER))
        assert first == second
        assert first

    def test_only_one_week(self):
        occs = list(occurrences_for(_session(), SEMESTER, WeekFilter.only(7)))
        assert [o.week for o in occs] == [7]

    def test_week_outside_range(self):
        assert list(occurrences_for(_session(weeks=WeekRange(1, 4)), SEMESTER, WeekFilter.only(7))) == []

    def test_date_window(self):
        window = WeekFilter.between(START + timedelta(days=14), START + timedelta(days=27))
        assert [o.week for o in occurrences_for(_session(), SEMESTER, window)] == [3, 4]

    def test_open_ended_date_window(self):
        window = WeekFilter.between(START + timedelta(days=7 * 14), None)
        assert [o.week for o in occurrences_for(_session(), SEMESTER, window)] == [15, 16]

    def test_not_clamped_to_total_weeks(self):
        semester = SemesterContext(START, total_weeks=10)
        assert len(list(occurrences_for(_session(weeks=WeekRange(1, 16)), semester))) == 16

    def test_stops_at_last_representable_date(self):
        semester = SemesterContext(date(9999, 12, 6), total_weeks=20)
        occurrences = list(occurrences_for(_session(weeks=WeekRange(1, 8)), semester))
        assert [o.week for o in occurrences] == [1, 2, 3, 4]
        assert occurrences[-1].date == date(9999, 12, 27)

    def test_of_weeks_filter(self):
        window = WeekFilter.of_weeks([2, 4, 17])
        assert window.weeks == frozenset({2, 4, 17})
        assert [o.week for o in occurrences_for(_session(), SEMESTER, window)] == [2, 4]


class TestCurrentWeek:
    def test_inside_semester(self):
        assert current_week(START + timedelta(days=10), START, 20) == 2

    def test_first_day(self):
        assert current_week(START, START, 20) == 1

    def test_sunday_of_week_one(self):
        assert current_week(START + timedelta(days=6), START, 20) == 1

    def test_before_semester_clamps_to_one(self):
        assert current_week(START - timedelta(days=3), START, 20) == 1

    def test_after_semester_clamps_to_total(self):
        assert current_week(START + timedelta(days=400), START, 20) == 20


class TestFilters:
    def test_sessions_in_week(self):
        a = _session(name="A", weeks=WeekRange(1, 8))
        b = _session(name="B", weeks=WeekRange(2, 16, Parity.EVEN))
        c = _session(name="C", weeks=WeekRange(9, 16))
        assert sessions_in_week([a, b, c], 3) == [a]
        assert sessions_in_week([a, b, c], 4) == [a, b]
        assert sessions_in_week([a, b, c], 10) == [b, c]

    def test_sessions_on_day(self):
        late = _session(day=2, start=6, end=7, name="late")
        early = _session(day=2, start=1, end=2, name="early")
        other_day = _session(day=3, name="other")
        odd_only = _session(day=2, start=3, end=4, weeks=WeekRange(1, 15, Parity.ODD), name="odd")
        tuesday_week_2 = START + timedelta(days=8)
        assert sessions_on([late, early, other_day, odd_only], SEMESTER, tuesday_week_2) == [early, late]


class TestExpandAll:
    def test_sorted_by_date_then_time(self):
        wed = _session(day=3, start=1, end=2, weeks=WeekRange(1, 2), name="B")
        mon_late = _session(day=1, start=6, end=7, weeks=WeekRange(1, 2), name="A")
        mon_early = _session(day=1, start=1, end=2, weeks=WeekRange(1, 2), name="C")
        occs = expand_all([wed, mon_late, mon_early], SEMESTER)
        assert [(o.week, o.session.course_name) for o in occs] == [
            (1, "C"), (1, "A"), (1, "B"), (2, "C"), (2, "A"), (2, "B"),
        ]


class TestFindConflicts:
    def test_overlapping_sessions(self):
        a = _session(day=2, start=1, end=2, weeks=WeekRange(1, 4), name="A")
        b = _session(day=2, start=2, end=3, weeks=WeekRange(3, 6), name="B")
        conflicts = find_conflicts([a, b], SEMESTER)
        assert [c.date for c in conflicts] == [START + timedelta(days=15), START + timedelta(days=22)]
        assert {c.first.session.course_name for c in conflicts} == {"A"}
        assert {c.second.session.course_name for c in conflicts} == {"B"}

    def test_parity_keeps_sessions_apart(self):
        a = _session(day=2, weeks=WeekRange(1, 16, Parity.ODD), name="A")
        b = _session(day=2, weeks=WeekRange(1, 16, Parity.EVEN), name="B")
        assert find_conflicts([a, b], SEMESTER) == []

    def test_back_to_back_is_not_a_conflict(self):
        a = _session(day=2, start=1, end=2, name="A")
        b = _session(day=2, start=3, end=4, name="B")
        assert find_conflicts([a, b], SEMESTER) == []

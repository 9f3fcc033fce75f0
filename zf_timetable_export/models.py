"""Data model shared by the parsers, the expander and the exporters."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Dict, Iterable, List

from .weeks import WeekRange


@dataclass(frozen=True)
class RawSession:
    """One unvalidated class row as a source parser found it."""

    course_name: str
    teacher: str
    classroom: str
    day_of_week: int
    start_section: int
    end_section: int
    week_range_text: str


@dataclass(frozen=True)
class CanonicalSession:
    """
    A recurring weekly class slot.

    day_of_week: 1=Monday ... 7=Sunday.
    Sections are 1-based, inclusive on both ends.
    """

    course_name: str
    teacher: str
    classroom: str
    day_of_week: int
    start_section: int
    end_section: int
    week_range: WeekRange

    def __post_init__(self) -> None:
        if not 1 <= self.day_of_week <= 7:
            raise ValueError(f"day_of_week must be 1-7 (Mon-Sun), got {self.day_of_week}")
        if self.start_section < 1:
            raise ValueError(f"start_section must be >= 1, got {self.start_section}")
        if self.end_section < self.start_section:
            raise ValueError(
                f"end_section {self.end_section} is before start_section {self.start_section}"
            )


@dataclass(frozen=True)
class SectionTime:
    section: int
    start: time
    end: time


@dataclass(frozen=True)
class Occurrence:
    """A concrete dated meeting of a session."""

    date: date
    start: time
    end: time
    session: CanonicalSession
    week: int

    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start)

    def ends_at(self) -> datetime:
        return datetime.combine(self.date, self.end)


@dataclass
class Course:
    name: str
    teacher: str = ""
    sessions: List[CanonicalSession] = field(default_factory=list)


def group_courses(sessions: Iterable[CanonicalSession]) -> List[Course]:
    """Group sessions by course name, keeping first-seen order."""
    by_name: Dict[str, Course] = {}
    for s in sessions:
        course = by_name.get(s.course_name)
        if course is None:
            course = by_name[s.course_name] = Course(s.course_name, s.teacher)
        course.sessions.append(s)
    return list(by_name.values())

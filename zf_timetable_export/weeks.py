"""
Parse the portal's free-text week expressions ("1-8周,10-15周", "3-15周(单)",
"2-16双周") into structured week ranges.

Parsing is best-effort: anything unreadable degrades to the whole semester,
every week (``DEFAULT_WEEK_RANGE``) rather than failing the import.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator, List

# Parity markers as they appear in the portal's week text
ODD_MARKER = "单"
EVEN_MARKER = "双"

_NON_RANGE_CHARS = re.compile(r"[^0-9-]")
# Longer digit runs are garbage, not week numbers
MAX_WEEK_DIGITS = 3


class Parity(IntEnum):
    """Week parity; values match the portal's weekType codes."""

    ALL = 0
    ODD = 1
    EVEN = 2

    def matches(self, week: int) -> bool:
        if self is Parity.ODD:
            return week % 2 == 1
        if self is Parity.EVEN:
            return week % 2 == 0
        return True


@dataclass(frozen=True)
class WeekRange:
    start: int
    end: int
    parity: Parity = Parity.ALL

    def __post_init__(self) -> None:
        if self.start < 1:
            raise ValueError(f"Week range must start at week 1 or later, got {self.start}")
        if self.end < self.start:
            raise ValueError(f"Week range end {self.end} is before start {self.start}")

    def includes(self, week: int) -> bool:
        return self.start <= week <= self.end and self.parity.matches(week)

    def weeks(self) -> Iterator[int]:
        """Week numbers covered by this range, ascending."""
        for week in range(self.start, self.end + 1):
            if self.parity.matches(week):
                yield week


# Used whenever the week text yields nothing; callers rely on it to
# import rows with empty or garbled week text instead of dropping them.
DEFAULT_WEEK_RANGE = WeekRange(1, 20, Parity.ALL)


def _parse_segment(segment: str) -> WeekRange | None:
    if ODD_MARKER in segment:
        parity = Parity.ODD
    elif EVEN_MARKER in segment:
        parity = Parity.EVEN
    else:
        parity = Parity.ALL

    pieces = [p for p in _NON_RANGE_CHARS.sub("", segment).split("-") if p]
    if not pieces or any(len(p) > MAX_WEEK_DIGITS for p in pieces):
        return None
    numbers = [int(p) for p in pieces]
    if len(numbers) >= 2:
        first, second = numbers[0], numbers[1]
    else:
        first = second = numbers[0]
    start, end = min(first, second), max(first, second)
    if start < 1:
        return None
    return WeekRange(start, end, parity)


def parse_week_ranges(text: str | None) -> List[WeekRange]:
    """
    Parse week text into one WeekRange per comma-separated segment.

    >>> parse_week_ranges("1-8周,10-15周")
    [WeekRange(start=1, end=8, parity=<Parity.ALL: 0>), WeekRange(start=10, end=15, parity=<Parity.ALL: 0>)]

    A parity marker only applies to the segment containing it. Never raises;
    returns ``[DEFAULT_WEEK_RANGE]`` when no segment carries a week number.
    """
    ranges: List[WeekRange] = []
    for segment in (text or "").split(","):
        parsed = _parse_segment(segment.strip())
        if parsed is not None:
            ranges.append(parsed)
    return ranges or [DEFAULT_WEEK_RANGE]


def format_week_ranges(ranges: Iterable[WeekRange]) -> str:
    """Render ranges back to portal-style text, e.g. '1-8周,9-15周(单)'."""
    parts = []
    for r in ranges:
        text = f"{r.start}周" if r.start == r.end else f"{r.start}-{r.end}周"
        if r.parity is Parity.ODD:
            text += f"({ODD_MARKER})"
        elif r.parity is Parity.EVEN:
            text += f"({EVEN_MARKER})"
        parts.append(text)
    return ",".join(parts)

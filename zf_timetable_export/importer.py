"""
Turn source payloads into canonical sessions.

``import_timetable`` walks an ordered list of (strategy, payload) attempts
and keeps the first one that yields usable sessions. Payloads can be given
as zero-argument callables so expensive sources (a network request) are only
fetched when every earlier attempt came up empty.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Tuple, Union

from .api_json import StructuredJSONStrategy
from .kb_html import HTMLTableStrategy
from .models import CanonicalSession, RawSession
from .script_json import ScriptJSONStrategy
from .sources import ExtractionStrategy, Payload
from .weeks import parse_week_ranges

log = logging.getLogger(__name__)

PayloadSource = Union[Payload, Callable[[], Optional[Payload]], None]
Attempt = Tuple[ExtractionStrategy, PayloadSource]

# In-page script first, then the page HTML, then the API request
DEFAULT_STRATEGY_ORDER: Tuple[ExtractionStrategy, ...] = (
    ScriptJSONStrategy(),
    HTMLTableStrategy(),
    StructuredJSONStrategy(),
)


def _is_valid(raw: RawSession) -> bool:
    return (
        bool(raw.course_name and raw.course_name.strip())
        and 1 <= raw.day_of_week <= 7
        and raw.start_section >= 1
        and raw.end_section >= raw.start_section
    )


def normalize_sessions(raws: Iterable[RawSession]) -> List[CanonicalSession]:
    """
    Validate raw rows and split each into one session per week range.

    "1-8周,10-16周" on a row gives two sessions sharing name, teacher, room,
    day and sections. Invalid rows are dropped.
    """
    sessions: List[CanonicalSession] = []
    for raw in raws:
        if not _is_valid(raw):
            log.debug("Dropping invalid row: %r", raw)
            continue
        for week_range in parse_week_ranges(raw.week_range_text):
            sessions.append(CanonicalSession(
                course_name=raw.course_name.strip(),
                teacher=raw.teacher.strip(),
                classroom=raw.classroom.strip(),
                day_of_week=raw.day_of_week,
                start_section=raw.start_section,
                end_section=raw.end_section,
                week_range=week_range,
            ))
    return sessions


@dataclass(frozen=True)
class ImportResult:
    sessions: List[CanonicalSession] = field(default_factory=list)
    total_sections: int = 0
    # Name of the strategy that produced the sessions
    strategy: Optional[str] = None

    @property
    def found(self) -> bool:
        return bool(self.sessions)


def import_timetable(attempts: Iterable[Attempt]) -> ImportResult:
    """
    Try each (strategy, payload) in order; return the first non-empty result.

    A payload of None is skipped. A callable payload is invoked only when its
    turn comes. Returns an empty ImportResult if every attempt is exhausted.
    """
    for strategy, source in attempts:
        payload = source() if callable(source) else source
        if payload is None:
            log.debug("No payload for %s; skipping", strategy.name)
            continue
        table = strategy.extract_table(payload)
        sessions = normalize_sessions(table.sessions)
        if sessions:
            log.info(
                "Imported %d session(s) from %d row(s) via %s",
                len(sessions), len(table.sessions), strategy.name,
            )
            return ImportResult(sessions, table.total_sections, strategy.name)
        log.info("%s found no usable rows; trying next source", strategy.name)
    return ImportResult()


def default_attempts(
    script_json: PayloadSource = None,
    html: PayloadSource = None,
    api_json: PayloadSource = None,
) -> List[Attempt]:
    """Attempts in DEFAULT_STRATEGY_ORDER for the payloads that were supplied."""
    script_strategy, html_strategy, api_strategy = DEFAULT_STRATEGY_ORDER
    return [
        (script_strategy, script_json),
        (html_strategy, html),
        (api_strategy, api_json),
    ]

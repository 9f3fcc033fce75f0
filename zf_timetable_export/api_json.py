"""
Parse the portal's timetable API response (kbcx/xskbcx_cxXsgrkb.html).

Shape: {"kbList": [{"kcmc": course, "xqj": "3", "jcs": "1-2",
"zcd": "1-8周,10-16周", "xm": teacher, "cdmc": room, ...}, ...], ...}
"""
from __future__ import annotations

import logging
from typing import List, Tuple

from .models import RawSession
from .sources import ExtractionStrategy, Payload, as_int, as_text, load_json

log = logging.getLogger(__name__)


def _parse_sections(text: str) -> Tuple[int, int] | None:
    """'1-4' -> (1, 4), '3' -> (3, 3), '' -> (1, 1); None if unreadable."""
    tokens = [t.strip() for t in text.split("-") if t.strip()]
    if not tokens:
        return 1, 1
    try:
        start = int(tokens[0])
        end = int(tokens[-1])
    except ValueError:
        return None
    return start, end


class StructuredJSONStrategy(ExtractionStrategy):
    """Records from the authenticated timetable API."""

    name = "api-json"

    def extract(self, payload: Payload) -> List[RawSession]:
        data = load_json(payload)
        if not isinstance(data, dict):
            return []
        kb_list = data.get("kbList")
        if not isinstance(kb_list, list):
            return []

        records: List[RawSession] = []
        for item in kb_list:
            if not isinstance(item, dict):
                continue
            name = item.get("kcmc")
            day = as_int(item.get("xqj"))
            if not isinstance(name, str) or day is None:
                log.debug("Skipping kbList row without name/weekday: %r", item)
                continue
            sections = _parse_sections(as_text(item.get("jcs")))
            if sections is None:
                log.debug("Skipping kbList row with bad jcs %r", item.get("jcs"))
                continue
            records.append(RawSession(
                course_name=name,
                teacher=as_text(item.get("xm")),
                classroom=as_text(item.get("cdmc")),
                day_of_week=day,
                start_section=sections[0],
                end_section=sections[1],
                week_range_text=as_text(item.get("zcd")),
            ))
        return records

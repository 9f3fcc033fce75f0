"""
Parse the JSON returned by the in-page extraction script
(see ``portal_fetch.EXTRACTION_JS``).

New shape: {"courses": [...], "totalSections": 12}; older builds of the
script returned the bare list. Each course looks like
{"name", "teacher", "classroom", "weeks", "dayOfWeek", "startSection",
"endSection"} with integer day/sections.
"""
from __future__ import annotations

import logging
from typing import Any, List

from .models import RawSession
from .sources import ExtractedTable, ExtractionStrategy, Payload, as_text, load_json

log = logging.getLogger(__name__)


def _json_int(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


class ScriptJSONStrategy(ExtractionStrategy):
    """Records produced by the DOM-scraping script."""

    name = "script-json"

    def extract(self, payload: Payload) -> List[RawSession]:
        return self.extract_table(payload).sessions

    def extract_table(self, payload: Payload) -> ExtractedTable:
        data = load_json(payload)
        total_sections = 0
        if isinstance(data, dict):
            items = data.get("courses")
            total_sections = _json_int(data.get("totalSections")) or 0
        elif isinstance(data, list):
            items = data
        else:
            return ExtractedTable()
        if not isinstance(items, list):
            items = []

        records: List[RawSession] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            name = item.get("name")
            day = _json_int(item.get("dayOfWeek"))
            start = _json_int(item.get("startSection"))
            end = _json_int(item.get("endSection"))
            if not isinstance(name, str) or day is None or start is None or end is None:
                log.debug("Skipping script row missing name/day/sections: %r", item)
                continue
            records.append(RawSession(
                course_name=name,
                teacher=as_text(item.get("teacher")),
                classroom=as_text(item.get("classroom")),
                day_of_week=day,
                start_section=start,
                end_section=end,
                week_range_text=as_text(item.get("weeks")),
            ))
        return ExtractedTable(records, max(total_sections, 0))

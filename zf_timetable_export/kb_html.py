"""
Parse the ZhengFang timetable page HTML ("学生课表查询", kbcx) as a last resort
when neither JSON source is available.

Grid view (primary):
- table#kbgrid_table_0; course cells are <td class="td_wrap" id="{day}-{section}">
  (e.g. id="3-1" = Wednesday, period 1).
- Each course in a cell is a <div class="timetable_con"> containing:
    <span class="title"><font>算法设计</font></span>
    <p><span title="节/周">..</span><font>(1-2节)1-8周,10-15周</font></p>
    <p><span title="上课地点">..</span><font>浙大城市学院 理四-201</font></p>
    <p><span title="教师 ">..</span><font>张三</font></p>

List view (fallback, same page, second tab):
- <tbody id="xq_{day}"> rows with <td id="jc_{day}-{start}-{end}"> and a
  timetable_con whose text is labelled "周数：", "上课地点：", "教师：".

Everything that depends on this markup lives in this module.
"""
from __future__ import annotations

import logging
import re
from typing import List

from bs4 import BeautifulSoup, Tag  # type: ignore[import]

from .models import RawSession
from .sources import ExtractionStrategy, Payload, decode_payload

log = logging.getLogger(__name__)

KB_TABLE_ID = "kbgrid_table_0"

# Campus name the portal prepends to classrooms
CAMPUS_PREFIXES = ("浙大城市学院",)

_CELL_ID = re.compile(r"^(\d{1,3})-(\d{1,3})$")
_LIST_DAY_ID = re.compile(r"^xq_(\d{1,3})$")
_LIST_SECTION_ID = re.compile(r"^jc_(\d{1,3})-(\d{1,3})-(\d{1,3})$")
_SECTION_SPAN = re.compile(r"\(\s*(\d{1,3})\s*-\s*(\d{1,3})\s*节\s*\)")

_LIST_LABELS = ("周数", "校区", "上课地点", "教师", "教学班", "教学班组成", "考核方式",
                "选课备注", "课程学时组成", "周学时", "总学时", "学分")


def _strip_campus(room: str) -> str:
    room = room.strip()
    for prefix in CAMPUS_PREFIXES:
        if room.startswith(prefix):
            room = room[len(prefix):].strip()
    return room


def _course_name(block: Tag) -> str:
    title = block.find(class_="title")
    if title is None:
        return ""
    font = title.find("font")
    return (font or title).get_text(strip=True)


def _tagged_text(block: Tag, title) -> str | None:
    """Text of the paragraph holding the element whose title attribute matches."""
    marker = block.find(attrs={"title": title})
    if marker is None:
        return None
    holder = marker.find_parent("p") or marker.parent
    return holder.get_text(" ", strip=True)


def _course_blocks(cell: Tag) -> List[Tag]:
    blocks = cell.find_all(class_="timetable_con")
    if blocks:
        return blocks
    return [cell] if cell.find(class_="title") else []


# ──────────────────────────────────────────────────────────────────
#  Grid view
# ──────────────────────────────────────────────────────────────────

def _parse_grid(soup: BeautifulSoup) -> List[RawSession]:
    scope = soup.find("table", id=KB_TABLE_ID) or soup
    records: List[RawSession] = []

    for cell in scope.find_all("td", id=_CELL_ID):
        m = _CELL_ID.match(cell.get("id", ""))
        day, cell_section = int(m.group(1)), int(m.group(2))

        blocks = _course_blocks(cell)
        if not blocks:
            continue

        for block in blocks:
            name = _course_name(block)
            if not name:
                log.debug("Skipping block without course name in cell %s", cell.get("id"))
                continue

            start, end, weeks = cell_section, cell_section, ""
            section_week = _tagged_text(block, "节/周")
            if section_week:
                sm = _SECTION_SPAN.search(section_week)
                if sm:
                    start, end = int(sm.group(1)), int(sm.group(2))
                weeks = _SECTION_SPAN.sub("", section_week, count=1).strip()

            room = _tagged_text(block, "上课地点") or ""
            teacher = _tagged_text(block, re.compile("教师")) or ""

            records.append(RawSession(
                course_name=name,
                teacher=teacher.strip(),
                classroom=_strip_campus(room),
                day_of_week=day,
                start_section=start,
                end_section=end,
                week_range_text=weeks,
            ))

    return records


# ──────────────────────────────────────────────────────────────────
#  List view
# ──────────────────────────────────────────────────────────────────

def _labelled(text: str, label: str) -> str:
    """Value following 'label：' up to the next known label."""
    others = "|".join(re.escape(lb) for lb in _LIST_LABELS)
    m = re.search(
        re.escape(label) + r"\s*[：:]\s*(.*?)\s*(?=(?:" + others + r")\s*[：:]|$)",
        text,
        re.S,
    )
    return m.group(1).strip() if m else ""


def _parse_list(soup: BeautifulSoup) -> List[RawSession]:
    records: List[RawSession] = []

    for tbody in soup.find_all("tbody", id=_LIST_DAY_ID):
        day = int(_LIST_DAY_ID.match(tbody.get("id", "")).group(1))
        for row in tbody.find_all("tr"):
            jc = row.find("td", id=_LIST_SECTION_ID)
            if jc is None:
                continue
            m = _LIST_SECTION_ID.match(jc.get("id", ""))
            start, end = int(m.group(2)), int(m.group(3))

            block = row.find(class_="timetable_con")
            if block is None:
                continue
            name = _course_name(block)
            if not name:
                log.debug("Skipping list row without course name (%s)", jc.get("id"))
                continue

            text = block.get_text(" ", strip=True)
            records.append(RawSession(
                course_name=name,
                teacher=_labelled(text, "教师"),
                classroom=_strip_campus(_labelled(text, "上课地点")),
                day_of_week=day,
                start_section=start,
                end_section=end,
                week_range_text=_labelled(text, "周数"),
            ))

    return records


class HTMLTableStrategy(ExtractionStrategy):
    """Course cells scraped from the timetable page markup."""

    name = "html"

    def extract(self, payload: Payload) -> List[RawSession]:
        html = decode_payload(payload)
        if not html or not html.strip():
            return []
        soup = BeautifulSoup(html, "html.parser")

        # Try layouts in order of reliability
        records = _parse_grid(soup)
        if not records:
            records = _parse_list(soup)
        return records

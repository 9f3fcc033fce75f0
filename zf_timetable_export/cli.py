"""
Command-line interface: import a ZhengFang timetable and export it to file.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import List, Optional

from . import __version__
from .export import ExportError, export
from .importer import ImportResult, default_attempts, import_timetable
from .models import CanonicalSession, group_courses
from .schedule import WeekFilter, current_week, expand_all, find_conflicts
from .semester import (
    DEFAULT_TOTAL_WEEKS,
    SemesterContext,
    load_semester,
    monday_of_week,
    semester_to_dict,
)
from .weeks import format_week_ranges

_DAY_NAMES = ["周一", "周二", "周三", "周四", "周五", "周六", "周日"]


def _read_bytes(path: Optional[str]) -> Optional[bytes]:
    if not path:
        return None
    p = Path(path)
    if not p.exists():
        print(f"Error: file not found: {p}", file=sys.stderr)
        sys.exit(1)
    return p.read_bytes()


def _parse_date(text: str) -> date:
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date format: '{text}'. Expected YYYY-MM-DD."
        ) from None


def _load_semester(args) -> SemesterContext:
    if args.semester_config:
        semester = load_semester(args.semester_config)
        if args.total_weeks:
            semester = SemesterContext(
                semester.start_date, args.total_weeks, semester.section_times, semester.name
            )
        return semester
    if not args.semester_start:
        raise ValueError(
            "Provide --semester-start YYYY-MM-DD (Monday of week 1) or --semester-config."
        )
    start = args.semester_start
    if start.weekday() != 0:
        monday = monday_of_week(start)
        print(f"Note: {start} is not a Monday; using {monday} as the start of week 1.")
        start = monday
    return SemesterContext(start, args.total_weeks or DEFAULT_TOTAL_WEEKS)


def _import(args) -> ImportResult:
    if args.fetch:
        from .portal_fetch import PortalSession

        print("Opening the portal in Chrome...")
        portal_session = PortalSession(url=args.portal_url) if args.portal_url else PortalSession()
        with portal_session as portal:
            portal.open()
            return import_timetable(default_attempts(
                script_json=portal.script_json,
                html=portal.page_html,
                api_json=portal.api_json,
            ))
    return import_timetable(default_attempts(
        script_json=_read_bytes(args.script_json),
        html=_read_bytes(args.html),
        api_json=_read_bytes(args.api_json),
    ))


def _print_sessions(sessions: List[CanonicalSession]) -> None:
    print("Course                   | Teacher    | Day  | Sections | Weeks          | Room")
    print("-" * 90)
    for course in group_courses(sessions):
        for s in course.sessions:
            print(
                f"{course.name[:24]:<24} | {s.teacher[:10]:<10} | {_DAY_NAMES[s.day_of_week - 1]:<4} | "
                f"{s.start_section:>2}-{s.end_section:<5} | {format_week_ranges([s.week_range]):<14} | "
                f"{s.classroom}"
            )


def _week_filter(args) -> WeekFilter:
    if args.week is not None:
        return WeekFilter.only(args.week)
    if args.date_from or args.date_to:
        return WeekFilter.between(args.date_from, args.date_to)
    return WeekFilter.all()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description=(
            "Export a ZhengFang (正方) portal timetable to ICS / CSV / JSON.\n"
            "Sources are tried in order: extraction-script JSON, page HTML, API JSON."
        ),
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug logging.")
    parser.add_argument(
        "-o",
        "--output",
        default="timetable",
        help="Output path (without extension). Default: timetable",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["ics", "csv", "json"],
        default="ics",
        help="Export format. Default: ics",
    )

    source = parser.add_argument_group("sources")
    source.add_argument(
        "--fetch",
        action="store_true",
        help="Open the portal in Chrome; log in and open the timetable page, then press Enter.",
    )
    source.add_argument("--portal-url", default=None, help="Portal URL for --fetch.")
    source.add_argument("--script-json", metavar="PATH", help="JSON saved from the extraction script.")
    source.add_argument("--html", metavar="PATH", help="Saved timetable page HTML.")
    source.add_argument("--api-json", metavar="PATH", help="Saved timetable API response (kbList JSON).")

    sem = parser.add_argument_group("semester")
    sem.add_argument(
        "--semester-start",
        metavar="YYYY-MM-DD",
        type=_parse_date,
        help="Monday of teaching week 1, e.g. 2026-02-16.",
    )
    sem.add_argument("--total-weeks", type=int, help=f"Weeks in the semester. Default: {DEFAULT_TOTAL_WEEKS}")
    sem.add_argument(
        "--semester-config",
        metavar="PATH",
        help="Semester JSON: start_date, total_weeks, section_times [{section, start, end}].",
    )
    sem.add_argument(
        "--write-semester",
        metavar="PATH",
        help="Write the effective semester config (section table resized to the timetable) to PATH.",
    )

    filt = parser.add_argument_group("filters")
    filt.add_argument("--week", type=int, help="Only export this teaching week.")
    filt.add_argument("--from", dest="date_from", type=_parse_date, metavar="YYYY-MM-DD")
    filt.add_argument("--to", dest="date_to", type=_parse_date, metavar="YYYY-MM-DD")

    action = parser.add_mutually_exclusive_group()
    action.add_argument("--list-sessions", action="store_true", help="List imported sessions then exit.")
    action.add_argument("--current-week", action="store_true", help="Print today's teaching week then exit.")
    action.add_argument("--conflicts", action="store_true", help="List overlapping classes then exit.")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        semester = _load_semester(args)
    except (ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.current_week:
        week = current_week(date.today(), semester.start_date, semester.total_weeks)
        print(f"第{week}周 (week {week} of {semester.total_weeks})")
        return 0

    if not (args.fetch or args.script_json or args.html or args.api_json):
        print(
            "No source specified. Use --fetch to read the timetable from the portal, "
            "or --script-json / --html / --api-json for saved files.",
            file=sys.stderr,
        )
        return 1

    try:
        result = _import(args)
    except RuntimeError as e:
        print(f"Error fetching timetable: {e}", file=sys.stderr)
        return 1

    if not result.found:
        print(
            "Error: no timetable data found. Make sure you are logged in and the "
            "timetable page for the right term is shown.",
            file=sys.stderr,
        )
        return 1
    print(f"Imported {len(result.sessions)} session(s) via {result.strategy}.")

    if result.total_sections:
        semester = semester.with_sections(result.total_sections)
    if args.write_semester:
        try:
            Path(args.write_semester).write_text(
                json.dumps(semester_to_dict(semester), indent=2, ensure_ascii=False),
                encoding="utf-8",
            )
        except OSError as e:
            print(f"Error: could not write {args.write_semester}: {e}", file=sys.stderr)
            return 1

    if args.list_sessions:
        _print_sessions(result.sessions)
        return 0

    week_filter = _week_filter(args)

    if args.conflicts:
        conflicts = find_conflicts(result.sessions, semester, week_filter)
        for c in conflicts:
            print(
                f"{c.date} {c.first.start:%H:%M}-{c.first.end:%H:%M} {c.first.session.course_name}"
                f"  ×  {c.second.start:%H:%M}-{c.second.end:%H:%M} {c.second.session.course_name}"
            )
        print(f"{len(conflicts)} conflict(s).")
        return 0

    occurrences = expand_all(result.sessions, semester, week_filter)
    ext = {"ics": ".ics", "csv": ".csv", "json": ".json"}[args.format]
    out_path = Path(args.output).with_suffix(ext) if Path(args.output).suffix else Path(args.output + ext)
    try:
        export(occurrences, out_path, args.format)
    except ExportError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"Exported {len(occurrences)} class meeting(s) to {out_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())

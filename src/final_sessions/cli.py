"""
Command line interface for room availability, the session calendar and exports.

Usage:
    final-sessions rooms --date 2025-01-15 --start 09:00 --end 10:00
    final-sessions rooms --date 2025-01-15 --start 09:00 --end 10:00 --exclude <session-id> --json
    final-sessions calendar --date 2025-01-15 [--room <room-id>]
    final-sessions export --study-program <id> [--format csv|json] [--out reports]

Connection settings come from SUPABASE_URL / SUPABASE_KEY (or .env).
"""

import argparse
import asyncio
import json
import sys
from datetime import date, time
from pathlib import Path

import structlog

from final_sessions.availability import RoomAvailabilityChecker
from final_sessions.calendar import group_sessions_by_room, room_time_range
from final_sessions.config import SchedulerConfig, get_config
from final_sessions.errors import DataSourceError, EmptyExportError
from final_sessions.export import (
    export_filename,
    schedule_rows,
    write_csv,
    write_json,
)
from final_sessions.logging import get_logger, setup_logging
from final_sessions.models import AvailabilityRequest, AvailabilityStatus, format_time
from final_sessions.repository import PostgrestRepository, ScheduleRepository
from final_sessions.weekdays import weekday_table

log = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1


def _date_arg(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def _time_arg(value: str) -> time:
    try:
        return time.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid time {value!r}, expected HH:MM")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="final-sessions",
        description="Thesis defense scheduling: room availability, calendar and exports",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    rooms = sub.add_parser("rooms", help="List rooms free for a slot")
    rooms.add_argument("--date", type=_date_arg, required=True)
    rooms.add_argument("--start", type=_time_arg, required=True)
    rooms.add_argument("--end", type=_time_arg, required=True)
    rooms.add_argument("--exclude", default=None, help="Session id being edited")
    rooms.add_argument("--json", action="store_true", help="Print the result as JSON")

    cal = sub.add_parser("calendar", help="Show sessions on a date, grouped by room")
    cal.add_argument("--date", type=_date_arg, required=True)
    cal.add_argument("--room", default=None, help="Only this room id")

    export = sub.add_parser("export", help="Export a study program's schedule")
    export.add_argument("--study-program", required=True, dest="study_program")
    export.add_argument("--format", choices=("csv", "json"), default="csv")
    export.add_argument("--out", type=Path, default=Path("reports"))

    return parser


async def run_rooms(
    args: argparse.Namespace, repository: ScheduleRepository, config: SchedulerConfig
) -> int:
    checker = RoomAvailabilityChecker(
        repository,
        weekday_names=weekday_table(config.weekday_locale),
        failure_policy=config.fetch_failure_policy,
    )
    result = await checker.check(
        AvailabilityRequest(
            date=args.date,
            start_time=args.start,
            end_time=args.end,
            exclude_session_id=args.exclude,
        )
    )

    if args.json:
        print(json.dumps(result.model_dump(mode="json"), indent=2, ensure_ascii=False))
    else:
        slot = f"{args.date.isoformat()} ({result.weekday}) {format_time(args.start)}-{format_time(args.end)}"
        if result.status == AvailabilityStatus.UNKNOWN:
            print(f"Could not verify availability for {slot}: {result.error}")
        else:
            if result.status == AvailabilityStatus.DEGRADED:
                print(f"WARNING: bookings could not be loaded ({result.error}); all rooms listed")
            print(f"Available rooms for {slot}: {len(result.rooms)}")
            for room in result.rooms:
                print(f"  {room.name} [{room.code}] ({room.id})")

    return EXIT_OK if result.submission_allowed else EXIT_FAILED


async def run_calendar(args: argparse.Namespace, repository: ScheduleRepository) -> int:
    sessions = await repository.list_sessions_for_date(args.date)
    if args.room:
        sessions = [s for s in sessions if s.room_id == args.room]

    if not sessions:
        print(f"No sessions on {args.date.isoformat()}")
        return EXIT_OK

    for group in group_sessions_by_room(sessions).values():
        print(f"{group['room']['name']}  {room_time_range(group['sessions'])}")
        for s in group["sessions"]:
            student = s.student.full_name if s.student else "-"
            print(f"  {format_time(s.start_time)}-{format_time(s.end_time)}  {student}  {s.title}")
    return EXIT_OK


async def run_export(args: argparse.Namespace, repository: ScheduleRepository) -> int:
    programs = await repository.list_study_programs()
    program = next((p for p in programs if p.id == args.study_program), None)
    if program is None:
        print(f"Study program {args.study_program!r} not found")
        return EXIT_FAILED

    sessions = await repository.list_sessions()
    try:
        rows = schedule_rows(sessions, program.id)
    except EmptyExportError as e:
        print(str(e))
        return EXIT_FAILED

    path = args.out / export_filename(program, args.format)
    if args.format == "json":
        write_json(rows, path, program)
    else:
        write_csv(rows, path)
    print(f"Exported {len(rows)} sessions for {program.name}: {path}")
    return EXIT_OK


async def dispatch(
    args: argparse.Namespace, repository: ScheduleRepository, config: SchedulerConfig
) -> int:
    if args.command == "rooms":
        return await run_rooms(args, repository, config)
    if args.command == "calendar":
        return await run_calendar(args, repository)
    return await run_export(args, repository)


def main(
    argv: list[str] | None = None, repository: ScheduleRepository | None = None
) -> int:
    args = build_parser().parse_args(argv)
    config = get_config()
    setup_logging(json_output=config.log_json, log_level=config.log_level)
    structlog.contextvars.bind_contextvars(command=args.command)

    if repository is None:
        try:
            repository = PostgrestRepository.from_config(config)
        except ValueError as e:
            print(str(e))
            return EXIT_FAILED

    try:
        return asyncio.run(dispatch(args, repository, config))
    except DataSourceError as e:
        log.error("command_failed", command=args.command, error=str(e))
        print(f"Data source error: {e}")
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())

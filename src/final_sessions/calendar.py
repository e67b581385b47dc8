"""Calendar queries over defense sessions: per date, per room, per month."""

from calendar import Calendar
from collections.abc import Iterable
from datetime import date

from final_sessions.models import FinalSession, format_time

UNKNOWN_ROOM = "unknown"

# Weeks start on Sunday in the session calendar
_MONTH_CALENDAR = Calendar(firstweekday=6)


def sessions_for_date(
    sessions: Iterable[FinalSession], day: date
) -> list[FinalSession]:
    return [s for s in sessions if s.date == day]


def sessions_for_room(
    sessions: Iterable[FinalSession], day: date, room_id: str
) -> list[FinalSession]:
    return [s for s in sessions if s.date == day and s.room_id == room_id]


def has_sessions_on_date(
    sessions: Iterable[FinalSession], day: date, room_id: str | None = None
) -> bool:
    return session_count_for_date(sessions, day, room_id) > 0


def session_count_for_date(
    sessions: Iterable[FinalSession], day: date, room_id: str | None = None
) -> int:
    if room_id:
        return len(sessions_for_room(sessions, day, room_id))
    return len(sessions_for_date(sessions, day))


def group_sessions_by_room(
    sessions: Iterable[FinalSession],
) -> dict[str, dict]:
    """Group sessions by room, each group sorted by start time.

    Returns:
        Dict keyed by room id ("unknown" for sessions without an embedded
        room) with {"room": {"id", "name"}, "sessions": [...]}.
    """
    grouped: dict[str, dict] = {}
    for session in sessions:
        key = session.room.id if session.room else UNKNOWN_ROOM
        name = session.room.name if session.room else "Unknown Room"
        group = grouped.setdefault(key, {"room": {"id": key, "name": name}, "sessions": []})
        group["sessions"].append(session)

    for group in grouped.values():
        group["sessions"].sort(key=lambda s: s.start_time)
    return grouped


def room_time_range(sessions: list[FinalSession]) -> str:
    """Span of a room's day as "HH:MM - HH:MM", or "" when empty."""
    if not sessions:
        return ""
    earliest = min(s.start_time for s in sessions)
    latest = max(s.end_time for s in sessions)
    return f"{format_time(earliest)} - {format_time(latest)}"


def month_grid(year: int, month: int) -> list[list[date]]:
    """Full Sunday-to-Saturday weeks covering the month."""
    return _MONTH_CALENDAR.monthdatescalendar(year, month)

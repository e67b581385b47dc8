"""Room availability checking for defense sessions.

A room is free for a slot when no defense session on the same date and no
weekly lecture on the same weekday overlaps it. Lectures name their room as
free text, so they are matched to rooms by case-insensitive name.

The filter itself (find_available_rooms) is pure. RoomAvailabilityChecker
loads the three datasets from a repository and applies the fetch-failure
policy; AvailabilityTracker discards results that a newer request has
superseded.
"""

import asyncio
from collections.abc import Iterable
from datetime import date, time
from typing import TYPE_CHECKING, Literal

from final_sessions.errors import DataSourceError
from final_sessions.logging import get_logger
from final_sessions.models import (
    AvailabilityRequest,
    AvailabilityResult,
    AvailabilityStatus,
    FinalSession,
    LectureSchedule,
    Room,
)
from final_sessions.weekdays import INDONESIAN_WEEKDAYS, same_weekday, weekday_name

if TYPE_CHECKING:
    from final_sessions.repository import ScheduleRepository

log = get_logger(__name__)

FailurePolicy = Literal["fail_closed", "fail_open"]


def overlaps(start: time, end: time, other_start: time, other_end: time) -> bool:
    """True if [start, end) and [other_start, other_end) share any instant.

    Back-to-back bookings (end == other_start) do not overlap.
    """
    return start < other_end and end > other_start


def _rooms_by_name(rooms: Iterable[Room]) -> dict[str, str]:
    # First room wins if two rooms share a name
    by_name: dict[str, str] = {}
    for room in rooms:
        by_name.setdefault(room.name.strip().casefold(), room.id)
    return by_name


def conflicting_room_ids(
    request: AvailabilityRequest,
    rooms: list[Room],
    sessions: Iterable[FinalSession],
    lectures: Iterable[LectureSchedule],
    weekday_names: tuple[str, ...] = INDONESIAN_WEEKDAYS,
) -> set[str]:
    """Ids of rooms booked during the requested slot.

    Args:
        request: Date, slot and optional session id to ignore.
        rooms: All known rooms, used to resolve lecture room names.
        sessions: Defense sessions (any dates; filtered here).
        lectures: Lecture schedules (any weekday; filtered here).
        weekday_names: Day-name table, Sunday first, matching the stored lecture days.

    Returns:
        Set of room ids with at least one overlapping booking.
    """
    day_name = weekday_name(request.date, weekday_names)

    session_rooms = {
        session.room_id
        for session in sessions
        if session.date == request.date
        and session.room_id
        and session.id != request.exclude_session_id
        and overlaps(
            request.start_time, request.end_time, session.start_time, session.end_time
        )
    }

    by_name = _rooms_by_name(rooms)
    lecture_rooms: set[str] = set()
    for lecture in lectures:
        if not lecture.is_complete:
            continue
        if not same_weekday(lecture.day_of_week, day_name):
            continue
        if not overlaps(
            request.start_time, request.end_time, lecture.start_time, lecture.end_time
        ):
            continue
        room_id = by_name.get(lecture.room.strip().casefold())
        if room_id is None:
            log.debug("lecture_room_unmatched", room=lecture.room, day=day_name)
            continue
        lecture_rooms.add(room_id)

    return session_rooms | lecture_rooms


def find_available_rooms(
    request: AvailabilityRequest,
    rooms: list[Room],
    sessions: Iterable[FinalSession],
    lectures: Iterable[LectureSchedule],
    weekday_names: tuple[str, ...] = INDONESIAN_WEEKDAYS,
) -> list[Room]:
    """Rooms with no session or lecture overlapping the requested slot.

    Room order is preserved.
    """
    taken = conflicting_room_ids(request, rooms, sessions, lectures, weekday_names)
    return [room for room in rooms if room.id not in taken]


class RoomAvailabilityChecker:
    """Loads bookings from a repository and filters rooms for a slot.

    On a failed session or lecture fetch the configured policy decides the
    answer: "fail_closed" reports UNKNOWN with no rooms, "fail_open" reports
    DEGRADED with every room. A failed room fetch is always UNKNOWN.
    """

    def __init__(
        self,
        repository: "ScheduleRepository",
        weekday_names: tuple[str, ...] = INDONESIAN_WEEKDAYS,
        failure_policy: FailurePolicy = "fail_closed",
    ) -> None:
        if failure_policy not in ("fail_closed", "fail_open"):
            raise ValueError(f"Unknown failure policy {failure_policy!r}")
        self.repository = repository
        self.weekday_names = weekday_names
        self.failure_policy = failure_policy

    async def check(self, request: AvailabilityRequest) -> AvailabilityResult:
        """Compute the rooms free for ``request``.

        Returns:
            AvailabilityResult with status CHECKED, DEGRADED or UNKNOWN.
        """
        day_name = weekday_name(request.date, self.weekday_names)

        try:
            rooms = await self.repository.list_rooms()
        except DataSourceError as e:
            log.error("room_fetch_failed", error=str(e), type=type(e).__name__)
            return AvailabilityResult(
                status=AvailabilityStatus.UNKNOWN, weekday=day_name, error=str(e)
            )

        try:
            sessions, lectures = await asyncio.gather(
                self.repository.list_sessions_for_date(request.date),
                self.repository.list_lecture_schedules_for_day(day_name),
            )
        except DataSourceError as e:
            return self._on_fetch_failure(rooms, day_name, e)

        available = find_available_rooms(
            request, rooms, sessions, lectures, self.weekday_names
        )
        log.info(
            "availability_checked",
            date=request.date.isoformat(),
            start=request.start_time.isoformat(),
            end=request.end_time.isoformat(),
            excluded_session=request.exclude_session_id,
            rooms_total=len(rooms),
            rooms_available=len(available),
        )
        return AvailabilityResult(
            status=AvailabilityStatus.CHECKED, rooms=available, weekday=day_name
        )

    def _on_fetch_failure(
        self, rooms: list[Room], day_name: str, error: DataSourceError
    ) -> AvailabilityResult:
        log.error(
            "booking_fetch_failed",
            error=str(error),
            type=type(error).__name__,
            policy=self.failure_policy,
        )
        if self.failure_policy == "fail_open":
            return AvailabilityResult(
                status=AvailabilityStatus.DEGRADED,
                rooms=rooms,
                weekday=day_name,
                error=str(error),
            )
        return AvailabilityResult(
            status=AvailabilityStatus.UNKNOWN, weekday=day_name, error=str(error)
        )


class AvailabilityTracker:
    """Re-runs the checker whenever the form's date or times change.

    Each refresh takes a sequence number; a result that comes back after a
    newer refresh has started is dropped, so the latest request always wins.
    """

    def __init__(self, checker: RoomAvailabilityChecker) -> None:
        self.checker = checker
        self.current: AvailabilityResult | None = None
        self._sequence = 0

    @property
    def sequence(self) -> int:
        return self._sequence

    async def refresh(
        self,
        day: date | None,
        start_time: time | None,
        end_time: time | None,
        exclude_session_id: str | None = None,
    ) -> AvailabilityResult | None:
        """Recompute availability for the given slot.

        Returns:
            The new result, or None if a later refresh superseded this one.
        """
        self._sequence += 1
        ticket = self._sequence

        if day is None or start_time is None or end_time is None:
            result = await self._unchecked()
        else:
            result = await self.checker.check(
                AvailabilityRequest(
                    date=day,
                    start_time=start_time,
                    end_time=end_time,
                    exclude_session_id=exclude_session_id,
                )
            )

        if ticket != self._sequence:
            log.debug("stale_availability_discarded", ticket=ticket, latest=self._sequence)
            return None

        self.current = result
        return result

    async def _unchecked(self) -> AvailabilityResult:
        try:
            rooms = await self.checker.repository.list_rooms()
        except DataSourceError as e:
            log.error("room_fetch_failed", error=str(e), type=type(e).__name__)
            return AvailabilityResult(status=AvailabilityStatus.UNKNOWN, error=str(e))
        return AvailabilityResult(status=AvailabilityStatus.UNCHECKED, rooms=rooms)

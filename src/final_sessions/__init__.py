"""Thesis defense ("final session") scheduling.

Room availability checking against defense sessions and weekly lecture
schedules, plus the session service, calendar queries and schedule exports
built on top of it.
"""

from final_sessions.availability import (
    AvailabilityTracker,
    RoomAvailabilityChecker,
    find_available_rooms,
    overlaps,
)
from final_sessions.models import (
    AvailabilityRequest,
    AvailabilityResult,
    AvailabilityStatus,
    FinalSession,
    LectureSchedule,
    Room,
)
from final_sessions.repository import InMemoryRepository, PostgrestRepository

__all__ = [
    "AvailabilityRequest",
    "AvailabilityResult",
    "AvailabilityStatus",
    "AvailabilityTracker",
    "FinalSession",
    "InMemoryRepository",
    "LectureSchedule",
    "PostgrestRepository",
    "Room",
    "RoomAvailabilityChecker",
    "find_available_rooms",
    "overlaps",
]

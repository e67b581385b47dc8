# tests/conftest.py
import logging
from datetime import date

import pytest
import structlog

from final_sessions.config import reset_config
from final_sessions.errors import TransientError
from final_sessions.models import (
    FinalSession,
    LectureSchedule,
    Room,
    Student,
    StudyProgram,
)
from final_sessions.repository import InMemoryRepository
from final_sessions.weekdays import ENGLISH_WEEKDAYS

# 2025-01-15 is a Wednesday
WEDNESDAY = date(2025, 1, 15)
THURSDAY = date(2025, 1, 16)


def make_session(
    session_id: str,
    room_id: str | None,
    start: str,
    end: str,
    day: date = WEDNESDAY,
    **extra,
) -> FinalSession:
    return FinalSession.model_validate(
        {
            "id": session_id,
            "date": day,
            "start_time": start,
            "end_time": end,
            "room_id": room_id,
            **extra,
        }
    )


def make_lecture(room: str, day: str, start: str, end: str) -> LectureSchedule:
    return LectureSchedule.model_validate(
        {"room": room, "day": day, "start_time": start, "end_time": end}
    )


class FailingRepository(InMemoryRepository):
    """Raises on the named reads."""

    def __init__(self, *args, fail: tuple[str, ...] = (), **kwargs):
        super().__init__(*args, **kwargs)
        self.fail = fail

    async def list_rooms(self):
        if "rooms" in self.fail:
            raise TransientError("rooms unavailable")
        return await super().list_rooms()

    async def list_sessions_for_date(self, day):
        if "sessions" in self.fail:
            raise TransientError("sessions unavailable")
        return await super().list_sessions_for_date(day)

    async def list_lecture_schedules_for_day(self, weekday):
        if "lectures" in self.fail:
            raise TransientError("lecture schedules unavailable")
        return await super().list_lecture_schedules_for_day(weekday)


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture(autouse=True)
def _reset_logging():
    # setup_logging binds a handler to the stream captured for that test
    yield
    logging.getLogger().handlers = []
    structlog.reset_defaults()


@pytest.fixture
def weekday_names():
    return ENGLISH_WEEKDAYS


@pytest.fixture
def rooms():
    return [
        Room(id="R1", name="R1", code="R-01"),
        Room(id="R2", name="R2", code="R-02"),
    ]


@pytest.fixture
def programs():
    return [
        StudyProgram(id="P-TI", name="Teknik Informatika", code="TI", department_id="D1"),
        StudyProgram(id="P-SI", name="Sistem Informasi", code=None, department_id="D1"),
    ]


@pytest.fixture
def students():
    return [
        Student(
            id="S-1",
            full_name="Budi Santoso",
            identity_number="2101001",
            study_program_id="P-TI",
        ),
    ]


@pytest.fixture
def repository(rooms, programs, students):
    """The end-to-end scenario: R1 busy 09:00-10:00, R2 has a Wednesday lecture."""
    return InMemoryRepository(
        rooms=rooms,
        sessions=[make_session("E1", "R1", "09:00", "10:00", student_id="S-1")],
        lectures=[make_lecture("R2", "Wednesday", "08:00", "09:30")],
        students=students,
        study_programs=programs,
    )

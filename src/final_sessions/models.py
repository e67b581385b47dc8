"""Pydantic models for rooms, defense sessions and lecture schedules.

All data structures use Pydantic v2 for validation, serialization, and type safety.
Rows come straight from the Supabase REST API, so unknown columns are ignored and
time columns accept both "HH:MM" and "HH:MM:SS".
"""

from datetime import date, time
from enum import Enum

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


class StudyProgram(BaseModel):
    """An academic study program; sessions are exported per program."""

    id: str
    name: str
    code: str | None = None
    department_id: str | None = None


class Student(BaseModel):
    """A row of the users table with role "student"."""

    id: str
    full_name: str
    identity_number: str  # NIM
    study_program_id: str | None = None
    study_program: StudyProgram | None = None

    @property
    def program_id(self) -> str | None:
        if self.study_program is not None:
            return self.study_program.id
        return self.study_program_id


class Room(BaseModel):
    """A physical room that hosts at most one session or lecture at a time."""

    id: str
    name: str
    code: str = ""
    capacity: int = 0
    department_id: str | None = None


class FinalSession(BaseModel):
    """One scheduled thesis defense.

    Mirrors a row of the final_sessions table, optionally with the student and
    room embedded by a PostgREST select.
    """

    id: str
    date: date
    start_time: time
    end_time: time
    room_id: str | None = None
    student_id: str | None = None
    title: str = ""
    supervisor: str = ""
    examiner: str = ""
    secretary: str = ""
    student: Student | None = None
    room: Room | None = None


class LectureSchedule(BaseModel):
    """A recurring weekly lecture.

    The room is a free-text name with no foreign key; it is matched to a Room
    by case-insensitive name equality. The database column for the weekday
    name is ``day``. Every column is nullable in the table; incomplete rows
    never conflict.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    room: str | None = None
    day_of_week: str | None = Field(
        default=None, validation_alias=AliasChoices("day_of_week", "day")
    )
    start_time: time | None = None
    end_time: time | None = None
    course_code: str | None = None
    course_name: str | None = None

    @property
    def is_complete(self) -> bool:
        return bool(
            self.room
            and self.day_of_week
            and self.start_time is not None
            and self.end_time is not None
        )


class AvailabilityRequest(BaseModel):
    """A proposed slot to check.

    Ordering of start_time and end_time is the caller's concern and is not
    validated here.
    """

    date: date
    start_time: time
    end_time: time
    exclude_session_id: str | None = None


class AvailabilityStatus(str, Enum):
    CHECKED = "checked"  # bookings loaded and filtered
    UNCHECKED = "unchecked"  # date/start/end incomplete, nothing filtered
    DEGRADED = "degraded"  # fetch failed, every room listed (fail-open)
    UNKNOWN = "unknown"  # fetch failed, no rooms listed (fail-closed)


class AvailabilityResult(BaseModel):
    status: AvailabilityStatus
    rooms: list[Room] = Field(default_factory=list)
    weekday: str | None = None
    error: str | None = None

    @property
    def submission_allowed(self) -> bool:
        return self.status in (AvailabilityStatus.CHECKED, AvailabilityStatus.DEGRADED)

    @property
    def room_ids(self) -> list[str]:
        return [room.id for room in self.rooms]


class SessionDraft(BaseModel):
    """Form payload for creating or editing a defense session.

    The student is either an existing user (student_id) or identified by NIM
    and name, in which case the service looks them up or creates them.
    """

    student_id: str | None = None
    student_name: str | None = None
    student_nim: str | None = None
    study_program_id: str | None = None
    date: date
    start_time: time
    end_time: time
    room_id: str
    title: str
    supervisor: str
    examiner: str
    secretary: str

    @field_validator(
        "student_id",
        "student_name",
        "student_nim",
        "study_program_id",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("room_id", "title", "supervisor", "examiner", "secretary")
    @classmethod
    def _required_text(cls, value: str, info) -> str:
        value = value.strip()
        if not value:
            label = info.field_name.replace("_", " ").capitalize()
            raise ValueError(f"{label} is required")
        return value

    @model_validator(mode="after")
    def _check_slot_and_student(self) -> "SessionDraft":
        if self.start_time >= self.end_time:
            raise ValueError("End time must be after start time.")
        if not self.student_id and not (self.student_nim and self.student_name):
            raise ValueError(
                "Student information is required. Select a student or enter NIM and name."
            )
        return self

    def session_payload(self, student_id: str) -> dict:
        """Column values for the final_sessions table."""
        return {
            "student_id": student_id,
            "date": self.date.isoformat(),
            "start_time": format_time(self.start_time, seconds=True),
            "end_time": format_time(self.end_time, seconds=True),
            "room_id": self.room_id,
            "title": self.title,
            "supervisor": self.supervisor,
            "examiner": self.examiner,
            "secretary": self.secretary,
        }


def format_time(value: time, *, seconds: bool = False) -> str:
    """Render a time as HH:MM (or HH:MM:SS)."""
    return value.strftime("%H:%M:%S" if seconds else "%H:%M")

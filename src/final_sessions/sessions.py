"""Creating, editing and deleting defense sessions.

Before every write the slot is re-checked against current bookings, with the
edited session excluded so it cannot conflict with itself. The re-check
narrows but does not close the window in which a concurrent booking can
take the same room; exclusivity has to be enforced by the database.
"""

from datetime import datetime, timezone
from typing import Any

from final_sessions.availability import RoomAvailabilityChecker
from final_sessions.errors import (
    AvailabilityUnknownError,
    RoomConflictError,
    StudentResolutionError,
    StudyProgramNotFoundError,
)
from final_sessions.logging import get_logger
from final_sessions.models import (
    AvailabilityRequest,
    FinalSession,
    SessionDraft,
    StudyProgram,
)
from final_sessions.repository import ScheduleRepository

log = get_logger(__name__)

STUDENT_EMAIL_DOMAIN = "student.edu"


def new_student_payload(
    identity_number: str, full_name: str, program: StudyProgram
) -> dict[str, Any]:
    """Row for a student created on the fly from the session form.

    The NIM doubles as username and as the local part of the email address.
    """
    now = datetime.now(timezone.utc).isoformat()
    return {
        "identity_number": identity_number,
        "full_name": full_name,
        "username": identity_number,
        "email": f"{identity_number}@{STUDENT_EMAIL_DOMAIN}",
        "role": "student",
        "study_program_id": program.id,
        "department_id": program.department_id,
        "created_at": now,
        "updated_at": now,
    }


class SessionService:
    """Writes defense sessions after resolving the student and the room."""

    def __init__(
        self, repository: ScheduleRepository, checker: RoomAvailabilityChecker
    ) -> None:
        self.repository = repository
        self.checker = checker

    async def save(
        self, draft: SessionDraft, editing_session_id: str | None = None
    ) -> FinalSession:
        """Create a session, or update ``editing_session_id``.

        Raises:
            StudentResolutionError: No student id and no NIM/name to resolve.
            StudyProgramNotFoundError: New student with an unknown program.
            AvailabilityUnknownError: Bookings could not be loaded.
            RoomConflictError: The room is taken during the slot.
        """
        # Before resolve_student, which may insert a users row
        await self.ensure_room_free(draft, editing_session_id)
        student_id = await self.resolve_student(draft)

        payload = draft.session_payload(student_id)
        if editing_session_id:
            session = await self.repository.update_session(editing_session_id, payload)
            log.info(
                "session_updated",
                session_id=session.id,
                room_id=session.room_id,
                date=session.date.isoformat(),
            )
        else:
            session = await self.repository.create_session(payload)
            log.info(
                "session_created",
                session_id=session.id,
                room_id=session.room_id,
                date=session.date.isoformat(),
            )
        return session

    async def delete(self, session_id: str) -> None:
        await self.repository.delete_session(session_id)
        log.info("session_deleted", session_id=session_id)

    async def resolve_student(self, draft: SessionDraft) -> str:
        """Return the student id for a draft, creating the student if needed."""
        if draft.student_id:
            return draft.student_id
        if not (draft.student_nim and draft.student_name):
            raise StudentResolutionError(
                "Student information is required. Select a student or enter NIM and name."
            )

        existing = await self.repository.find_student_by_identity(draft.student_nim)
        if existing is not None:
            log.debug("student_found", student_id=existing.id, nim=draft.student_nim)
            return existing.id

        programs = await self.repository.list_study_programs()
        program = next((p for p in programs if p.id == draft.study_program_id), None)
        if program is None:
            raise StudyProgramNotFoundError(
                "Study program not found. Please select a valid study program."
            )

        student = await self.repository.create_student(
            new_student_payload(draft.student_nim, draft.student_name, program)
        )
        log.info("student_created", student_id=student.id, nim=draft.student_nim)
        return student.id

    async def ensure_room_free(
        self, draft: SessionDraft, editing_session_id: str | None = None
    ) -> None:
        result = await self.checker.check(
            AvailabilityRequest(
                date=draft.date,
                start_time=draft.start_time,
                end_time=draft.end_time,
                exclude_session_id=editing_session_id,
            )
        )
        if not result.submission_allowed:
            raise AvailabilityUnknownError(
                f"Could not verify room availability: {result.error or 'unknown error'}"
            )
        if draft.room_id not in result.room_ids:
            log.warning(
                "room_conflict",
                room_id=draft.room_id,
                date=draft.date.isoformat(),
                start=draft.start_time.isoformat(),
                end=draft.end_time.isoformat(),
            )
            raise RoomConflictError(draft.room_id)

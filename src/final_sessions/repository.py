"""Data access for rooms, defense sessions, lecture schedules and students.

ScheduleRepository is the read/write interface the checker and the session
service depend on. PostgrestRepository talks to the Supabase REST API;
InMemoryRepository keeps everything in lists for tests and offline runs.
"""

import asyncio
import uuid
from datetime import date
from typing import Any, Protocol

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from final_sessions.config import SchedulerConfig
from final_sessions.errors import (
    AuthenticationError,
    DuplicateRecordError,
    MissingReferenceError,
    PermanentError,
    RateLimitError,
    RecordNotFoundError,
    TransientError,
)
from final_sessions.logging import get_logger
from final_sessions.models import (
    FinalSession,
    LectureSchedule,
    Room,
    Student,
    StudyProgram,
)
from final_sessions.weekdays import same_weekday

log = get_logger(__name__)


class ScheduleRepository(Protocol):
    async def list_rooms(self) -> list[Room]: ...

    async def list_sessions(self) -> list[FinalSession]: ...

    async def list_sessions_for_date(self, day: date) -> list[FinalSession]: ...

    async def list_lecture_schedules_for_day(
        self, weekday: str
    ) -> list[LectureSchedule]: ...

    async def list_study_programs(self) -> list[StudyProgram]: ...

    async def find_student_by_identity(
        self, identity_number: str
    ) -> Student | None: ...

    async def create_student(self, payload: dict[str, Any]) -> Student: ...

    async def create_session(self, payload: dict[str, Any]) -> FinalSession: ...

    async def update_session(
        self, session_id: str, payload: dict[str, Any]
    ) -> FinalSession: ...

    async def delete_session(self, session_id: str) -> None: ...


# Embedded relations for session rows: student with program, and room
SESSION_SELECT = (
    "*,"
    "student:users!student_id(id,full_name,identity_number,study_program_id,"
    "study_program:study_programs(id,name,code,department_id)),"
    "room:rooms(id,name,code,capacity,department_id)"
)
STUDENT_SELECT = "id,full_name,identity_number,study_program_id"


class PostgrestRepository:
    """ScheduleRepository backed by the Supabase REST (PostgREST) API.

    Requests are blocking and run in a worker thread. Transient failures
    (timeouts, connection errors, 5xx, 429) are retried with a fixed wait;
    everything else surfaces immediately as a PermanentError subclass.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        max_attempts: int = 3,
        retry_wait: float = 1.0,
        http: requests.Session | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("Supabase URL is not configured (SUPABASE_URL)")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_wait = retry_wait
        self.http = http or requests.Session()
        self.http.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            }
        )

    @classmethod
    def from_config(cls, config: SchedulerConfig) -> "PostgrestRepository":
        return cls(
            config.supabase_url,
            config.supabase_key,
            timeout=config.request_timeout_seconds,
            max_attempts=config.max_fetch_attempts,
            retry_wait=config.retry_wait_seconds,
        )

    # -- reads -------------------------------------------------------------

    async def list_rooms(self) -> list[Room]:
        rows = await self._call("GET", "rooms", params={"select": "*", "order": "name.asc"})
        return [Room.model_validate(row) for row in rows]

    async def list_sessions(self) -> list[FinalSession]:
        rows = await self._call(
            "GET",
            "final_sessions",
            params={"select": SESSION_SELECT, "order": "date.asc,start_time.asc"},
        )
        return [FinalSession.model_validate(row) for row in rows]

    async def list_sessions_for_date(self, day: date) -> list[FinalSession]:
        rows = await self._call(
            "GET",
            "final_sessions",
            params={
                "select": SESSION_SELECT,
                "date": f"eq.{day.isoformat()}",
                "order": "start_time.asc",
            },
        )
        return [FinalSession.model_validate(row) for row in rows]

    async def list_lecture_schedules_for_day(
        self, weekday: str
    ) -> list[LectureSchedule]:
        # Wildcards admit days stored with stray whitespace; same_weekday filters exactly
        rows = await self._call(
            "GET",
            "lecture_schedules",
            params={"select": "*", "day": f"ilike.*{weekday.strip()}*"},
        )
        lectures = [LectureSchedule.model_validate(row) for row in rows]
        return [
            lecture
            for lecture in lectures
            if same_weekday(lecture.day_of_week, weekday)
        ]

    async def list_study_programs(self) -> list[StudyProgram]:
        rows = await self._call(
            "GET", "study_programs", params={"select": "*", "order": "name.asc"}
        )
        return [StudyProgram.model_validate(row) for row in rows]

    async def find_student_by_identity(self, identity_number: str) -> Student | None:
        rows = await self._call(
            "GET",
            "users",
            params={
                "select": STUDENT_SELECT,
                "identity_number": f"eq.{identity_number}",
                "limit": "1",
            },
        )
        return Student.model_validate(rows[0]) if rows else None

    # -- writes ------------------------------------------------------------

    async def create_student(self, payload: dict[str, Any]) -> Student:
        rows = await self._call(
            "POST",
            "users",
            params={"select": STUDENT_SELECT},
            json=payload,
            prefer="return=representation",
        )
        return Student.model_validate(rows[0])

    async def create_session(self, payload: dict[str, Any]) -> FinalSession:
        rows = await self._call(
            "POST",
            "final_sessions",
            params={"select": SESSION_SELECT},
            json=payload,
            prefer="return=representation",
        )
        return FinalSession.model_validate(rows[0])

    async def update_session(
        self, session_id: str, payload: dict[str, Any]
    ) -> FinalSession:
        rows = await self._call(
            "PATCH",
            "final_sessions",
            params={"select": SESSION_SELECT, "id": f"eq.{session_id}"},
            json=payload,
            prefer="return=representation",
        )
        if not rows:
            raise RecordNotFoundError(f"Session {session_id} not found")
        return FinalSession.model_validate(rows[0])

    async def delete_session(self, session_id: str) -> None:
        rows = await self._call(
            "DELETE",
            "final_sessions",
            params={"select": "id", "id": f"eq.{session_id}"},
            prefer="return=representation",
        )
        if not rows:
            raise RecordNotFoundError(f"Session {session_id} not found")

    # -- transport ---------------------------------------------------------

    async def _call(self, method: str, table: str, **kwargs: Any) -> Any:
        return await asyncio.to_thread(self.request, method, table, **kwargs)

    def request(
        self,
        method: str,
        table: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        """Send one REST request, retrying transient failures.

        Raises:
            TransientError: If every attempt failed transiently.
            PermanentError: If the API rejected the request.
        """
        retryer = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.retry_wait),
            retry=retry_if_exception_type(TransientError),
            before_sleep=_log_retry,
            reraise=True,
        )
        return retryer(self._send, method, table, params, json, prefer)

    def _send(
        self,
        method: str,
        table: str,
        params: dict[str, str] | None,
        json: Any,
        prefer: str | None,
    ) -> Any:
        url = f"{self.base_url}/rest/v1/{table}"
        headers = {"Prefer": prefer} if prefer else None
        try:
            resp = self.http.request(
                method,
                url,
                params=params,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TransientError(f"{method} {table} timed out: {e}") from e
        except requests.ConnectionError as e:
            raise TransientError(f"{method} {table} connection failed: {e}") from e

        if resp.status_code >= 400:
            raise classify_response(method, table, resp)

        log.debug("rest_request", method=method, table=table, status=resp.status_code)
        if not resp.content:
            return None
        return resp.json()


def classify_response(method: str, table: str, resp: requests.Response) -> Exception:
    """Map an error response to the error hierarchy."""
    try:
        body = resp.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    code = str(body.get("code") or "")
    message = body.get("message") or resp.text or resp.reason
    detail = f"{method} {table} failed ({resp.status_code}): {message}"

    if resp.status_code == 429:
        return RateLimitError(detail)
    if resp.status_code >= 500:
        return TransientError(detail)
    if resp.status_code in (401, 403):
        return AuthenticationError(detail)
    if code == "23505":
        return DuplicateRecordError(detail)
    if code == "23503":
        return MissingReferenceError(detail)
    return PermanentError(detail)


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    log.warning(
        "rest_request_retry",
        attempt=retry_state.attempt_number,
        error=str(error),
        type=type(error).__name__,
    )


class InMemoryRepository:
    """ScheduleRepository over plain lists.

    Written sessions get their student and room embedded, like the REST
    select does, so calendar and export code sees the same shape.
    """

    def __init__(
        self,
        rooms: list[Room] | None = None,
        sessions: list[FinalSession] | None = None,
        lectures: list[LectureSchedule] | None = None,
        students: list[Student] | None = None,
        study_programs: list[StudyProgram] | None = None,
    ) -> None:
        self.rooms = list(rooms or [])
        self.sessions = list(sessions or [])
        self.lectures = list(lectures or [])
        self.students = list(students or [])
        self.study_programs = list(study_programs or [])

    async def list_rooms(self) -> list[Room]:
        return sorted(self.rooms, key=lambda r: r.name)

    async def list_sessions(self) -> list[FinalSession]:
        return sorted(self.sessions, key=lambda s: (s.date, s.start_time))

    async def list_sessions_for_date(self, day: date) -> list[FinalSession]:
        return [s for s in await self.list_sessions() if s.date == day]

    async def list_lecture_schedules_for_day(
        self, weekday: str
    ) -> list[LectureSchedule]:
        return [
            lecture
            for lecture in self.lectures
            if same_weekday(lecture.day_of_week, weekday)
        ]

    async def list_study_programs(self) -> list[StudyProgram]:
        return sorted(self.study_programs, key=lambda p: p.name)

    async def find_student_by_identity(self, identity_number: str) -> Student | None:
        for student in self.students:
            if student.identity_number == identity_number:
                return student
        return None

    async def create_student(self, payload: dict[str, Any]) -> Student:
        if await self.find_student_by_identity(payload["identity_number"]):
            raise DuplicateRecordError(
                f"Student {payload['identity_number']} already exists"
            )
        student = Student.model_validate({**payload, "id": str(uuid.uuid4())})
        self.students.append(student)
        return student

    async def create_session(self, payload: dict[str, Any]) -> FinalSession:
        session = self._hydrate({**payload, "id": str(uuid.uuid4())})
        self.sessions.append(session)
        return session

    async def update_session(
        self, session_id: str, payload: dict[str, Any]
    ) -> FinalSession:
        for i, existing in enumerate(self.sessions):
            if existing.id == session_id:
                updated = self._hydrate(
                    {**existing.model_dump(exclude={"student", "room"}), **payload}
                )
                self.sessions[i] = updated
                return updated
        raise RecordNotFoundError(f"Session {session_id} not found")

    async def delete_session(self, session_id: str) -> None:
        remaining = [s for s in self.sessions if s.id != session_id]
        if len(remaining) == len(self.sessions):
            raise RecordNotFoundError(f"Session {session_id} not found")
        self.sessions = remaining

    def _hydrate(self, row: dict[str, Any]) -> FinalSession:
        student = next((s for s in self.students if s.id == row.get("student_id")), None)
        room = next((r for r in self.rooms if r.id == row.get("room_id")), None)
        if student is not None and student.study_program is None:
            program = next(
                (p for p in self.study_programs if p.id == student.study_program_id),
                None,
            )
            student = student.model_copy(update={"study_program": program})
        return FinalSession.model_validate({**row, "student": student, "room": room})

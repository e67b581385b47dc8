import json
from datetime import date
from unittest.mock import Mock

import pytest
import requests

from final_sessions.config import SchedulerConfig
from final_sessions.errors import (
    AuthenticationError,
    DuplicateRecordError,
    PermanentError,
    RateLimitError,
    RecordNotFoundError,
    TransientError,
)
from final_sessions.models import LectureSchedule
from final_sessions.repository import InMemoryRepository, PostgrestRepository

pytestmark = pytest.mark.asyncio

BASE = "https://example.supabase.co"


def response(status: int, body=None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.encoding = "utf-8"
    resp._content = json.dumps(body).encode() if body is not None else b""
    return resp


def make_repo(*responses, max_attempts: int = 3):
    http = requests.Session()
    http.request = Mock(side_effect=list(responses))
    repo = PostgrestRepository(
        BASE, "anon-key", max_attempts=max_attempts, retry_wait=0, http=http
    )
    return repo, http.request


class TestReads:
    async def test_list_rooms(self):
        repo, request = make_repo(
            response(200, [{"id": "R1", "name": "Lab A", "code": "LA", "capacity": 30}])
        )
        rooms = await repo.list_rooms()

        assert rooms[0].name == "Lab A"
        method, url = request.call_args.args
        assert (method, url) == ("GET", f"{BASE}/rest/v1/rooms")
        assert request.call_args.kwargs["params"]["order"] == "name.asc"
        assert repo.http.headers["apikey"] == "anon-key"
        assert repo.http.headers["Authorization"] == "Bearer anon-key"

    async def test_sessions_for_date_filters_and_embeds(self):
        row = {
            "id": "E1",
            "date": "2025-01-15",
            "start_time": "09:00:00",
            "end_time": "10:00:00",
            "room_id": "R1",
            "student_id": "S-1",
            "title": "Judul",
            "created_at": "2025-01-01T00:00:00Z",
            "student": {
                "id": "S-1",
                "full_name": "Budi",
                "identity_number": "2101001",
                "study_program": {"id": "P-TI", "name": "Teknik Informatika"},
            },
            "room": {"id": "R1", "name": "Lab A", "code": "LA"},
        }
        repo, request = make_repo(response(200, [row]))
        sessions = await repo.list_sessions_for_date(date(2025, 1, 15))

        assert sessions[0].student.program_id == "P-TI"
        assert sessions[0].room.code == "LA"
        params = request.call_args.kwargs["params"]
        assert params["date"] == "eq.2025-01-15"
        assert "student:users!student_id" in params["select"]

    async def test_lecture_schedules_match_day_like_in_memory(self):
        def lecture_row(lecture_id, day):
            return {"id": lecture_id, "room": "Lab A", "day": day,
                    "start_time": "08:00:00", "end_time": "09:30:00"}

        rows = [lecture_row("L1", "Rabu"), lecture_row("L2", "rabu "),
                lecture_row("L3", "Rabu Pagi")]
        repo, request = make_repo(response(200, rows))
        lectures = await repo.list_lecture_schedules_for_day("Rabu")

        assert request.call_args.kwargs["params"]["day"] == "ilike.*Rabu*"
        assert [lecture.id for lecture in lectures] == ["L1", "L2"]

        in_memory = InMemoryRepository(
            lectures=[LectureSchedule.model_validate(row) for row in rows]
        )
        same_day = await in_memory.list_lecture_schedules_for_day("Rabu")
        assert [lecture.id for lecture in same_day] == ["L1", "L2"]

    async def test_student_lookup_miss(self):
        repo, _ = make_repo(response(200, []))
        assert await repo.find_student_by_identity("0000") is None


class TestWrites:
    async def test_create_session_asks_for_representation(self):
        created = {
            "id": "E2",
            "date": "2025-01-15",
            "start_time": "13:00:00",
            "end_time": "14:00:00",
            "room_id": "R1",
        }
        repo, request = make_repo(response(201, [created]))
        session = await repo.create_session({"room_id": "R1"})

        assert session.id == "E2"
        assert request.call_args.args[0] == "POST"
        assert request.call_args.kwargs["headers"] == {"Prefer": "return=representation"}
        assert request.call_args.kwargs["json"] == {"room_id": "R1"}

    async def test_update_missing_session(self):
        repo, _ = make_repo(response(200, []))
        with pytest.raises(RecordNotFoundError):
            await repo.update_session("nope", {"title": "x"})

    async def test_delete_session(self):
        repo, request = make_repo(response(200, [{"id": "E1"}]))
        await repo.delete_session("E1")

        assert request.call_args.args[0] == "DELETE"
        assert request.call_args.kwargs["params"]["id"] == "eq.E1"
        assert request.call_args.kwargs["headers"] == {"Prefer": "return=representation"}

    async def test_delete_missing_session(self):
        repo, _ = make_repo(response(200, []))
        with pytest.raises(RecordNotFoundError):
            await repo.delete_session("does-not-exist")

    async def test_in_memory_delete_missing_session(self, repository):
        with pytest.raises(RecordNotFoundError):
            await repository.delete_session("does-not-exist")
        assert [s.id for s in repository.sessions] == ["E1"]


class TestErrorClassification:
    async def test_server_error_is_retried(self):
        repo, request = make_repo(
            response(503, {"message": "unavailable"}),
            response(200, [{"id": "R1", "name": "Lab A"}]),
        )
        rooms = await repo.list_rooms()
        assert [r.id for r in rooms] == ["R1"]
        assert request.call_count == 2

    async def test_transient_errors_surface_after_last_attempt(self):
        repo, request = make_repo(
            *[response(429, {"message": "slow down"})] * 2, max_attempts=2
        )
        with pytest.raises(RateLimitError):
            await repo.list_rooms()
        assert request.call_count == 2

    async def test_timeout_is_transient(self):
        http = requests.Session()
        http.request = Mock(side_effect=requests.Timeout("read timed out"))
        repo = PostgrestRepository(BASE, "k", max_attempts=1, retry_wait=0, http=http)
        with pytest.raises(TransientError, match="timed out"):
            await repo.list_rooms()

    async def test_auth_failure_is_not_retried(self):
        repo, request = make_repo(response(401, {"message": "Invalid API key"}))
        with pytest.raises(AuthenticationError, match="Invalid API key"):
            await repo.list_rooms()
        assert request.call_count == 1

    async def test_unique_violation(self):
        repo, _ = make_repo(
            response(409, {"code": "23505", "message": "duplicate key value"})
        )
        with pytest.raises(DuplicateRecordError):
            await repo.create_student({"identity_number": "2101001"})

    async def test_other_client_error_is_permanent(self):
        repo, _ = make_repo(response(400, {"code": "PGRST100", "message": "bad filter"}))
        with pytest.raises(PermanentError, match="bad filter"):
            await repo.list_rooms()


class TestConstruction:
    async def test_from_config(self):
        config = SchedulerConfig(
            supabase_url=f"{BASE}/",
            supabase_key="service-key",
            request_timeout_seconds=3,
            max_fetch_attempts=5,
        )
        repo = PostgrestRepository.from_config(config)
        assert repo.base_url == BASE
        assert repo.timeout == 3
        assert repo.max_attempts == 5

    async def test_missing_url(self):
        with pytest.raises(ValueError, match="SUPABASE_URL"):
            PostgrestRepository("", "key")

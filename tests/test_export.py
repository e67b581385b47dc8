import csv
import json

import pytest

from conftest import THURSDAY, make_session
from final_sessions.duplicates import find_possible_duplicates, names_similar
from final_sessions.errors import EmptyExportError
from final_sessions.export import (
    COLUMNS,
    export_filename,
    schedule_rows,
    write_csv,
    write_json,
)
from final_sessions.models import Room, Student, StudyProgram

TI = StudyProgram(id="P-TI", name="Teknik Informatika", code="TI")
SI = StudyProgram(id="P-SI", name="Sistem  Informasi")


@pytest.fixture
def sessions():
    budi = Student(
        id="S-1", full_name="Budi Santoso", identity_number="2101001", study_program=TI
    )
    citra = Student(
        id="S-2", full_name="Citra", identity_number="2101002", study_program_id="P-SI"
    )
    return [
        make_session(
            "a",
            "R1",
            "09:00:00",
            "10:00:00",
            student=budi,
            room=Room(id="R1", name="Lab A"),
            title="Analisis Ruang",
            supervisor="Dr. Sari",
            examiner="Dr. Wahyu",
            secretary="Rina",
        ),
        make_session("b", None, "13:00", "14:00", day=THURSDAY, student=citra),
    ]


class TestScheduleRows:
    def test_row_for_program(self, sessions):
        rows = schedule_rows(sessions, "P-TI")
        assert rows == [
            {
                "No.": "1",
                "DATE": "15-01-2025",
                "TIME": "09:00-10:00",
                "STUDENT NAME": "Budi Santoso",
                "NIM": "2101001",
                "THESIS TITLE": "Analisis Ruang",
                "ROOM": "Lab A",
                "SUPERVISOR": "Dr. Sari",
                "EXAMINER": "Dr. Wahyu",
                "SECRETARY": "Rina",
            }
        ]

    def test_missing_values_render_as_dash(self, sessions):
        (row,) = schedule_rows(sessions, "P-SI")
        assert row["ROOM"] == "-"
        assert row["THESIS TITLE"] == "-"
        assert row["DATE"] == "16-01-2025"

    def test_empty_program(self, sessions):
        with pytest.raises(EmptyExportError):
            schedule_rows(sessions, "P-XX")


def test_export_filename():
    assert export_filename(TI) == "Jadwal_Sidang_TI.csv"
    assert export_filename(SI, "json") == "Jadwal_Sidang_Sistem_Informasi.json"


def test_write_csv_and_json(sessions, tmp_path):
    rows = schedule_rows(sessions, "P-TI")

    csv_path = write_csv(rows, tmp_path / "out" / "schedule.csv")
    with open(csv_path, encoding="utf-8", newline="") as f:
        reader = csv.DictReader(f)
        assert tuple(reader.fieldnames) == COLUMNS
        assert list(reader)[0]["NIM"] == "2101001"

    json_path = write_json(rows, tmp_path / "schedule.json", TI)
    document = json.loads(json_path.read_text(encoding="utf-8"))
    assert document["study_program"]["code"] == "TI"
    assert document["rows"] == rows


class TestDuplicates:
    def test_names_similar(self):
        assert names_similar("budi", "Budi  Santoso")
        assert names_similar("Budi Santoso Putra", "budi santoso")
        assert not names_similar("Budi", "Citra")
        assert not names_similar("  ", "Budi")

    def test_find_possible_duplicates(self, sessions):
        matches = find_possible_duplicates("BUDI", sessions)
        assert [m.id for m in matches] == ["a"]

    def test_excluding_session_under_edit(self, sessions):
        assert find_possible_duplicates("Budi", sessions, exclude_session_id="a") == []

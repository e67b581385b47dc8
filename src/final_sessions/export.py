"""Tabular export of defense schedules per study program."""

import csv
import json
import re
from collections.abc import Iterable
from pathlib import Path

from final_sessions.errors import EmptyExportError
from final_sessions.logging import get_logger
from final_sessions.models import FinalSession, StudyProgram, format_time

log = get_logger(__name__)

COLUMNS: tuple[str, ...] = (
    "No.",
    "DATE",
    "TIME",
    "STUDENT NAME",
    "NIM",
    "THESIS TITLE",
    "ROOM",
    "SUPERVISOR",
    "EXAMINER",
    "SECRETARY",
)

MISSING = "-"


def _program_of(session: FinalSession) -> str | None:
    if session.student is None:
        return None
    return session.student.program_id


def sessions_for_program(
    sessions: Iterable[FinalSession], study_program_id: str
) -> list[FinalSession]:
    return [s for s in sessions if _program_of(s) == study_program_id]


def schedule_rows(
    sessions: Iterable[FinalSession], study_program_id: str
) -> list[dict[str, str]]:
    """One row per session of the program, numbered from 1, in input order.

    Raises:
        EmptyExportError: If the program has no sessions.
    """
    selected = sessions_for_program(sessions, study_program_id)
    if not selected:
        raise EmptyExportError(
            f"No sessions found for study program {study_program_id}"
        )

    rows = []
    for number, session in enumerate(selected, start=1):
        student = session.student
        values = [
            str(number),
            session.date.strftime("%d-%m-%Y"),
            f"{format_time(session.start_time)}-{format_time(session.end_time)}",
            student.full_name if student else "",
            student.identity_number if student else "",
            session.title,
            session.room.name if session.room else "",
            session.supervisor,
            session.examiner,
            session.secretary,
        ]
        rows.append({col: value or MISSING for col, value in zip(COLUMNS, values)})
    return rows


def export_filename(program: StudyProgram, extension: str = "csv") -> str:
    """File name like Jadwal_Sidang_TI.csv (program code, else name)."""
    label = program.code or re.sub(r"\s+", "_", program.name.strip())
    return f"Jadwal_Sidang_{label}.{extension}"


def write_csv(rows: list[dict[str, str]], path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    log.info("schedule_exported", path=str(path), rows=len(rows), format="csv")
    return path


def write_json(
    rows: list[dict[str, str]], path: Path, program: StudyProgram | None = None
) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    document = {
        "study_program": program.model_dump() if program else None,
        "columns": list(COLUMNS),
        "rows": rows,
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(document, f, indent=2, ensure_ascii=False)
    log.info("schedule_exported", path=str(path), rows=len(rows), format="json")
    return path

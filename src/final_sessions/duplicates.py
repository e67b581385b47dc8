"""Advisory check for students that may already have a session.

Matching is a loose substring test on names. It only produces warnings for
the person filling in the form and never blocks a booking.
"""

import re
from collections.abc import Iterable

from final_sessions.logging import get_logger
from final_sessions.models import FinalSession

log = get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def normalize_name(name: str) -> str:
    return _WHITESPACE.sub(" ", name).strip().casefold()


def names_similar(a: str, b: str) -> bool:
    """True if either normalised name contains the other."""
    a, b = normalize_name(a), normalize_name(b)
    if not a or not b:
        return False
    return a in b or b in a


def find_possible_duplicates(
    student_name: str,
    sessions: Iterable[FinalSession],
    exclude_session_id: str | None = None,
) -> list[FinalSession]:
    """Sessions whose student name resembles ``student_name``."""
    matches = [
        session
        for session in sessions
        if session.id != exclude_session_id
        and session.student is not None
        and names_similar(student_name, session.student.full_name)
    ]
    if matches:
        log.info(
            "possible_duplicate_student",
            name=student_name,
            matches=[m.id for m in matches],
        )
    return matches

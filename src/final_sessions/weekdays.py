"""Weekday names for matching dates against recurring lecture schedules.

Lecture schedules store the day as a name, not a number, in the language the
timetable office uses. Tables are indexed Sunday = 0 .. Saturday = 6.
"""

from datetime import date

INDONESIAN_WEEKDAYS: tuple[str, ...] = (
    "Minggu",
    "Senin",
    "Selasa",
    "Rabu",
    "Kamis",
    "Jumat",
    "Sabtu",
)

ENGLISH_WEEKDAYS: tuple[str, ...] = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

WEEKDAY_TABLES: dict[str, tuple[str, ...]] = {
    "id": INDONESIAN_WEEKDAYS,
    "en": ENGLISH_WEEKDAYS,
}


def weekday_table(locale: str) -> tuple[str, ...]:
    """Return the weekday-name table for a locale key ("id" or "en")."""
    try:
        return WEEKDAY_TABLES[locale]
    except KeyError:
        raise ValueError(
            f"Unknown weekday locale {locale!r}. Valid: {list(WEEKDAY_TABLES)}"
        ) from None


def sunday_index(day: date) -> int:
    """Day-of-week number with Sunday = 0 (Python's weekday() has Monday = 0)."""
    return (day.weekday() + 1) % 7


def weekday_name(day: date, names: tuple[str, ...] = INDONESIAN_WEEKDAYS) -> str:
    """Name of the weekday of ``day`` taken from ``names``."""
    if len(names) != 7:
        raise ValueError(f"Weekday table needs 7 names, got {len(names)}")
    return names[sunday_index(day)]


def same_weekday(a: str | None, b: str | None) -> bool:
    """Compare stored day names, ignoring case and surrounding whitespace."""
    if not a or not b:
        return False
    return a.strip().casefold() == b.strip().casefold()

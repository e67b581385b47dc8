"""Error hierarchy for data-source retry classification and booking failures.

Data-source errors split into transient failures (should retry) and permanent
failures (should not retry), so tenacity retry decorators can classify them:

    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(3))
    async def list_rooms(self):
        ...

Booking errors are raised by the session service when a write is refused.
"""


class SchedulingError(Exception):
    """Base exception for all scheduling errors."""

    pass


class DataSourceError(SchedulingError):
    """A read or write against the backing data store failed."""

    pass


class TransientError(DataSourceError):
    """Temporary failure that may succeed on retry.

    Examples: network timeouts, connection resets, 503 Service Unavailable.
    """

    pass


class RateLimitError(TransientError):
    """Rate limit exceeded - needs longer backoff.

    Inherits from TransientError so tenacity will retry it.
    """

    pass


class PermanentError(DataSourceError):
    """Failure that won't succeed on retry.

    Examples: malformed filter, unknown column, rejected payload.
    """

    pass


class AuthenticationError(PermanentError):
    """API key missing, expired or lacking permission on the table."""

    pass


class DuplicateRecordError(PermanentError):
    """Unique constraint violated (PostgreSQL code 23505)."""

    pass


class MissingReferenceError(PermanentError):
    """Foreign key points at a row that no longer exists (code 23503)."""

    pass


class RecordNotFoundError(PermanentError):
    """An update or lookup by id matched no row."""

    pass


class BookingError(SchedulingError):
    """A session could not be saved."""

    pass


class RoomConflictError(BookingError):
    """The chosen room is already taken for the requested slot."""

    def __init__(self, room_id: str, message: str | None = None) -> None:
        self.room_id = room_id
        super().__init__(message or f"Room {room_id} is not available for this slot")


class AvailabilityUnknownError(BookingError):
    """Availability could not be verified, so the write is blocked."""

    pass


class StudentResolutionError(BookingError):
    """The student for a session could not be found or created."""

    pass


class StudyProgramNotFoundError(StudentResolutionError):
    """A new student references a study program that does not exist."""

    pass


class EmptyExportError(SchedulingError):
    """No sessions matched the export filter."""

    pass

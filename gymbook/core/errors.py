"""
Booking outcomes that are not successes, and how the HTTP layer reports them.

Every class below is an expected, recoverable result of a booking operation. Services
raise them synchronously; routes turn them into HTTPException via booking_error_to_http.
Persistence failures (SQLAlchemyError, SlotBusy) are a separate family and map to 503.
"""
from fastapi import HTTPException, status


class BookingError(Exception):
    """Base class for domain outcomes reported to the caller."""

    message = 'Booking request rejected.'

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class WindowClosed(BookingError):
    message = 'Reservations are not open for you at this time.'

    def __init__(self, phase, message: str | None = None):
        self.phase = phase
        super().__init__(message or _WINDOW_CLOSED_MESSAGES.get(getattr(phase, 'value', phase), self.message))


class SlotFull(BookingError):
    message = 'This class is full. You can join the waiting list.'


class AlreadyReserved(BookingError):
    message = 'You already have a reservation for this class.'


class NotFound(BookingError):
    message = 'No active reservation found.'


class NotEligible(BookingError):
    message = 'You cannot join the waiting list for this class.'


class PermissionDenied(BookingError):
    message = 'Staff accounts cannot book classes.'


class SlotNotFound(BookingError):
    message = 'Class not found.'


class SlotBusy(Exception):
    """Another request held the slot for longer than SLOT_LOCK_TIMEOUT_SECONDS."""


_WINDOW_CLOSED_MESSAGES = {
    'not_open': 'Reservations for this class are not open yet.',
    'priority': 'Reservations are currently open to priority members only.',
    'passed': 'This class has already taken place.',
}


# ---------------------------------------------------------------------------
# Error rules: (exception type, status_code). First match wins.
# ---------------------------------------------------------------------------

BOOKING_ERROR_RULES: list[tuple[type[BookingError], int]] = [
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (SlotNotFound, status.HTTP_404_NOT_FOUND),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (AlreadyReserved, status.HTTP_409_CONFLICT),
    (SlotFull, status.HTTP_409_CONFLICT),
    (NotEligible, status.HTTP_409_CONFLICT),
    (WindowClosed, status.HTTP_409_CONFLICT),
]

MSG_DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'
MSG_SLOT_BUSY = 'This class is being updated by another request. Please retry.'


def booking_error_to_http(exc: BookingError) -> HTTPException:
    """
    Map a BookingError into an HTTPException with its specific message.
    Unknown subclasses fall back to 400.
    """
    for error_type, status_code in BOOKING_ERROR_RULES:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

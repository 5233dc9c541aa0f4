from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from venue.core.request_context import request_id_ctx_var


class VenueError(Exception):
    """Base class for errors raised by the reservation engine.

    Every subclass carries a stable ``code`` the API layer exposes to clients and the
    HTTP status it maps to, so callers can tell failure kinds apart without parsing
    messages.
    """

    code = "venue_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str, **context: Any) -> None:
        super().__init__(detail)
        self.detail = detail
        self.context = context


class InvalidBookingTime(VenueError):
    code = "invalid_booking_time"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, time_value: str, operating_hours: str) -> None:
        super().__init__(
            f"Invalid booking time: {time_value}. Operating hours: {operating_hours}",
            time=time_value,
            operating_hours=operating_hours,
        )
        self.time_value = time_value
        self.operating_hours = operating_hours


class ReservationNotFound(VenueError):
    code = "reservation_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, reservation_id: int) -> None:
        super().__init__(f"Reservation with ID {reservation_id} does not exist", reservation_id=reservation_id)


class PermissionDenied(VenueError):
    code = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, detail: str = "You can only manage your own reservations") -> None:
        super().__init__(detail)


class AlreadyCancelled(VenueError):
    code = "already_cancelled"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, reservation_id: int) -> None:
        super().__init__("This reservation has already been cancelled", reservation_id=reservation_id)


class ConcurrencyConflict(VenueError):
    code = "concurrency_conflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, detail: str = "Slot is being booked concurrently. Retry the request.") -> None:
        super().__init__(detail)


class WaitListEntryNotFound(VenueError):
    code = "wait_list_entry_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entry_id: int) -> None:
        super().__init__(f"Wait list entry with ID {entry_id} does not exist", entry_id=entry_id)


class ReservationRejected(VenueError):
    """A create request that was turned down for an expected business reason."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, code: str, detail: str) -> None:
        super().__init__(detail)
        self.code = code


class BlockedSlotNotFound(VenueError):
    code = "blocked_slot_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, blocked_slot_id: int) -> None:
        super().__init__(f"Blocked slot with ID {blocked_slot_id} does not exist", blocked_slot_id=blocked_slot_id)


class AlreadyQueued(VenueError):
    code = "already_queued"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self) -> None:
        super().__init__("You are already waiting for this slot")


class QueueEntryClosed(VenueError):
    code = "queue_entry_closed"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, entry_id: int, queue_state: str) -> None:
        super().__init__(f"Wait list entry {entry_id} is already {queue_state}", entry_id=entry_id)


class ReservationNotConfirmed(VenueError):
    code = "reservation_not_confirmed"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, reservation_id: int) -> None:
        super().__init__("Only confirmed reservations can be confirmed for attendance", reservation_id=reservation_id)


def _error_payload(code: str, message: str, detail):
    return {
        "error": {
            "code": code,
            "message": message,
            "detail": detail,
        },
        "detail": detail,
        "request_id": request_id_ctx_var.get(),
    }


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(
            code=f"http_{exc.status_code}",
            message=str(exc.detail),
            detail=exc.detail,
        ),
        headers=exc.headers,
    )


async def venue_error_handler(_: Request, exc: VenueError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(code=exc.code, message=exc.detail, detail=exc.detail),
    )


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_payload(
            code="validation_error",
            message="Request validation failed",
            detail=jsonable_errors(exc),
        ),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    # pydantic may embed the raw exception object under "ctx"
    errors = []
    for error in exc.errors():
        cleaned = dict(error)
        if "ctx" in cleaned:
            cleaned["ctx"] = {key: str(value) for key, value in cleaned["ctx"].items()}
        errors.append(cleaned)
    return errors

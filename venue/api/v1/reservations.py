import logging
from collections.abc import Callable
from datetime import date, datetime
from typing import TypeVar

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from venue.api.deps import get_current_user, get_notifier, get_now
from venue.core.exceptions import ConcurrencyConflict, PermissionDenied, ReservationNotFound, ReservationRejected
from venue.core.rate_limiter import LimitedAction, enforce_rate_limit, slot_identity
from venue.db.models import Reservation, RoomType, User
from venue.db.session import get_db
from venue.schemas.availability import (
    AvailabilityResponse,
    ConsecutiveSlotsResponse,
    MaxDurationResponse,
    SlotStateResponse,
)
from venue.schemas.reservation import (
    TIME_PATTERN,
    CancellationResponse,
    ReservationCreateRequest,
    ReservationCreateResponse,
    ReservationResponse,
    WaitListPositionResponse,
)
from venue.services.availability_service import (
    SlotStatus,
    get_consecutive_available_slots,
    get_slot_statuses,
)
from venue.services.duration_service import describe_duration
from venue.services.notification_service import NotificationDispatcher
from venue.services.reservation_service import (
    cancel_reservation,
    confirm_attendance,
    create_reservation,
    list_user_reservations,
)
from venue.services.time_service import generate_start_slots, get_operating_hours
from venue.services.wait_list_service import get_waitlist_position

router = APIRouter(prefix="/reservations", tags=["reservations"])
logger = logging.getLogger(__name__)

T = TypeVar("T")


def _retry_once_on_conflict(db: Session, operation: Callable[[], T]) -> T:
    try:
        return operation()
    except ConcurrencyConflict:
        logger.info("concurrency_conflict_retry")
        db.expire_all()
        return operation()


@router.get("/availability", response_model=AvailabilityResponse, status_code=status.HTTP_200_OK)
def availability(
    day: date = Query(alias="date"),
    room_type: RoomType = Query(alias="type"),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> AvailabilityResponse:
    states = get_slot_statuses(db, day, room_type, now=now)
    start_slots = set(generate_start_slots(day))
    return AvailabilityResponse(
        date=day,
        room_type=room_type,
        operating_hours=get_operating_hours(day).display,
        slots=[SlotStateResponse.model_validate(state) for state in states],
        available_start_times=[
            state.time for state in states if state.time in start_slots and state.status is SlotStatus.AVAILABLE
        ],
    )


@router.get("/consecutive", response_model=ConsecutiveSlotsResponse, status_code=status.HTTP_200_OK)
def consecutive_slots(
    day: date = Query(alias="date"),
    room_type: RoomType = Query(alias="type"),
    duration_hours: float = Query(gt=0, le=14, multiple_of=0.5),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> ConsecutiveSlotsResponse:
    windows = get_consecutive_available_slots(db, day, room_type, duration_hours, now=now)
    return ConsecutiveSlotsResponse(date=day, room_type=room_type, duration_hours=duration_hours, windows=windows)


@router.get("/max-duration", response_model=MaxDurationResponse, status_code=status.HTTP_200_OK)
def max_duration(
    day: date = Query(alias="date"),
    room_type: RoomType = Query(alias="type"),
    start_time: str = Query(pattern=TIME_PATTERN),
    party_size: int = Query(ge=1, le=50),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> MaxDurationResponse:
    states = get_slot_statuses(db, day, room_type, now=now)
    limit = describe_duration(start_time, states, party_size, room_type, day)
    return MaxDurationResponse(
        date=day,
        room_type=room_type,
        start_time=start_time,
        party_size=party_size,
        max_hours=limit.max_hours,
        limited_by_closing_time=limit.limited_by_closing_time,
        limited_by_bookings=limit.limited_by_bookings,
        limited_by_party_size=limit.limited_by_party_size,
    )


@router.post("", response_model=ReservationCreateResponse, status_code=status.HTTP_201_CREATED)
def create(
    payload: ReservationCreateRequest,
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> ReservationCreateResponse:
    enforce_rate_limit(LimitedAction.RESERVATION_CREATE, current_user.id)
    enforce_rate_limit(
        LimitedAction.RESERVATION_SLOT,
        slot_identity(current_user.id, payload.date, payload.start_time, payload.room_type.value),
    )
    outcome = _retry_once_on_conflict(
        db,
        lambda: create_reservation(
            db,
            user_id=current_user.id,
            day=payload.date,
            start_time=payload.start_time,
            room_type=payload.room_type,
            party_size=payload.party_size,
            notes=payload.notes,
            end_time=payload.end_time,
            now=now,
        ),
    )
    if outcome.rejection is not None:
        raise ReservationRejected(outcome.rejection.value, outcome.rejection.detail)

    return ReservationCreateResponse(
        reservation=ReservationResponse.model_validate(outcome.reservation),
        waitlisted=outcome.waitlisted,
        waitlist_position=outcome.waitlist_position,
    )


@router.get("/me", response_model=list[ReservationResponse], status_code=status.HTTP_200_OK)
def my_reservations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[ReservationResponse]:
    return [ReservationResponse.model_validate(item) for item in list_user_reservations(db, current_user.id)]


@router.patch("/{reservation_id}/cancel", response_model=CancellationResponse, status_code=status.HTTP_200_OK)
def cancel(
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> CancellationResponse:
    result = _retry_once_on_conflict(
        db,
        lambda: cancel_reservation(db, reservation_id, current_user, notifier=notifier, now=now),
    )
    return CancellationResponse(
        reservation=ReservationResponse.model_validate(result.reservation),
        promoted_reservation_id=result.promoted_reservation_id,
    )


@router.post(
    "/{reservation_id}/confirm-attendance",
    response_model=ReservationResponse,
    status_code=status.HTTP_200_OK,
)
def confirm(
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    now: datetime = Depends(get_now),
    db: Session = Depends(get_db),
) -> ReservationResponse:
    reservation = confirm_attendance(db, reservation_id, current_user, now=now)
    return ReservationResponse.model_validate(reservation)


@router.get(
    "/{reservation_id}/wait-list-position",
    response_model=WaitListPositionResponse,
    status_code=status.HTTP_200_OK,
)
def wait_list_position(
    reservation_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> WaitListPositionResponse:
    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        raise ReservationNotFound(reservation_id)
    if reservation.user_id != current_user.id and not current_user.is_admin:
        raise PermissionDenied()
    return WaitListPositionResponse(
        reservation_id=reservation.id,
        status=reservation.status,
        position=get_waitlist_position(db, reservation.id),
    )

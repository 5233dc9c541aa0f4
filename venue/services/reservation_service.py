"""Reservation lifecycle: create, cancel with waitlist promotion, attendance confirmation.

State machine: ``confirmed`` or ``waitlisted`` on creation, ``waitlisted -> confirmed`` by
promotion, anything not yet cancelled ``-> cancelled``. Nothing leaves ``cancelled``.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from enum import Enum

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from venue.core.config import settings
from venue.core.exceptions import (
    AlreadyCancelled,
    ConcurrencyConflict,
    PermissionDenied,
    ReservationNotConfirmed,
    ReservationNotFound,
)
from venue.core.metrics import RESERVATION_OUTCOMES
from venue.db.models import Reservation, ReservationStatus, RoomType, User
from venue.services.availability_service import is_range_free
from venue.services.duration_service import party_size_cap
from venue.services.notification_service import NotificationDispatcher, SmsQueueDispatcher, dispatch_safely
from venue.services.time_service import (
    duration_minutes,
    get_slot_end_time,
    is_reservation_in_past,
    is_within_booking_window,
    validate_time_range,
)
from venue.services.wait_list_service import add_to_waitlist, lock_slot_key, promote_from_waitlist

logger = logging.getLogger(__name__)


class ReservationRejection(str, Enum):
    OUTSIDE_BOOKING_WINDOW = "outside_booking_window"
    IN_PAST = "in_past"
    EXCEEDS_BAR_TIME_LIMIT = "exceeds_bar_time_limit"

    @property
    def detail(self) -> str:
        if self is ReservationRejection.OUTSIDE_BOOKING_WINDOW:
            return f"Reservations can only be made up to {settings.booking_window_days} days in advance"
        return REJECTION_DETAILS[self]


REJECTION_DETAILS = {
    ReservationRejection.IN_PAST: "Cannot make reservations for past time slots",
    ReservationRejection.EXCEEDS_BAR_TIME_LIMIT: "Bar reservations for parties under 3 are limited to 2 hours",
}


@dataclass(frozen=True)
class ReservationOutcome:
    reservation: Reservation | None = None
    waitlist_position: int | None = None
    rejection: ReservationRejection | None = None

    @property
    def accepted(self) -> bool:
        return self.rejection is None

    @property
    def waitlisted(self) -> bool:
        return self.reservation is not None and self.reservation.is_waitlisted


@dataclass(frozen=True)
class CancellationResult:
    reservation: Reservation
    promoted_reservation_id: int | None = None


def _reject(rejection: ReservationRejection, room_type: RoomType) -> ReservationOutcome:
    RESERVATION_OUTCOMES.labels(room_type=room_type.value, outcome=rejection.value).inc()
    logger.info("reservation_rejected room_type=%s reason=%s", room_type.value, rejection.value)
    return ReservationOutcome(rejection=rejection)


def create_reservation(
    db: Session,
    user_id: int,
    day: date,
    start_time: str,
    room_type: RoomType | str,
    party_size: int,
    notes: str | None = None,
    end_time: str | None = None,
    now: datetime | None = None,
) -> ReservationOutcome:
    room_type = RoomType(room_type)

    if not is_within_booking_window(day, now=now):
        return _reject(ReservationRejection.OUTSIDE_BOOKING_WINDOW, room_type)
    if is_reservation_in_past(day, start_time, now=now):
        return _reject(ReservationRejection.IN_PAST, room_type)

    end_time = end_time or get_slot_end_time(start_time, day)
    validate_time_range(start_time, end_time, day)

    cap = party_size_cap(room_type, party_size)
    if cap is not None and duration_minutes(start_time, end_time, day) > cap * 60:
        return _reject(ReservationRejection.EXCEEDS_BAR_TIME_LIMIT, room_type)

    lock_slot_key(db, day, start_time, room_type)
    if not is_range_free(db, day, start_time, end_time, room_type, now=now):
        reservation, position = add_to_waitlist(
            db,
            user_id=user_id,
            day=day,
            start_time=start_time,
            room_type=room_type,
            party_size=party_size,
            notes=notes,
            end_time=end_time,
        )
        RESERVATION_OUTCOMES.labels(room_type=room_type.value, outcome="waitlisted").inc()
        return ReservationOutcome(reservation=reservation, waitlist_position=position)

    reservation = Reservation(
        user_id=user_id,
        room_type=room_type.value,
        date=day,
        start_time=start_time,
        end_time=end_time,
        party_size=party_size,
        status=ReservationStatus.CONFIRMED.value,
        notes=notes,
    )
    db.add(reservation)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning(
            "reservation_conflict date=%s start_time=%s room_type=%s",
            day,
            start_time,
            room_type.value,
        )
        raise ConcurrencyConflict() from None

    db.refresh(reservation)
    RESERVATION_OUTCOMES.labels(room_type=room_type.value, outcome="confirmed").inc()
    logger.info(
        "reservation_created id=%s status=%s date=%s start_time=%s room_type=%s",
        reservation.id,
        reservation.status,
        day,
        start_time,
        room_type.value,
    )
    return ReservationOutcome(reservation=reservation)


def _get_owned_reservation(db: Session, reservation_id: int, requesting_user: User | None) -> Reservation:
    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        raise ReservationNotFound(reservation_id)
    # None is the system actor (scheduled jobs)
    if requesting_user is not None and not requesting_user.is_admin and reservation.user_id != requesting_user.id:
        raise PermissionDenied()
    return reservation


def cancel_reservation(
    db: Session,
    reservation_id: int,
    requesting_user: User | None,
    notifier: NotificationDispatcher | None = None,
    now: datetime | None = None,
    automatic: bool = False,
) -> CancellationResult:
    reservation = _get_owned_reservation(db, reservation_id, requesting_user)
    if reservation.is_cancelled:
        raise AlreadyCancelled(reservation_id)

    was_confirmed = reservation.is_confirmed
    lock_slot_key(db, reservation.date, reservation.start_time, reservation.room_type)
    reservation.cancel(now)
    promoted_id = None
    try:
        db.flush()
        if was_confirmed:
            promoted_id = promote_from_waitlist(
                db,
                reservation.date,
                reservation.start_time,
                reservation.room_type,
                now=now,
                commit=False,
            )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConcurrencyConflict() from None

    db.refresh(reservation)
    logger.info(
        "reservation_cancelled id=%s automatic=%s promoted_id=%s",
        reservation.id,
        automatic,
        promoted_id,
    )

    notifier = notifier or SmsQueueDispatcher()
    dispatch_safely(db, notifier.send_cancellation, reservation, automatic=automatic)
    if promoted_id is not None:
        promoted = db.get(Reservation, promoted_id)
        dispatch_safely(db, notifier.send_promotion, promoted)

    return CancellationResult(reservation=reservation, promoted_reservation_id=promoted_id)


def confirm_attendance(
    db: Session,
    reservation_id: int,
    requesting_user: User,
    now: datetime | None = None,
) -> Reservation:
    reservation = _get_owned_reservation(db, reservation_id, requesting_user)
    if reservation.is_cancelled:
        raise AlreadyCancelled(reservation_id)
    if not reservation.is_confirmed:
        raise ReservationNotConfirmed(reservation_id)

    if reservation.attendance_confirmed_at is None:
        reservation.attendance_confirmed_at = now or datetime.now(UTC)
        db.commit()
        db.refresh(reservation)
        logger.info("attendance_confirmed reservation_id=%s", reservation.id)
    return reservation


def list_user_reservations(db: Session, user_id: int) -> list[Reservation]:
    return list(
        db.scalars(
            select(Reservation)
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.date.desc(), Reservation.start_time, Reservation.id)
        ).all()
    )


def list_reservations_for_date(db: Session, day: date, room_type: RoomType | str | None = None) -> list[Reservation]:
    query = select(Reservation).where(Reservation.date == day)
    if room_type is not None:
        query = query.where(Reservation.room_type == RoomType(room_type).value)
    return list(db.scalars(query.order_by(Reservation.start_time, Reservation.created_at, Reservation.id)).all())

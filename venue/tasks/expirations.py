import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from venue.core.config import settings
from venue.core.exceptions import AlreadyCancelled, ConcurrencyConflict
from venue.db.models import Reservation, ReservationStatus
from venue.db.session import SessionLocal
from venue.services.notification_service import NotificationDispatcher
from venue.services.reservation_service import cancel_reservation
from venue.services.time_service import hours_until
from venue.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def auto_cancel_unconfirmed(
    db: Session,
    now: datetime | None = None,
    notifier: NotificationDispatcher | None = None,
) -> list[int]:
    """Release reminded reservations whose attendance was never confirmed.

    Cancellation goes through the regular lifecycle, so the slot is offered to the
    waitlist exactly as if the guest had cancelled.
    """
    current_time = now or datetime.now(UTC)
    reminded_before = current_time - timedelta(hours=settings.auto_cancel_after_reminder_hours)

    candidates = db.scalars(
        select(Reservation)
        .where(
            Reservation.status == ReservationStatus.CONFIRMED.value,
            Reservation.reminder_sent_at.is_not(None),
            Reservation.attendance_confirmed_at.is_(None),
        )
        .order_by(Reservation.id)
    ).all()

    cancelled: list[int] = []
    for reservation in candidates:
        if _as_utc(reservation.reminder_sent_at) > reminded_before:
            continue
        hours_left = hours_until(reservation.date, reservation.start_time, now=current_time)
        if not 0 <= hours_left <= settings.auto_cancel_before_start_hours:
            continue
        try:
            cancel_reservation(
                db,
                reservation.id,
                requesting_user=None,
                notifier=notifier,
                now=current_time,
                automatic=True,
            )
        except (AlreadyCancelled, ConcurrencyConflict) as exc:
            logger.warning("auto_cancel_skipped reservation_id=%s reason=%s", reservation.id, exc.code)
            continue
        cancelled.append(reservation.id)

    if cancelled:
        logger.info("auto_cancelled count=%s ids=%s", len(cancelled), cancelled)
    return cancelled


@celery_app.task(name="reservations.auto_cancel_unconfirmed")
def auto_cancel_unconfirmed_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        return {"auto_cancelled": len(auto_cancel_unconfirmed(db=db))}
    finally:
        db.close()

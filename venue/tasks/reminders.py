import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from venue.core.config import settings
from venue.db.models import Reservation, ReservationStatus, RoomType
from venue.db.session import SessionLocal
from venue.services.notification_service import NotificationDispatcher, SmsQueueDispatcher, dispatch_safely
from venue.services.time_service import hours_until, operating_today
from venue.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)

REMINDED_ROOM_TYPES = (RoomType.BAR.value, RoomType.MAHJONG.value)


def _in_reminder_window(hours_left: float) -> bool:
    upper = settings.reminder_lead_hours
    lower = upper - settings.reminder_window_minutes / 60
    return lower < hours_left <= upper


def queue_due_reminders(
    db: Session,
    now: datetime | None = None,
    notifier: NotificationDispatcher | None = None,
) -> int:
    """Queue one attendance reminder per confirmed reservation starting ~4 hours from now."""
    current_time = now or datetime.now(UTC)
    notifier = notifier or SmsQueueDispatcher()
    today = operating_today(current_time)

    # sessions run past midnight, so yesterday's late slots can still be upcoming
    candidates = db.scalars(
        select(Reservation).where(
            Reservation.status == ReservationStatus.CONFIRMED.value,
            Reservation.room_type.in_(REMINDED_ROOM_TYPES),
            Reservation.reminder_sent_at.is_(None),
            Reservation.date >= today - timedelta(days=1),
            Reservation.date <= today + timedelta(days=1),
        )
    ).all()

    reminded = 0
    for reservation in candidates:
        if not _in_reminder_window(hours_until(reservation.date, reservation.start_time, now=current_time)):
            continue
        # auto-cancel keys off reminder_sent_at, so only stamp a reminder that was queued
        if not dispatch_safely(db, notifier.send_reminder, reservation):
            logger.warning("reminder_not_queued reservation_id=%s", reservation.id)
            continue
        reservation.reminder_sent_at = current_time
        db.commit()
        reminded += 1

    if reminded:
        logger.info("reminders_queued count=%s", reminded)
    return reminded


@celery_app.task(name="reservations.queue_reminders")
def queue_due_reminders_task() -> dict[str, int]:
    db = SessionLocal()
    try:
        return {"reminded": queue_due_reminders(db=db)}
    finally:
        db.close()

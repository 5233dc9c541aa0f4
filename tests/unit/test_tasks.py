from datetime import UTC, date, datetime, timedelta

from sqlalchemy import select

from venue.db.models import (
    DeliveryStatus,
    Notification,
    NotificationKind,
    Reservation,
    ReservationStatus,
    SmsMessage,
)
from venue.services.time_service import get_slot_end_time
from venue.tasks.expirations import auto_cancel_unconfirmed
from venue.tasks.reminders import queue_due_reminders

THURSDAY = date(2024, 6, 6)
# 14:30 in New York: 19:00 is 4.5 hours away, 18:30 is 4 hours away
AFTERNOON = datetime(2024, 6, 6, 18, 30, tzinfo=UTC)


def _reservation(db, user, start_time, status=ReservationStatus.CONFIRMED, end_time=None, **kwargs) -> Reservation:
    reservation = Reservation(
        user_id=user.id,
        room_type="bar",
        date=THURSDAY,
        start_time=start_time,
        end_time=end_time or get_slot_end_time(start_time, THURSDAY),
        party_size=4,
        status=status.value,
        **kwargs,
    )
    db.add(reservation)
    db.commit()
    return reservation


def test_reminders_are_queued_once_for_reservations_four_hours_out(db, user_factory):
    guest = user_factory("guest@example.com")
    due = _reservation(db, guest, "18:30")
    later = _reservation(db, guest, "19:00")
    _reservation(db, guest, "18:00", status=ReservationStatus.WAITLISTED)

    assert queue_due_reminders(db, now=AFTERNOON) == 1
    assert queue_due_reminders(db, now=AFTERNOON) == 0

    db.expire_all()
    assert db.get(Reservation, due.id).reminder_sent_at is not None
    assert db.get(Reservation, later.id).reminder_sent_at is None
    notification = db.scalar(select(Notification))
    assert notification.kind == NotificationKind.REMINDER.value
    message = db.scalar(select(SmsMessage))
    assert f"/reservations/{due.id}/confirm-attendance" in message.message
    assert "at 6:30 PM for a party of 4." in message.message


def test_unconfirmed_reservation_is_released_to_the_waitlist(db, user_factory):
    holder = user_factory("holder@example.com")
    waiting = user_factory("waiting@example.com")
    reminded_at = datetime(2024, 6, 6, 18, 30, tzinfo=UTC)
    # 18:00 in New York, the reservation starts at 18:30
    run_at = reminded_at + timedelta(hours=3, minutes=30)
    stale = _reservation(db, holder, "18:30", reminder_sent_at=reminded_at)
    confirmed = _reservation(
        db, holder, "19:00", reminder_sent_at=reminded_at, attendance_confirmed_at=reminded_at
    )
    queued = _reservation(db, waiting, "18:30", status=ReservationStatus.WAITLISTED)

    cancelled = auto_cancel_unconfirmed(db, now=run_at)

    assert cancelled == [stale.id]
    db.expire_all()
    assert db.get(Reservation, stale.id).status == ReservationStatus.CANCELLED.value
    assert db.get(Reservation, queued.id).status == ReservationStatus.CONFIRMED.value
    assert db.get(Reservation, confirmed.id).status == ReservationStatus.CONFIRMED.value
    kinds = sorted(notification.kind for notification in db.scalars(select(Notification)).all())
    assert kinds == [NotificationKind.AUTO_CANCELLED.value, NotificationKind.PROMOTION.value]


def test_recent_reminder_is_not_auto_cancelled(db, user_factory):
    holder = user_factory("holder@example.com")
    reminded_at = datetime(2024, 6, 6, 20, 30, tzinfo=UTC)
    _reservation(db, holder, "18:30", reminder_sent_at=reminded_at)

    assert auto_cancel_unconfirmed(db, now=datetime(2024, 6, 6, 22, 0, tzinfo=UTC)) == []


def test_guest_without_phone_is_not_reminded_or_auto_cancelled(db, user_factory):
    guest = user_factory("nophone@example.com", phone=None)
    booked = _reservation(db, guest, "18:30")

    assert queue_due_reminders(db, now=AFTERNOON) == 0
    assert auto_cancel_unconfirmed(db, now=AFTERNOON + timedelta(hours=3, minutes=30)) == []

    db.expire_all()
    reservation = db.get(Reservation, booked.id)
    assert reservation.reminder_sent_at is None
    assert reservation.status == ReservationStatus.CONFIRMED.value
    notification = db.scalar(select(Notification))
    assert notification.kind == NotificationKind.REMINDER.value
    assert notification.status == DeliveryStatus.FAILED.value
    assert db.scalar(select(SmsMessage)) is None

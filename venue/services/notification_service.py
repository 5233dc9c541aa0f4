"""Notification side effects of reservation state changes.

Delivery itself is external: texts are written to the ``sms_queue`` table and a separate
sender drains it. Dispatch runs after the triggering state change has been committed and
never raises into the caller.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from venue.core.config import settings
from venue.db.models import DeliveryStatus, Notification, NotificationKind, Reservation, SmsMessage, User
from venue.services.time_service import format_display_date, format_display_time

logger = logging.getLogger(__name__)


class NotificationDispatcher(Protocol):
    def send_cancellation(self, db: Session, reservation: Reservation, automatic: bool = False) -> bool: ...

    def send_promotion(self, db: Session, reservation: Reservation) -> bool: ...

    def send_reminder(self, db: Session, reservation: Reservation) -> bool: ...


def _describe(reservation: Reservation) -> str:
    return (
        f"{reservation.room_type} reservation on {format_display_date(reservation.date)} "
        f"at {format_display_time(reservation.start_time)}"
    )


def build_message(kind: NotificationKind, reservation: Reservation) -> str:
    description = _describe(reservation)
    if kind is NotificationKind.CANCELLATION:
        return f"Your {description} has been cancelled."
    if kind is NotificationKind.AUTO_CANCELLED:
        return f"Your {description} was released because attendance was not confirmed in time."
    if kind is NotificationKind.PROMOTION:
        return f"Good news! A spot opened up and your {description} is now confirmed."
    confirm_url = f"{settings.public_base_url}/reservations/{reservation.id}/confirm-attendance"
    return (
        f"Reminder: your {description} for a party of {reservation.party_size}. "
        f"Please confirm attendance at {confirm_url} or the slot may be released."
    )


class SmsQueueDispatcher:
    """Records a notification per event and enqueues the text for the SMS sender."""

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))

    def _already_sent(self, db: Session, reservation_id: int, kind: NotificationKind) -> bool:
        existing = db.scalar(
            select(Notification.id).where(
                Notification.reservation_id == reservation_id,
                Notification.kind == kind.value,
            )
        )
        return existing is not None

    def _enqueue(self, db: Session, reservation: Reservation, kind: NotificationKind) -> bool:
        if self._already_sent(db, reservation.id, kind):
            logger.info("notification_skipped reservation_id=%s kind=%s reason=duplicate", reservation.id, kind.value)
            return False

        user = db.get(User, reservation.user_id)
        notification = Notification(
            user_id=reservation.user_id,
            reservation_id=reservation.id,
            kind=kind.value,
            method="sms",
            status=DeliveryStatus.PENDING.value,
        )
        db.add(notification)

        if user is None or not user.phone:
            notification.status = DeliveryStatus.FAILED.value
            notification.sent_at = self._clock()
            db.commit()
            logger.warning(
                "notification_failed reservation_id=%s kind=%s reason=no_phone",
                reservation.id,
                kind.value,
            )
            return False

        db.flush()
        db.add(
            SmsMessage(
                phone_number=user.phone,
                message=build_message(kind, reservation),
                status=DeliveryStatus.PENDING.value,
                notification_id=notification.id,
            )
        )
        db.commit()
        logger.info("notification_queued reservation_id=%s kind=%s", reservation.id, kind.value)
        return True

    def send_cancellation(self, db: Session, reservation: Reservation, automatic: bool = False) -> bool:
        kind = NotificationKind.AUTO_CANCELLED if automatic else NotificationKind.CANCELLATION
        return self._enqueue(db, reservation, kind)

    def send_promotion(self, db: Session, reservation: Reservation) -> bool:
        return self._enqueue(db, reservation, NotificationKind.PROMOTION)

    def send_reminder(self, db: Session, reservation: Reservation) -> bool:
        return self._enqueue(db, reservation, NotificationKind.REMINDER)


def dispatch_safely(db: Session, send: Callable[..., bool], *args, **kwargs) -> bool:
    """Run a dispatcher call, logging and discarding any failure."""
    try:
        return send(db, *args, **kwargs)
    except Exception:
        db.rollback()
        logger.exception("notification_dispatch_failed handler=%s", getattr(send, "__name__", repr(send)))
        return False


def mark_sms_delivery(db: Session, message: SmsMessage, delivered: bool, now: datetime | None = None) -> SmsMessage:
    """Apply the external sender's delivery report to a queued text and its notification."""
    sent_at = now or datetime.now(UTC)
    message.status = DeliveryStatus.SENT.value if delivered else DeliveryStatus.FAILED.value
    message.sent_at = sent_at
    if message.notification is not None:
        message.notification.status = message.status
        message.notification.sent_at = sent_at
    db.commit()
    db.refresh(message)
    return message


def list_sms_queue(
    db: Session,
    status: DeliveryStatus | str | None = DeliveryStatus.PENDING,
    limit: int = 50,
    offset: int = 0,
) -> list[SmsMessage]:
    query = select(SmsMessage)
    if status is not None:
        query = query.where(SmsMessage.status == DeliveryStatus(status).value)
    return list(db.scalars(query.order_by(SmsMessage.created_at, SmsMessage.id).limit(limit).offset(offset)).all())

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from venue.core.exceptions import (
    AlreadyQueued,
    ConcurrencyConflict,
    PermissionDenied,
    QueueEntryClosed,
    ReservationNotFound,
    WaitListEntryNotFound,
)
from venue.core.metrics import WAITLIST_PROMOTIONS
from venue.db.models import QueueState, Reservation, ReservationStatus, RoomType, User, WaitListEntry
from venue.services.availability_service import is_range_free
from venue.services.time_service import get_slot_end_time, time_to_minutes

logger = logging.getLogger(__name__)

SHARED_ROOM_LOCK_NAME = "shared"


def _is_postgresql_session(db: Session) -> bool:
    bind = db.get_bind()
    return bind is not None and bind.dialect.name == "postgresql"


def lock_slot_key(db: Session, day: date, start_time: str, room_type: RoomType | str) -> None:
    """Serialize writers of one slot key until the current transaction ends.

    Bar and mahjong share a room, so they share a lock name. Only PostgreSQL takes a real
    lock; elsewhere the confirmed-slot unique index is the only guard.
    """
    if not _is_postgresql_session(db):
        return
    room_type = RoomType(room_type)
    lock_name = SHARED_ROOM_LOCK_NAME if room_type.shares_room else room_type.value
    key = f"{day.isoformat()}|{start_time}|{lock_name}"
    db.execute(select(func.pg_advisory_xact_lock(func.hashtext(key))))


def _waitlisted_for_key(day: date, start_time: str, room_type: RoomType):
    return select(Reservation).where(
        Reservation.date == day,
        Reservation.start_time == start_time,
        Reservation.room_type == room_type.value,
        Reservation.status == ReservationStatus.WAITLISTED.value,
    )


def _count_waitlisted(db: Session, day: date, start_time: str, room_type: RoomType) -> int:
    return db.scalar(
        select(func.count(Reservation.id)).where(
            Reservation.date == day,
            Reservation.start_time == start_time,
            Reservation.room_type == room_type.value,
            Reservation.status == ReservationStatus.WAITLISTED.value,
        )
    )


def add_to_waitlist(
    db: Session,
    user_id: int,
    day: date,
    start_time: str,
    room_type: RoomType | str,
    party_size: int,
    notes: str | None = None,
    end_time: str | None = None,
) -> tuple[Reservation, int]:
    room_type = RoomType(room_type)
    position = _count_waitlisted(db, day, start_time, room_type) + 1

    reservation = Reservation(
        user_id=user_id,
        room_type=room_type.value,
        date=day,
        start_time=start_time,
        end_time=end_time or get_slot_end_time(start_time, day),
        party_size=party_size,
        status=ReservationStatus.WAITLISTED.value,
        notes=notes,
    )
    db.add(reservation)
    db.commit()
    db.refresh(reservation)

    logger.info(
        "waitlist_joined reservation_id=%s date=%s start_time=%s room_type=%s position=%s",
        reservation.id,
        day,
        start_time,
        room_type.value,
        position,
    )
    return reservation, position


def get_waitlist(db: Session, day: date, start_time: str, room_type: RoomType | str) -> list[Reservation]:
    query = _waitlisted_for_key(day, start_time, RoomType(room_type)).order_by(
        Reservation.created_at, Reservation.id
    )
    return list(db.scalars(query).all())


def get_waitlist_position(db: Session, reservation_id: int) -> int | None:
    """1-based queue position of a waitlisted reservation, or None once it left the queue."""
    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        raise ReservationNotFound(reservation_id)
    if not reservation.is_waitlisted:
        return None

    queue = get_waitlist(db, reservation.date, reservation.start_time, reservation.room_type)
    return [item.id for item in queue].index(reservation.id) + 1


def promote_from_waitlist(
    db: Session,
    day: date,
    start_time: str,
    room_type: RoomType | str,
    now: datetime | None = None,
    commit: bool = True,
) -> int | None:
    """Confirm the earliest waitlisted reservation for the key and return its id.

    With ``commit=False`` the change is only flushed, so a caller can make it part of a
    larger unit of work (cancellation).
    """
    room_type = RoomType(room_type)
    if commit:
        lock_slot_key(db, day, start_time, room_type)

    query = _waitlisted_for_key(day, start_time, room_type).order_by(Reservation.created_at, Reservation.id).limit(1)
    if _is_postgresql_session(db):
        query = query.with_for_update()
    candidate = db.scalar(query)
    if candidate is None:
        return None

    # waitlisted rows, the candidate included, must not count against its own range
    if not is_range_free(
        db,
        day,
        candidate.start_time,
        candidate.end_time,
        room_type,
        now=now,
        statuses=(ReservationStatus.CONFIRMED.value,),
    ):
        logger.info(
            "waitlist_promotion_skipped reservation_id=%s date=%s start_time=%s room_type=%s reason=range_taken",
            candidate.id,
            day,
            start_time,
            room_type.value,
        )
        return None

    candidate.promote(now)
    try:
        db.flush()
        if commit:
            db.commit()
    except IntegrityError:
        db.rollback()
        raise ConcurrencyConflict("Slot was confirmed concurrently. Retry the request.") from None

    WAITLIST_PROMOTIONS.labels(room_type=room_type.value).inc()
    logger.info(
        "waitlist_promoted reservation_id=%s date=%s start_time=%s room_type=%s",
        candidate.id,
        day,
        start_time,
        room_type.value,
    )
    return candidate.id


@dataclass(frozen=True)
class QueuePosition:
    entry: WaitListEntry
    position: int


def _waiting_entries(db: Session, day: date, start_time: str, room_type: RoomType) -> list[WaitListEntry]:
    return list(
        db.scalars(
            select(WaitListEntry)
            .where(
                WaitListEntry.date == day,
                WaitListEntry.start_time == start_time,
                WaitListEntry.room_type == room_type.value,
                WaitListEntry.queue_state == QueueState.WAITING.value,
            )
            .order_by(WaitListEntry.created_at, WaitListEntry.id)
        ).all()
    )


def get_queue(
    db: Session,
    day: date,
    start_time: str,
    room_type: RoomType | str = RoomType.POKER,
) -> list[QueuePosition]:
    entries = _waiting_entries(db, day, start_time, RoomType(room_type))
    return [QueuePosition(entry=entry, position=index) for index, entry in enumerate(entries, start=1)]


def join_queue(
    db: Session,
    user_id: int,
    day: date,
    start_time: str,
    room_type: RoomType | str = RoomType.POKER,
) -> QueuePosition:
    room_type = RoomType(room_type)
    time_to_minutes(start_time, day)

    waiting = _waiting_entries(db, day, start_time, room_type)
    if any(entry.user_id == user_id for entry in waiting):
        raise AlreadyQueued()

    entry = WaitListEntry(user_id=user_id, room_type=room_type.value, date=day, start_time=start_time)
    db.add(entry)
    db.commit()
    db.refresh(entry)

    logger.info(
        "queue_joined entry_id=%s date=%s start_time=%s room_type=%s position=%s",
        entry.id,
        day,
        start_time,
        room_type.value,
        len(waiting) + 1,
    )
    return QueuePosition(entry=entry, position=len(waiting) + 1)


def decline_queue_entry(
    db: Session,
    entry_id: int,
    requesting_user: User,
    now: datetime | None = None,
) -> WaitListEntry:
    entry = db.get(WaitListEntry, entry_id)
    if entry is None:
        raise WaitListEntryNotFound(entry_id)
    if entry.user_id != requesting_user.id and not requesting_user.is_admin:
        raise PermissionDenied("You can only leave your own wait list entries")
    if entry.queue_state != QueueState.WAITING.value:
        raise QueueEntryClosed(entry_id, entry.queue_state)

    entry.transition(QueueState.DECLINED, now)
    db.commit()
    db.refresh(entry)
    logger.info("queue_declined entry_id=%s", entry.id)
    return entry


def confirm_next_in_queue(
    db: Session,
    day: date,
    start_time: str,
    room_type: RoomType | str = RoomType.POKER,
    now: datetime | None = None,
) -> WaitListEntry | None:
    room_type = RoomType(room_type)
    lock_slot_key(db, day, start_time, room_type)

    waiting = _waiting_entries(db, day, start_time, room_type)
    if not waiting:
        return None

    entry = waiting[0]
    entry.transition(QueueState.CONFIRMED, now)
    db.commit()
    db.refresh(entry)
    logger.info("queue_confirmed entry_id=%s date=%s start_time=%s", entry.id, day, start_time)
    return entry

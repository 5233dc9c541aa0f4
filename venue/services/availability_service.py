import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from sqlalchemy import select
from sqlalchemy.orm import Session

from venue.db.models import OCCUPYING_STATUSES, BlockedSlot, Reservation, RoomType
from venue.services.time_service import (
    SLOT_MINUTES,
    generate_session_slots,
    is_bar_priority_active,
    is_reservation_in_past,
    minutes_to_time,
    time_to_minutes,
)

logger = logging.getLogger(__name__)


class SlotStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    BLOCKED = "blocked"
    RESTRICTED = "restricted"
    PAST = "past"


@dataclass(frozen=True)
class TimeRange:
    start: int
    end: int

    def contains(self, minute: int) -> bool:
        return self.start <= minute < self.end


@dataclass(frozen=True)
class SlotState:
    time: str
    status: SlotStatus


@dataclass
class AvailabilitySnapshot:
    """Blocks and occupying reservations for one (date, room type), read once per request."""

    day: date
    room_type: RoomType
    blocked: list[TimeRange] = field(default_factory=list)
    reserved: list[TimeRange] = field(default_factory=list)
    other_room_reserved: list[TimeRange] = field(default_factory=list)
    now: datetime | None = None

    def _minute(self, slot_time: str) -> int:
        return time_to_minutes(slot_time, self.day)

    def is_blocked(self, slot_time: str) -> bool:
        minute = self._minute(slot_time)
        return any(block.contains(minute) for block in self.blocked)

    def is_reserved(self, slot_time: str) -> bool:
        minute = self._minute(slot_time)
        return any(reservation.contains(minute) for reservation in self.reserved)

    def is_other_room_reserved(self, slot_time: str) -> bool:
        minute = self._minute(slot_time)
        return any(reservation.contains(minute) for reservation in self.other_room_reserved)

    def bar_priority_active(self, slot_time: str) -> bool:
        return self.room_type.shares_room and is_bar_priority_active(slot_time, self.day, now=self.now)

    def is_available(self, slot_time: str) -> bool:
        if self.is_blocked(slot_time):
            return False
        if self.is_reserved(slot_time):
            return False
        if not self.room_type.shares_room:
            return True

        if self.bar_priority_active(slot_time):
            # bar takes the disputed hours whether or not it is actually booked
            return self.room_type is RoomType.BAR
        return not self.is_other_room_reserved(slot_time)

    def status_of(self, slot_time: str) -> SlotStatus:
        if is_reservation_in_past(self.day, slot_time, now=self.now):
            return SlotStatus.PAST
        if self.is_blocked(slot_time):
            return SlotStatus.BLOCKED
        if self.is_reserved(slot_time):
            return SlotStatus.BOOKED
        if self.room_type.shares_room and self.bar_priority_active(slot_time):
            if self.room_type is RoomType.MAHJONG:
                return SlotStatus.RESTRICTED
            return SlotStatus.AVAILABLE
        if self.is_other_room_reserved(slot_time):
            return SlotStatus.BOOKED
        return SlotStatus.AVAILABLE


def _occupied_ranges(
    db: Session, day: date, room_type: RoomType, statuses: tuple[str, ...]
) -> list[TimeRange]:
    rows = db.execute(
        select(Reservation.start_time, Reservation.end_time).where(
            Reservation.date == day,
            Reservation.room_type == room_type.value,
            Reservation.status.in_(statuses),
        )
    ).all()
    return [TimeRange(time_to_minutes(start, day), time_to_minutes(end, day)) for start, end in rows]


def load_snapshot(
    db: Session,
    day: date,
    room_type: RoomType | str,
    now: datetime | None = None,
    statuses: tuple[str, ...] = OCCUPYING_STATUSES,
) -> AvailabilitySnapshot:
    """Snapshot of one (date, room type). ``statuses`` selects which reservations occupy slots."""
    room_type = RoomType(room_type)
    blocks = db.execute(
        select(BlockedSlot.start_time, BlockedSlot.end_time).where(
            BlockedSlot.date == day,
            BlockedSlot.room_type == room_type.value,
        )
    ).all()

    counterpart = room_type.shared_counterpart
    return AvailabilitySnapshot(
        day=day,
        room_type=room_type,
        blocked=[TimeRange(time_to_minutes(start, day), time_to_minutes(end, day)) for start, end in blocks],
        reserved=_occupied_ranges(db, day, room_type, statuses),
        other_room_reserved=_occupied_ranges(db, day, counterpart, statuses) if counterpart else [],
        now=now,
    )


def is_slot_available(
    db: Session,
    day: date,
    slot_time: str,
    room_type: RoomType | str,
    now: datetime | None = None,
) -> bool:
    return load_snapshot(db, day, room_type, now=now).is_available(slot_time)


def is_range_free(
    db: Session,
    day: date,
    start_time: str,
    end_time: str,
    room_type: RoomType | str,
    now: datetime | None = None,
    statuses: tuple[str, ...] = OCCUPYING_STATUSES,
) -> bool:
    """True when every slot in [start_time, end_time) is available."""
    snapshot = load_snapshot(db, day, room_type, now=now, statuses=statuses)
    start_minutes = time_to_minutes(start_time, day)
    end_minutes = time_to_minutes(end_time, day)
    return all(
        snapshot.is_available(minutes_to_time(minute))
        for minute in range(start_minutes, end_minutes, SLOT_MINUTES)
    )


def get_available_slots(
    db: Session,
    day: date,
    room_type: RoomType | str,
    now: datetime | None = None,
) -> list[str]:
    snapshot = load_snapshot(db, day, room_type, now=now)
    return [slot for slot in generate_session_slots(day) if snapshot.is_available(slot)]


def get_slot_statuses(
    db: Session,
    day: date,
    room_type: RoomType | str,
    now: datetime | None = None,
) -> list[SlotState]:
    snapshot = load_snapshot(db, day, room_type, now=now)
    return [SlotState(time=slot, status=snapshot.status_of(slot)) for slot in generate_session_slots(day)]


def get_consecutive_available_slots(
    db: Session,
    day: date,
    room_type: RoomType | str,
    duration_hours: float,
    now: datetime | None = None,
) -> list[list[str]]:
    """Every window of free slots long enough for ``duration_hours``, one per start time."""
    slots_needed = int(round(duration_hours * 60)) // SLOT_MINUTES
    if slots_needed <= 0:
        return []

    available = get_available_slots(db, day, room_type, now=now)
    minutes = [time_to_minutes(slot, day) for slot in available]
    windows: list[list[str]] = []
    for index in range(len(available) - slots_needed + 1):
        span = minutes[index : index + slots_needed]
        if all(later - earlier == SLOT_MINUTES for earlier, later in zip(span, span[1:])):
            windows.append(available[index : index + slots_needed])

    logger.debug(
        "consecutive_slots date=%s room_type=%s duration_hours=%s windows=%s",
        day,
        RoomType(room_type).value,
        duration_hours,
        len(windows),
    )
    return windows

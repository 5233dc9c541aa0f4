from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from enum import Enum

from venue.core.config import settings
from venue.db.models import RoomType
from venue.services.availability_service import SlotState, SlotStatus
from venue.services.time_service import CLOSING_MINUTES, SLOT_MINUTES, minutes_to_time, time_to_minutes

MINIMUM_DURATION_HOURS = SLOT_MINUTES / 60

SlotStatuses = Mapping[str, SlotStatus] | Iterable[SlotState]


class StopReason(str, Enum):
    CLOSING_TIME = "closing_time"
    UNAVAILABLE_SLOT = "unavailable_slot"


@dataclass(frozen=True)
class DurationLimit:
    max_hours: float
    limited_by_closing_time: bool
    limited_by_bookings: bool
    limited_by_party_size: bool


def _as_mapping(slot_statuses: SlotStatuses) -> Mapping[str, SlotStatus]:
    if isinstance(slot_statuses, Mapping):
        return slot_statuses
    return {state.time: SlotStatus(state.status) for state in slot_statuses}


def _is_available(statuses: Mapping[str, SlotStatus], slot_time: str) -> bool:
    return statuses.get(slot_time) == SlotStatus.AVAILABLE


def _walk(start_time: str, statuses: Mapping[str, SlotStatus], day: date) -> tuple[int, StopReason]:
    current = time_to_minutes(start_time, day)
    available_minutes = 0
    while current < CLOSING_MINUTES:
        if not _is_available(statuses, minutes_to_time(current)):
            return available_minutes, StopReason.UNAVAILABLE_SLOT
        available_minutes += SLOT_MINUTES
        current += SLOT_MINUTES
    return available_minutes, StopReason.CLOSING_TIME


def party_size_cap(room_type: RoomType | str, party_size: int) -> float | None:
    if RoomType(room_type) is RoomType.BAR and party_size < settings.bar_small_party_threshold:
        return settings.bar_small_party_max_hours
    return None


def max_duration(
    start_time: str,
    slot_statuses: SlotStatuses,
    party_size: int,
    room_type: RoomType | str,
    day: date,
) -> float:
    """Longest bookable span in hours from ``start_time``, given the day's slot statuses."""
    return describe_duration(start_time, slot_statuses, party_size, room_type, day).max_hours


def describe_duration(
    start_time: str,
    slot_statuses: SlotStatuses,
    party_size: int,
    room_type: RoomType | str,
    day: date,
) -> DurationLimit:
    statuses = _as_mapping(slot_statuses)
    available_minutes, stop_reason = _walk(start_time, statuses, day)
    max_hours = available_minutes / 60

    cap = party_size_cap(room_type, party_size)
    limited_by_party_size = cap is not None and max_hours > cap
    if limited_by_party_size:
        max_hours = cap

    if max_hours == 0 and _is_available(statuses, start_time):
        max_hours = MINIMUM_DURATION_HOURS

    return DurationLimit(
        max_hours=max_hours,
        limited_by_closing_time=not limited_by_party_size and stop_reason is StopReason.CLOSING_TIME,
        limited_by_bookings=not limited_by_party_size and stop_reason is StopReason.UNAVAILABLE_SLOT,
        limited_by_party_size=limited_by_party_size,
    )


def is_limited_by_closing_time(start_time: str, duration_hours: float, day: date) -> bool:
    end_minutes = time_to_minutes(start_time, day) + duration_hours * 60
    return end_minutes > CLOSING_MINUTES


def is_limited_by_bookings(
    start_time: str,
    duration_hours: float,
    slot_statuses: SlotStatuses,
    day: date,
) -> bool:
    """True when a slot after the start, inside the requested span, is not free.

    Slots past closing are left to :func:`is_limited_by_closing_time`.
    """
    statuses = _as_mapping(slot_statuses)
    start_minutes = time_to_minutes(start_time, day)
    end_minutes = min(start_minutes + duration_hours * 60, CLOSING_MINUTES)
    current = start_minutes + SLOT_MINUTES
    while current < end_minutes:
        if not _is_available(statuses, minutes_to_time(current)):
            return True
        current += SLOT_MINUTES
    return False

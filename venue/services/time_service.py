"""Booking-day time arithmetic.

A booking day ("session") runs from the date's opening hour through 02:00 of the next
calendar day. Times are ``HH:MM`` wall-clock strings; to compare two of them they are
mapped to minutes since midnight of the session's calendar date, so ``00:30`` after a
Friday evening becomes 1470 rather than 30.
"""

import re
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo

from venue.core.config import settings
from venue.core.exceptions import InvalidBookingTime

SLOT_MINUTES = 30
MINUTES_PER_DAY = 24 * 60
CLOSING_MINUTES = 26 * 60
LATEST_START_MINUTES = 23 * 60 + 30
ROLLOVER_LAST_HOUR = 2

WEEKDAY_OPENING_HOUR = 18
WEEKEND_OPENING_HOUR = 12
CLOSING_HOUR = 2

BAR_PRIORITY_WEEKDAYS = frozenset({4, 5, 6})
BAR_PRIORITY_START_MINUTES = 20 * 60
BAR_PRIORITY_END_MINUTES = 23 * 60

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


@dataclass(frozen=True)
class OperatingHours:
    start_hour: int
    end_hour: int = CLOSING_HOUR

    @property
    def display(self) -> str:
        return f"{_format_hour(self.start_hour)} - {_format_hour(self.end_hour)}"


def _format_hour(hour: int) -> str:
    suffix = "AM" if hour < 12 else "PM"
    display_hour = hour % 12 or 12
    return f"{display_hour}:00 {suffix}"


@lru_cache(maxsize=4)
def _zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def operating_timezone() -> ZoneInfo:
    return _zone(settings.operating_timezone)


def local_now(now: datetime | None = None) -> datetime:
    current = now or datetime.now(UTC)
    if current.tzinfo is None:
        current = current.replace(tzinfo=UTC)
    return current.astimezone(operating_timezone())


def operating_today(now: datetime | None = None) -> date:
    return local_now(now).date()


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def get_operating_hours(day: date) -> OperatingHours:
    if is_weekend(day):
        return OperatingHours(start_hour=WEEKEND_OPENING_HOUR)
    return OperatingHours(start_hour=WEEKDAY_OPENING_HOUR)


def parse_time(value: str, day: date | None = None) -> tuple[int, int]:
    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match:
        hours, minutes = int(match.group(1)), int(match.group(2))
        if hours < 24 and minutes < 60:
            return hours, minutes
    hours_display = get_operating_hours(day).display if day else OperatingHours(WEEKDAY_OPENING_HOUR).display
    raise InvalidBookingTime(str(value), hours_display)


def time_to_minutes(value: str, day: date) -> int:
    """Minutes since midnight of ``day`` for a time inside that day's session."""
    hours, minutes = parse_time(value, day)
    operating_hours = get_operating_hours(day)
    if hours >= operating_hours.start_hour:
        return hours * 60 + minutes
    if hours <= ROLLOVER_LAST_HOUR:
        return (hours + 24) * 60 + minutes
    raise InvalidBookingTime(value, operating_hours.display)


def minutes_to_time(minutes: int) -> str:
    total_hours, mins = divmod(minutes, 60)
    if total_hours >= 24:
        total_hours -= 24
    return f"{total_hours:02d}:{mins:02d}"


def get_slot_end_time(start_time: str, day: date) -> str:
    end_minutes = time_to_minutes(start_time, day) + SLOT_MINUTES
    if end_minutes > CLOSING_MINUTES:
        raise InvalidBookingTime(start_time, get_operating_hours(day).display)
    return minutes_to_time(end_minutes)


def duration_minutes(start_time: str, end_time: str, day: date) -> int:
    return time_to_minutes(end_time, day) - time_to_minutes(start_time, day)


def validate_time_range(start_time: str, end_time: str, day: date) -> None:
    """Reject ranges that are not whole slots inside the session."""
    start_minutes = time_to_minutes(start_time, day)
    end_minutes = time_to_minutes(end_time, day)
    display = get_operating_hours(day).display
    if start_minutes % SLOT_MINUTES or start_minutes >= CLOSING_MINUTES:
        raise InvalidBookingTime(start_time, display)
    if end_minutes <= start_minutes or end_minutes > CLOSING_MINUTES:
        raise InvalidBookingTime(end_time, display)
    if (end_minutes - start_minutes) % SLOT_MINUTES:
        raise InvalidBookingTime(end_time, display)


def generate_start_slots(day: date) -> list[str]:
    """Selectable start times: opening hour through 23:30."""
    start_minutes = get_operating_hours(day).start_hour * 60
    return [
        minutes_to_time(minutes)
        for minutes in range(start_minutes, LATEST_START_MINUTES + 1, SLOT_MINUTES)
    ]


def generate_session_slots(day: date) -> list[str]:
    """Every slot of the session, including the 00:00-01:30 continuation."""
    continuation = [
        minutes_to_time(minutes)
        for minutes in range(MINUTES_PER_DAY, CLOSING_MINUTES, SLOT_MINUTES)
    ]
    return generate_start_slots(day) + continuation


def booking_datetime(day: date, value: str) -> datetime:
    """Aware datetime of a session time; post-midnight times land on the next calendar day."""
    minutes = time_to_minutes(value, day)
    calendar_day = day + timedelta(days=minutes // MINUTES_PER_DAY)
    hours, mins = divmod(minutes % MINUTES_PER_DAY, 60)
    return datetime.combine(calendar_day, time(hours, mins), tzinfo=operating_timezone())


def is_within_booking_window(day: date, now: datetime | None = None) -> bool:
    today = operating_today(now)
    return today <= day <= today + timedelta(days=settings.booking_window_days)


def is_reservation_in_past(day: date, value: str, now: datetime | None = None) -> bool:
    """A date before operating today is closed, even while its session runs past midnight."""
    current = local_now(now)
    if day < current.date():
        return True
    return booking_datetime(day, value) < current


def hours_until(day: date, value: str, now: datetime | None = None) -> float:
    return (booking_datetime(day, value) - local_now(now)).total_seconds() / 3600


def is_bar_priority_time(value: str, day: date) -> bool:
    if day.weekday() not in BAR_PRIORITY_WEEKDAYS:
        return False
    hours, minutes = parse_time(value, day)
    wall_minutes = hours * 60 + minutes
    return BAR_PRIORITY_START_MINUTES <= wall_minutes < BAR_PRIORITY_END_MINUTES


def is_bar_priority_active(value: str, day: date, now: datetime | None = None) -> bool:
    # Same-day mahjong is always bookable, so priority only covers future dates.
    today = operating_today(now)
    if day <= today:
        return False
    return is_bar_priority_time(value, day)


def format_display_time(value: str) -> str:
    hours, minutes = parse_time(value)
    suffix = "AM" if hours < 12 else "PM"
    return f"{hours % 12 or 12}:{minutes:02d} {suffix}"


def format_display_date(day: date) -> str:
    return f"{day:%a, %b} {day.day}"

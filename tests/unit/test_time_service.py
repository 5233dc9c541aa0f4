from datetime import UTC, date, datetime

import pytest

from venue.core.exceptions import InvalidBookingTime
from venue.services.time_service import (
    CLOSING_MINUTES,
    format_display_date,
    format_display_time,
    generate_session_slots,
    generate_start_slots,
    get_operating_hours,
    get_slot_end_time,
    is_bar_priority_active,
    is_reservation_in_past,
    is_within_booking_window,
    minutes_to_time,
    time_to_minutes,
    validate_time_range,
)

WEDNESDAY = date(2024, 6, 5)
FRIDAY = date(2024, 6, 7)
SATURDAY = date(2024, 6, 8)
# noon in New York on each day
WEDNESDAY_NOON = datetime(2024, 6, 5, 16, 0, tzinfo=UTC)
FRIDAY_NOON = datetime(2024, 6, 7, 16, 0, tzinfo=UTC)


def test_operating_hours_weekday_and_weekend():
    assert get_operating_hours(WEDNESDAY).start_hour == 18
    assert get_operating_hours(SATURDAY).start_hour == 12
    assert get_operating_hours(date(2024, 6, 9)).start_hour == 12
    assert get_operating_hours(WEDNESDAY).end_hour == 2
    assert get_operating_hours(WEDNESDAY).display == "6:00 PM - 2:00 AM"


def test_post_midnight_times_roll_over():
    assert time_to_minutes("18:00", WEDNESDAY) == 1080
    assert time_to_minutes("00:30", WEDNESDAY) == 1470
    assert time_to_minutes("02:00", WEDNESDAY) == CLOSING_MINUTES
    assert time_to_minutes("12:00", SATURDAY) == 720


@pytest.mark.parametrize("day, hours", [(WEDNESDAY, range(18, 24)), (SATURDAY, range(12, 24))])
def test_minutes_round_trip_for_every_session_time(day, hours):
    for hour in [*hours, 0, 1, 2]:
        for minute in (0, 15, 30, 45, 59):
            value = f"{hour:02d}:{minute:02d}"
            assert minutes_to_time(time_to_minutes(value, day)) == value


@pytest.mark.parametrize("value", ["10:00", "03:00", "17:59", "25:00", "18:60", "abc", ""])
def test_time_outside_session_is_rejected(value):
    with pytest.raises(InvalidBookingTime) as exc_info:
        time_to_minutes(value, WEDNESDAY)
    assert exc_info.value.operating_hours == "6:00 PM - 2:00 AM"
    assert value in exc_info.value.detail


def test_weekend_afternoon_is_valid_but_weekday_afternoon_is_not():
    assert time_to_minutes("13:00", SATURDAY) == 780
    with pytest.raises(InvalidBookingTime):
        time_to_minutes("13:00", FRIDAY)


def test_slot_end_time_crosses_midnight_and_stops_at_closing():
    assert get_slot_end_time("23:30", WEDNESDAY) == "00:00"
    assert get_slot_end_time("01:30", WEDNESDAY) == "02:00"
    with pytest.raises(InvalidBookingTime):
        get_slot_end_time("02:00", WEDNESDAY)


def test_validate_time_range_rejects_partial_slots_and_overruns():
    validate_time_range("22:00", "01:00", WEDNESDAY)
    with pytest.raises(InvalidBookingTime):
        validate_time_range("22:00", "22:00", WEDNESDAY)
    with pytest.raises(InvalidBookingTime):
        validate_time_range("22:15", "23:00", WEDNESDAY)
    with pytest.raises(InvalidBookingTime):
        validate_time_range("01:30", "02:30", WEDNESDAY)


def test_session_slots_include_the_after_midnight_continuation():
    weekday_slots = generate_session_slots(WEDNESDAY)
    assert weekday_slots[0] == "18:00"
    assert weekday_slots[-1] == "01:30"
    assert len(weekday_slots) == 16
    assert generate_start_slots(WEDNESDAY)[-1] == "23:30"
    assert len(generate_session_slots(SATURDAY)) == 28


def test_booking_window_edges():
    today = datetime(2024, 6, 1, 16, 0, tzinfo=UTC)
    assert is_within_booking_window(date(2024, 6, 1), now=today)
    assert is_within_booking_window(date(2024, 6, 15), now=today)
    assert not is_within_booking_window(date(2024, 6, 16), now=today)
    assert not is_within_booking_window(date(2024, 5, 31), now=today)


def test_booking_window_uses_operating_timezone_day():
    # 02:00 UTC on June 2 is still June 1 in New York
    late_evening = datetime(2024, 6, 2, 2, 0, tzinfo=UTC)
    assert not is_within_booking_window(date(2024, 6, 16), now=late_evening)


def test_past_check_places_after_midnight_slots_on_the_next_day():
    assert not is_reservation_in_past(WEDNESDAY, "20:00", now=WEDNESDAY_NOON)
    assert not is_reservation_in_past(WEDNESDAY, "00:30", now=WEDNESDAY_NOON)
    assert is_reservation_in_past(date(2024, 6, 4), "00:30", now=WEDNESDAY_NOON)
    assert is_reservation_in_past(date(2024, 6, 4), "23:00", now=WEDNESDAY_NOON)


def test_yesterdays_session_is_past_once_the_calendar_day_turns():
    # 00:30 on Saturday in New York, Friday's session still runs until 02:00
    after_midnight = datetime(2024, 6, 8, 4, 30, tzinfo=UTC)
    assert is_reservation_in_past(FRIDAY, "01:00", now=after_midnight)
    assert not is_within_booking_window(FRIDAY, now=after_midnight)
    assert not is_reservation_in_past(SATURDAY, "12:00", now=after_midnight)


def test_bar_priority_only_on_future_weekend_evenings():
    assert is_bar_priority_active("20:30", FRIDAY, now=WEDNESDAY_NOON) is True
    assert is_bar_priority_active("20:30", FRIDAY, now=FRIDAY_NOON) is False
    assert is_bar_priority_active("19:59", FRIDAY, now=WEDNESDAY_NOON) is False
    assert is_bar_priority_active("23:00", FRIDAY, now=WEDNESDAY_NOON) is False
    assert is_bar_priority_active("20:00", date(2024, 6, 13), now=WEDNESDAY_NOON) is False


def test_display_helpers():
    assert format_display_time("20:30") == "8:30 PM"
    assert format_display_time("00:00") == "12:00 AM"
    assert format_display_time("12:00") == "12:00 PM"
    assert format_display_date(FRIDAY) == "Fri, Jun 7"

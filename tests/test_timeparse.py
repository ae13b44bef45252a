from datetime import date, datetime, time

import pytest

from occupancy.errors import InvalidReservationWindow
from occupancy.utils.clock import FixedClock
from occupancy.utils.timeparse import parse_time_of_day, parse_date, parse_slot_bound, format_hours


@pytest.mark.parametrize("raw", ["14:30", "14:30:00", "2026-03-10T14:30:00", time(14, 30)])
def test_time_of_day_shapes(raw):
    assert parse_time_of_day(raw) == time(14, 30)


@pytest.mark.parametrize("raw", [None, "", "2pm", "25:00"])
def test_bad_time_of_day(raw):
    with pytest.raises(InvalidReservationWindow):
        parse_time_of_day(raw)


def test_parse_date_and_slot_bound():
    assert parse_date("2026-03-10") == date(2026, 3, 10)
    assert parse_slot_bound("16:00", date(2026, 3, 10)) == datetime(2026, 3, 10, 16)
    with pytest.raises(InvalidReservationWindow):
        parse_date("10/03/2026")


def test_format_hours():
    assert format_hours(0.9166667) == "00:55:00"
    assert format_hours(-1) == "00:00:00"
    assert format_hours(26.5) == "26:30:00"


def test_fixed_clock_moves():
    clock = FixedClock(datetime(2026, 3, 10, 14, 5))
    clock.advance(minutes=55)
    assert clock.now() == datetime(2026, 3, 10, 15, 0)
    assert clock.today() == date(2026, 3, 10)

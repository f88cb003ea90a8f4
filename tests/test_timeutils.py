#!/usr/bin/env python3
"""
Tests for the minute-based date and time helpers.
"""

import pytest
from datetime import date, time

from app.core.timeutils import (
    date_range,
    day_of_week,
    format_time,
    minutes_to_time,
    parse_date,
    parse_time,
    time_to_minutes,
)


@pytest.mark.unit
class TestTimeUtils:
    """Wire format parsing and minute arithmetic"""

    def test_weekday_numbering_starts_on_sunday(self):
        """Sunday is 0 and Saturday is 6"""
        assert day_of_week(date(2025, 3, 2)) == 0   # Sunday
        assert day_of_week(date(2025, 3, 3)) == 1   # Monday
        assert day_of_week(date(2025, 3, 8)) == 6   # Saturday

    def test_time_round_trip_through_minutes(self):
        assert time_to_minutes("09:30") == 570
        assert minutes_to_time(570) == time(9, 30)
        assert format_time(minutes_to_time(0)) == "00:00"

    def test_times_are_zero_padded(self):
        assert format_time(parse_time("7:05")) == "07:05"

    def test_minutes_outside_a_day_are_rejected(self):
        with pytest.raises(ValueError):
            minutes_to_time(24 * 60)
        with pytest.raises(ValueError):
            minutes_to_time(-1)

    @pytest.mark.parametrize("bad", ["", "noon", "25:00", "10:75"])
    def test_malformed_times(self, bad):
        with pytest.raises(ValueError):
            parse_time(bad)

    def test_malformed_date(self):
        with pytest.raises(ValueError, match="YYYY-MM-DD"):
            parse_date("03/03/2025")

    def test_date_range_is_inclusive(self):
        days = list(date_range(date(2025, 2, 27), date(2025, 3, 2)))
        assert days == [date(2025, 2, 27), date(2025, 2, 28), date(2025, 3, 1), date(2025, 3, 2)]

    def test_empty_date_range(self):
        assert list(date_range(date(2025, 3, 2), date(2025, 3, 1))) == []

"""
Tests for app/timezones.py module
"""

import datetime
import sys
import os

# Add app directory to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'app'))

import pytest
import errors
import timezones


class TestConversions:
    """Wall clock <-> absolute instants"""

    def test_unknown_zone(self):
        with pytest.raises(errors.ValidationFailure):
            timezones.get_zone("Mars/Olympus_Mons")

    def test_empty_zone_is_utc(self):
        assert timezones.to_absolute(datetime.date(2024, 1, 1), datetime.time(12, 0), "") == \
            datetime.datetime(2024, 1, 1, 12, 0)

    def test_to_absolute_and_back(self):
        instant = timezones.to_absolute(datetime.date(2024, 7, 1), datetime.time(9, 0), "America/New_York")
        assert instant == datetime.datetime(2024, 7, 1, 13, 0)
        assert timezones.from_absolute(instant, "America/New_York") == (datetime.date(2024, 7, 1), datetime.time(9, 0))

    def test_nonexistent_time_moves_forward(self):
        """02:30 does not exist on the spring-forward night in New York"""
        instant = timezones.to_absolute(datetime.date(2024, 3, 10), datetime.time(2, 30), "America/New_York")
        assert instant == datetime.datetime(2024, 3, 10, 7, 30)

    def test_ambiguous_time_takes_first_occurrence(self):
        """01:30 happens twice on the fall-back night; the first one is still EDT"""
        instant = timezones.to_absolute(datetime.date(2024, 11, 3), datetime.time(1, 30), "America/New_York")
        assert instant == datetime.datetime(2024, 11, 3, 5, 30)


class TestParsing:
    """Client-supplied timestamps"""

    def test_naive_value_is_local(self):
        assert timezones.parse_instant("2024-01-15T09:00:00", "Europe/Berlin") == datetime.datetime(2024, 1, 15, 8, 0)

    def test_offset_value_is_converted(self):
        assert timezones.parse_instant("2024-01-15T09:00:00+02:00", "Europe/Berlin") == \
            datetime.datetime(2024, 1, 15, 7, 0)

    def test_invalid_value(self):
        with pytest.raises(errors.ValidationFailure):
            timezones.parse_instant("tomorrow-ish", "UTC")

    def test_all_day_drops_time_without_conversion(self):
        assert timezones.parse_all_day("2024-05-01T23:30:00+05:00") == datetime.datetime(2024, 5, 1)
        assert timezones.parse_all_day(datetime.date(2024, 5, 1)) == datetime.datetime(2024, 5, 1)


class TestWindows:
    """Query windows in the requester's zone"""

    def test_local_window_covers_whole_days(self):
        filters = timezones.local_window(datetime.date(2024, 1, 15), datetime.date(2024, 1, 16), "Asia/Tokyo")
        assert filters.range_start == datetime.datetime(2024, 1, 14, 15, 0)
        assert filters.range_end == datetime.datetime(2024, 1, 16, 15, 0)
        assert filters.date_start == datetime.date(2024, 1, 15)
        assert filters.date_end == datetime.date(2024, 1, 16)

    def test_local_window_rejects_reversed_range(self):
        with pytest.raises(errors.ValidationFailure):
            timezones.local_window(datetime.date(2024, 1, 16), datetime.date(2024, 1, 15), "UTC")

    def test_today_window_uses_local_date(self):
        """23:00 UTC is already tomorrow in Tokyo"""
        now = datetime.datetime(2024, 1, 15, 23, 0)
        filters = timezones.today_window("Asia/Tokyo", now)
        assert filters.date_start == datetime.date(2024, 1, 16)
        assert filters.range_start == datetime.datetime(2024, 1, 15, 15, 0)
        assert filters.range_end == datetime.datetime(2024, 1, 16, 15, 0)

    def test_upcoming_window_is_open_ended(self):
        now = datetime.datetime(2024, 1, 15, 12, 0)
        filters = timezones.upcoming_window("UTC", now)
        assert filters.range_start == now
        assert filters.range_end is None
        assert filters.date_start == datetime.date(2024, 1, 15)

    def test_window_from_dates(self):
        filters = timezones.window_from_params("2024-01-15", "2024-01-15", "UTC")
        assert filters.range_start == datetime.datetime(2024, 1, 15)
        assert filters.range_end == datetime.datetime(2024, 1, 16)

    def test_window_from_timestamps(self):
        filters = timezones.window_from_params("2024-01-15T10:30:00", "2024-01-15T10:45:00", "UTC")
        assert filters.range_start == datetime.datetime(2024, 1, 15, 10, 30)
        assert filters.range_end == datetime.datetime(2024, 1, 15, 10, 45)

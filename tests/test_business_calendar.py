"""
Tests for the business calendar.
"""

import pendulum
import pytest

from slotpicker.domain.business_calendar import BusinessCalendar, MINUTES_PER_DAY
from slotpicker.domain.exceptions import InvalidRangeError
from slotpicker.domain.models import BusinessHours
from slotpicker.domain.slot_calculator import SlotCalculator


@pytest.fixture
def calendar():
    """Standard business calendar: 08:00-18:00 Mon-Fri in Berlin."""
    return BusinessCalendar(BusinessHours(start_hour=8, end_hour=18, timezone="Europe/Berlin"))


class TestWindows:
    """Tests for business window generation."""

    def test_single_day(self, calendar):
        """Test one window for one working day."""
        query = calendar.query_window("2024-11-25", "2024-11-25")  # Monday

        windows = calendar.windows(query.start, query.end)

        assert len(windows) == 1
        assert windows[0].start == pendulum.parse("2024-11-25 08:00", tz="Europe/Berlin")
        assert windows[0].end == pendulum.parse("2024-11-25 18:00", tz="Europe/Berlin")

    def test_weekend_is_skipped(self, calendar):
        """Friday to Monday yields windows for Friday and Monday only."""
        query = calendar.query_window("2024-11-22", "2024-11-25")

        windows = calendar.windows(query.start, query.end)

        assert [w.start.to_date_string() for w in windows] == ["2024-11-22", "2024-11-25"]

    def test_saturday_only_is_empty(self, calendar):
        query = calendar.query_window("2024-11-23", "2024-11-23")

        assert calendar.windows(query.start, query.end) == []

    def test_query_clips_window(self, calendar):
        """A query inside business hours cuts the window."""
        windows = calendar.windows(
            pendulum.parse("2024-11-25 10:00", tz="Europe/Berlin"),
            pendulum.parse("2024-11-25 12:00", tz="Europe/Berlin")
        )

        assert len(windows) == 1
        assert windows[0].duration_minutes() == 120

    def test_query_outside_business_hours(self, calendar):
        windows = calendar.windows(
            pendulum.parse("2024-11-25 18:30", tz="Europe/Berlin"),
            pendulum.parse("2024-11-25 20:00", tz="Europe/Berlin")
        )

        assert windows == []

    def test_utc_query_uses_local_days(self, calendar):
        """Days are Berlin calendar days, even for a UTC query."""
        windows = calendar.windows(
            pendulum.parse("2024-11-24T23:30:00Z"),  # Monday 00:30 in Berlin
            pendulum.parse("2024-11-25T12:00:00Z")
        )

        assert len(windows) == 1
        assert windows[0].start == pendulum.parse("2024-11-25 08:00", tz="Europe/Berlin")

    def test_inverted_range_raises(self, calendar):
        with pytest.raises(InvalidRangeError):
            calendar.windows(
                pendulum.parse("2024-11-25 12:00", tz="Europe/Berlin"),
                pendulum.parse("2024-11-25 10:00", tz="Europe/Berlin")
            )

    def test_empty_range_raises(self, calendar):
        instant = pendulum.parse("2024-11-25 12:00", tz="Europe/Berlin")

        with pytest.raises(InvalidRangeError):
            calendar.windows(instant, instant)

    def test_dst_day_is_shorter(self):
        """On the spring-forward day a full-day window lasts 23 hours."""
        calendar = BusinessCalendar(
            BusinessHours(start_hour=0, end_hour=24, timezone="Europe/Berlin", exclude_weekdays=())
        )
        windows = calendar.windows(
            pendulum.datetime(2024, 3, 31, tz="Europe/Berlin"),
            pendulum.datetime(2024, 4, 1, tz="Europe/Berlin")
        )

        assert len(windows) == 1
        assert windows[0].end == pendulum.parse("2024-04-01 00:00", tz="Europe/Berlin")
        assert windows[0].duration_minutes() == 23 * 60

    def test_hours_until_midnight_keep_last_slot(self):
        """Business hours ending at 24 give every queried day its full evening."""
        calendar = BusinessCalendar(BusinessHours(start_hour=20, end_hour=24, timezone="Europe/Berlin"))
        query = calendar.query_window("2024-11-25", "2024-11-26")

        windows = calendar.windows(query.start, query.end)
        slots = SlotCalculator(calendar).find_slots(query.start, query.end, [], 30)

        assert [w.duration_minutes() for w in windows] == [240, 240]
        assert windows[-1].end == pendulum.parse("2024-11-27 00:00", tz="Europe/Berlin")
        assert len([s for s in slots if s.start.to_date_string() == "2024-11-25"]) == 8
        assert len([s for s in slots if s.start.to_date_string() == "2024-11-26"]) == 8
        assert slots[-1].start == pendulum.parse("2024-11-26 23:30", tz="Europe/Berlin")

    def test_custom_excluded_weekdays(self):
        calendar = BusinessCalendar(
            BusinessHours(start_hour=8, end_hour=18, exclude_weekdays=(0,))
        )
        query = calendar.query_window("2024-11-23", "2024-11-25")  # Sat-Mon

        windows = calendar.windows(query.start, query.end)

        assert [w.start.to_date_string() for w in windows] == ["2024-11-23", "2024-11-24"]


class TestGridAndConversions:
    """Tests for grid columns and wall-clock conversions."""

    def test_grid_minutes_whole_slots_only(self, calendar):
        """45-minute columns: a 17:45 column would overrun 18:00."""
        columns = calendar.grid_minutes(45)

        assert len(columns) == 13
        assert columns[0] == 480
        assert columns[-1] == 1020

    def test_grid_minutes_even_split(self, calendar):
        columns = calendar.grid_minutes(30)

        assert len(columns) == 20
        assert columns[-1] == 17 * 60 + 30

    def test_business_days(self, calendar):
        query = calendar.query_window("2024-11-22", "2024-11-26")

        days = calendar.business_days(query.start, query.end)

        assert [d.to_date_string() for d in days] == ["2024-11-22", "2024-11-25", "2024-11-26"]

    def test_query_window_covers_whole_days(self, calendar):
        query = calendar.query_window("2024-11-25", "2024-11-26")

        assert query.start == pendulum.parse("2024-11-25 00:00", tz="Europe/Berlin")
        assert query.end == pendulum.parse("2024-11-27 00:00", tz="Europe/Berlin")

    def test_query_window_inverted_dates(self, calendar):
        with pytest.raises(InvalidRangeError):
            calendar.query_window("2024-11-26", "2024-11-25")

    def test_day_key_uses_calendar_timezone(self, calendar):
        assert calendar.day_key(pendulum.parse("2024-11-24T23:30:00Z")) == "2024-11-25"

    def test_minute_of_day(self, calendar):
        instant = pendulum.parse("2024-11-25 09:30", tz="Europe/Berlin")

        assert calendar.minute_of_day(instant, "2024-11-25") == 570

    def test_midnight_end_maps_to_end_of_day(self, calendar):
        instant = pendulum.parse("2024-11-26 00:00", tz="Europe/Berlin")

        assert calendar.minute_of_day(instant, "2024-11-25") == MINUTES_PER_DAY

    def test_instant_at(self, calendar):
        assert calendar.instant_at("2024-11-25", 570) == pendulum.parse(
            "2024-11-25 09:30", tz="Europe/Berlin"
        )
        assert calendar.instant_at("2024-11-25", MINUTES_PER_DAY) == pendulum.parse(
            "2024-11-26 00:00", tz="Europe/Berlin"
        )

    def test_minutes_by_day(self, calendar):
        query = calendar.query_window("2024-11-25", "2024-11-26")
        windows = calendar.windows(query.start, query.end)

        by_day = calendar.minutes_by_day(list(reversed(windows)))

        assert by_day == {
            "2024-11-25": [(480, 1080)],
            "2024-11-26": [(480, 1080)]
        }

    def test_local_days_stop_before_midnight_end(self, calendar):
        query = calendar.query_window("2024-11-25", "2024-11-26")

        days = calendar.local_days(query.start, query.end)

        assert [d.to_date_string() for d in days] == ["2024-11-25", "2024-11-26"]


class TestDaylightSaving:
    """Tests for wall-clock minutes around clock changes."""

    @pytest.fixture
    def full_day(self):
        return BusinessCalendar(
            BusinessHours(start_hour=0, end_hour=24, timezone="Europe/Berlin", exclude_weekdays=())
        )

    def test_skipped_minutes_on_spring_forward(self, full_day):
        assert full_day.skipped_minutes("2024-03-31") == (120, 180)

    def test_no_skipped_minutes_on_regular_day(self, full_day):
        assert full_day.skipped_minutes("2024-11-25") is None
        assert full_day.skipped_minutes("2024-10-27") is None

    def test_minutes_by_day_leaves_out_missing_hour(self, full_day):
        query = full_day.query_window("2024-03-31", "2024-03-31")
        windows = full_day.windows(query.start, query.end)

        assert full_day.minutes_by_day(windows) == {"2024-03-31": [(0, 120), (180, 1440)]}

"""
Tests for local/UTC conversion.
"""

from datetime import datetime, time

import pendulum
import pytest

from storeslots.domain.converter import (
    LocalTimeConverter,
    format_instant,
    from_epoch_ms,
    parse_instant,
    parse_local_date,
    parse_local_datetime,
    to_epoch_ms,
)
from storeslots.domain.exceptions import InvalidDateFormat, UnknownTimeZone
from storeslots.domain.models import END_OF_DAY, OperatingWindow
from storeslots.domain.zone_resolver import StaticTimeZoneDatabase, ZoneResolver


class TestParsing:
    """Tests for local date/time parsing."""

    def test_parse_local_date(self):
        day = parse_local_date("2024-06-01")

        assert (day.year, day.month, day.day) == (2024, 6, 1)

    @pytest.mark.parametrize("text", ["2024-13-01", "01.06.2024", "June 1st", ""])
    def test_parse_local_date_rejects_malformed(self, text):
        with pytest.raises(InvalidDateFormat):
            parse_local_date(text)

    def test_parse_local_datetime(self):
        local = parse_local_datetime("2024-06-01T14:30")

        assert local.tzinfo is None
        assert (local.hour, local.minute) == (14, 30)

    def test_parse_local_datetime_rejects_offset(self):
        """A local time carrying an offset is ambiguous input."""
        with pytest.raises(InvalidDateFormat):
            parse_local_datetime("2024-06-01T14:30:00+02:00")

    def test_parse_local_datetime_rejects_garbage(self):
        with pytest.raises(InvalidDateFormat):
            parse_local_datetime("tomorrow afternoon")

    def test_parse_instant(self):
        assert parse_instant("2024-06-01T16:00:00.000Z") == pendulum.datetime(2024, 6, 1, 16, tz="UTC")

    def test_parse_instant_rejects_garbage(self):
        with pytest.raises(InvalidDateFormat):
            parse_instant("not a timestamp")


class TestConversion:
    """Tests for LocalTimeConverter."""

    def test_to_instant(self):
        converter = LocalTimeConverter()

        instant = converter.to_instant("2024-06-01T09:00", "America/Los_Angeles")

        assert instant == pendulum.datetime(2024, 6, 1, 16, tz="UTC")
        assert instant.timezone_name == "UTC"

    def test_to_local(self):
        converter = LocalTimeConverter()

        local = converter.to_local(pendulum.datetime(2024, 1, 15, 12, tz="UTC"), "America/New_York")

        assert local == pendulum.naive(2024, 1, 15, 7)

    @pytest.mark.parametrize(
        "zone_id",
        ["America/Los_Angeles", "America/New_York", "Europe/Berlin", "Asia/Kolkata", "Australia/Sydney"],
    )
    @pytest.mark.parametrize(
        "local",
        [
            pendulum.naive(2024, 1, 15, 9, 0),
            pendulum.naive(2024, 6, 1, 14, 30),
            pendulum.naive(2024, 12, 31, 23, 59, 59),
        ],
    )
    def test_round_trip(self, zone_id, local):
        converter = LocalTimeConverter()

        assert converter.to_local(converter.to_instant(local, zone_id), zone_id) == local

    def test_spring_forward_gap_moves_forward(self):
        """02:30 does not exist on 2024-03-10 in New York; it becomes 03:30."""
        converter = LocalTimeConverter()

        instant = converter.to_instant("2024-03-10T02:30", "America/New_York")

        assert instant == pendulum.datetime(2024, 3, 10, 7, 30, tz="UTC")
        assert converter.to_local(instant, "America/New_York") == pendulum.naive(2024, 3, 10, 3, 30)

    def test_fall_back_overlap_uses_earlier_occurrence(self):
        converter = LocalTimeConverter()

        instant = converter.to_instant("2024-11-03T01:30", "America/New_York")

        assert instant == pendulum.datetime(2024, 11, 3, 5, 30, tz="UTC")
        assert converter.to_local(instant, "America/New_York") == pendulum.naive(2024, 11, 3, 1, 30)

    def test_second_occurrence_reads_back_same_wall_time(self):
        converter = LocalTimeConverter()

        local = converter.to_local(pendulum.datetime(2024, 11, 3, 6, 30, tz="UTC"), "America/New_York")

        assert local == pendulum.naive(2024, 11, 3, 1, 30)

    def test_aware_local_rejected(self):
        converter = LocalTimeConverter()

        with pytest.raises(InvalidDateFormat):
            converter.to_instant(pendulum.datetime(2024, 6, 1, 9, tz="UTC"), "America/New_York")

    def test_unknown_zone_propagates(self):
        converter = LocalTimeConverter()

        with pytest.raises(UnknownTimeZone):
            converter.to_instant("2024-06-01T09:00", "Nowhere/Special")

    def test_pinned_database(self):
        """Zone rules come from the injected database."""
        database = StaticTimeZoneDatabase({"Store/Home": pendulum.timezone("America/Chicago")})
        converter = LocalTimeConverter(ZoneResolver(database))

        assert converter.to_instant("2024-06-01T09:00", "Store/Home") == pendulum.datetime(2024, 6, 1, 14, tz="UTC")

    def test_format_in_zone(self):
        converter = LocalTimeConverter()

        text = converter.format_in_zone(pendulum.datetime(2024, 7, 15, 12, tz="UTC"), "America/New_York")

        assert text == "2024-07-15 08:00 EDT"

    def test_today_uses_store_calendar(self):
        """Just after midnight UTC it is still the previous day in Los Angeles."""
        converter = LocalTimeConverter()
        clock = lambda: pendulum.datetime(2024, 6, 2, 1, 0, tz="UTC")

        today = converter.today("America/Los_Angeles", clock)

        assert (today.month, today.day) == (6, 1)


class TestRanges:
    """Tests for local day and window ranges."""

    def test_regular_day_range(self):
        converter = LocalTimeConverter()

        day = converter.local_day_range("2024-06-01", "America/Los_Angeles")

        assert day.start == pendulum.datetime(2024, 6, 1, 7, tz="UTC")
        assert day.end == pendulum.datetime(2024, 6, 2, 7, tz="UTC")
        assert day.duration_minutes() == 24 * 60

    def test_spring_forward_day_is_short(self):
        converter = LocalTimeConverter()

        day = converter.local_day_range("2024-03-10", "America/New_York")

        assert day.duration_minutes() == 23 * 60

    def test_fall_back_day_is_long(self):
        converter = LocalTimeConverter()

        day = converter.local_day_range("2024-11-03", "America/New_York")

        assert day.duration_minutes() == 25 * 60

    def test_window_range(self):
        converter = LocalTimeConverter()
        window = OperatingWindow(weekday=5, start=time(9), end=time(17))

        working = converter.window_range("2024-06-01", window, "America/Los_Angeles")

        assert working.start == pendulum.datetime(2024, 6, 1, 16, tz="UTC")
        assert working.end == pendulum.datetime(2024, 6, 2, 0, tz="UTC")

    def test_window_until_midnight(self):
        converter = LocalTimeConverter()
        window = OperatingWindow(weekday=5, start=time(18), end=END_OF_DAY)

        working = converter.window_range("2024-06-01", window, "America/Los_Angeles")

        assert working.end == pendulum.datetime(2024, 6, 2, 7, tz="UTC")
        assert working.duration_minutes() == 6 * 60

    def test_window_inside_gap_collapses(self):
        converter = LocalTimeConverter()
        window = OperatingWindow(weekday=6, start=time(2, 30), end=time(3, 0))

        assert converter.window_range("2024-03-10", window, "America/New_York") is None


class TestEpochHelpers:
    """Tests for the linear instant representation."""

    def test_to_epoch_ms(self):
        assert to_epoch_ms(pendulum.datetime(1970, 1, 1, 0, 0, 1, tz="UTC")) == 1000
        assert to_epoch_ms(pendulum.datetime(2024, 6, 1, 16, tz="UTC")) == 1717257600000

    def test_from_epoch_ms(self):
        instant = from_epoch_ms(1717257600123)

        assert instant == pendulum.datetime(2024, 6, 1, 16, 0, 0, 123000, tz="UTC")
        assert format_instant(instant) == "2024-06-01T16:00:00.123Z"

    def test_epoch_ms_ignores_source_zone(self):
        berlin = pendulum.datetime(2024, 6, 1, 18, tz="Europe/Berlin")

        assert to_epoch_ms(berlin) == 1717257600000

    def test_naive_value_is_not_an_instant(self):
        with pytest.raises(InvalidDateFormat):
            to_epoch_ms(datetime(2024, 6, 1, 16))

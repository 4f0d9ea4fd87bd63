"""
Tests for the zone resolver.
"""

from datetime import datetime, time, timedelta, timezone

import pendulum
import pytest

from storeslots.domain.exceptions import InvalidDateFormat, UnknownTimeZone
from storeslots.domain.zone_resolver import (
    COMMON_TIMEZONES,
    StaticTimeZoneDatabase,
    ZoneResolver,
    format_offset,
)


class TestOffsets:
    """Tests for DST-aware offsets."""

    def test_new_york_winter_offset(self):
        """January in New York is UTC-5."""
        resolver = ZoneResolver()
        offset = resolver.offset_for("America/New_York", pendulum.datetime(2024, 1, 15, 12, tz="UTC"))

        assert offset == timedelta(hours=-5)
        assert format_offset(offset) == "-05:00"

    def test_new_york_summer_offset(self):
        """July in New York is UTC-4."""
        resolver = ZoneResolver()
        offset = resolver.offset_for("America/New_York", pendulum.datetime(2024, 7, 15, 12, tz="UTC"))

        assert offset == timedelta(hours=-4)
        assert format_offset(offset) == "-04:00"

    def test_abbreviation_follows_dst(self):
        resolver = ZoneResolver()

        assert resolver.abbreviation_for("America/New_York", pendulum.datetime(2024, 1, 15, 12, tz="UTC")) == "EST"
        assert resolver.abbreviation_for("America/New_York", pendulum.datetime(2024, 7, 15, 12, tz="UTC")) == "EDT"

    def test_instant_given_in_another_zone(self):
        """The zone an instant is expressed in does not matter."""
        resolver = ZoneResolver()
        instant = pendulum.datetime(2024, 7, 15, 14, tz="Europe/Berlin")

        assert resolver.offset_for("America/Los_Angeles", instant) == timedelta(hours=-7)

    def test_half_hour_zone(self):
        resolver = ZoneResolver()
        offset = resolver.offset_for("Asia/Kolkata", pendulum.datetime(2024, 7, 15, tz="UTC"))

        assert format_offset(offset) == "+05:30"

    def test_naive_instant_rejected(self):
        resolver = ZoneResolver()

        with pytest.raises(InvalidDateFormat):
            resolver.offset_for("America/New_York", datetime(2024, 1, 15, 12))


class TestLocalOffsets:
    """Tests for interpreting wall-clock times."""

    def test_gap_uses_offset_before_transition(self):
        """02:30 on the spring-forward day keeps standard time."""
        resolver = ZoneResolver()
        offset = resolver.offset_at_local("America/New_York", datetime(2024, 3, 10, 2, 30))

        assert offset == timedelta(hours=-5)

    def test_overlap_uses_earlier_occurrence(self):
        """01:30 on the fall-back day resolves to daylight time."""
        resolver = ZoneResolver()
        offset = resolver.offset_at_local("America/New_York", datetime(2024, 11, 3, 1, 30))

        assert offset == timedelta(hours=-4)

    def test_fall_back_hour_has_two_abbreviations(self):
        resolver = ZoneResolver()

        first = resolver.abbreviation_for("America/New_York", pendulum.datetime(2024, 11, 3, 5, 30, tz="UTC"))
        second = resolver.abbreviation_for("America/New_York", pendulum.datetime(2024, 11, 3, 6, 30, tz="UTC"))

        assert (first, second) == ("EDT", "EST")


class TestUnknownZones:
    """Tests for invalid identifiers."""

    def test_unknown_zone_raises(self):
        resolver = ZoneResolver()

        with pytest.raises(UnknownTimeZone) as exc_info:
            resolver.offset_for("Mars/Olympus_Mons", pendulum.datetime(2024, 1, 1, tz="UTC"))

        assert exc_info.value.zone_id == "Mars/Olympus_Mons"

    def test_empty_zone_raises(self):
        resolver = ZoneResolver()

        with pytest.raises(UnknownTimeZone):
            resolver.timezone("")

    def test_is_valid(self):
        resolver = ZoneResolver()

        assert resolver.is_valid("Europe/Berlin")
        assert not resolver.is_valid("Europe/Atlantis")

    def test_common_timezones_resolve(self):
        resolver = ZoneResolver()

        assert all(resolver.is_valid(zone_id) for zone_id in COMMON_TIMEZONES)


class TestInjectedDatabase:
    """Tests for pinning timezone rules."""

    def test_static_database(self):
        database = StaticTimeZoneDatabase({"Store/Fixed": timezone(timedelta(hours=5, minutes=30))})
        resolver = ZoneResolver(database)

        offset = resolver.offset_for("Store/Fixed", pendulum.datetime(2024, 1, 1, tz="UTC"))

        assert offset == timedelta(hours=5, minutes=30)
        assert resolver.offset_at_local("Store/Fixed", datetime.combine(datetime(2024, 1, 1), time(9))) == offset

    def test_static_database_does_not_fall_back(self):
        resolver = ZoneResolver(StaticTimeZoneDatabase({}))

        with pytest.raises(UnknownTimeZone):
            resolver.timezone("America/New_York")

    def test_describe(self):
        resolver = ZoneResolver()
        description = resolver.describe("Europe/Berlin", pendulum.datetime(2024, 1, 10, tz="UTC"))

        assert description.zone_id == "Europe/Berlin"
        assert description.offset_label == "+01:00"
        assert description.abbreviation == "CET"

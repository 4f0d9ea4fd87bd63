"""
Timezone lookup and DST-aware UTC offsets.

The timezone rule set has its own update lifecycle (tzdata releases), so it is
injected into ``ZoneResolver`` as a ``TimeZoneDatabase`` instead of being read
from a global. Tests pin zones with ``StaticTimeZoneDatabase``.
"""

from __future__ import annotations

import logging
import zoneinfo
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Dict, List, Mapping, Protocol

import pendulum

from .exceptions import UnknownTimeZone
from .models import ensure_instant

logger = logging.getLogger(__name__)


# Zones offered when a store picks its timezone.
COMMON_TIMEZONES: List[str] = [
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Anchorage",
    "Pacific/Honolulu",
    "America/Toronto",
    "America/Vancouver",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Europe/Madrid",
    "Europe/Rome",
    "Asia/Dubai",
    "Asia/Kolkata",
    "Asia/Singapore",
    "Asia/Tokyo",
    "Asia/Shanghai",
    "Australia/Sydney",
    "Australia/Melbourne",
    "Pacific/Auckland",
]


class TimeZoneDatabase(Protocol):
    """Source of timezone rules keyed by IANA identifier."""

    def get(self, zone_id: str) -> tzinfo:
        """Return the tzinfo for ``zone_id`` or raise ``UnknownTimeZone``."""


class PendulumTimeZoneDatabase:
    """Timezone rules from the system/IANA database via pendulum."""

    def get(self, zone_id: str) -> tzinfo:
        if not zone_id or not zone_id.strip():
            raise UnknownTimeZone(zone_id)

        try:
            return pendulum.timezone(zone_id)
        except (ValueError, zoneinfo.ZoneInfoNotFoundError) as exc:
            logger.debug("Timezone lookup failed for %r: %s", zone_id, exc)
            raise UnknownTimeZone(zone_id) from exc


class StaticTimeZoneDatabase:
    """A fixed mapping of identifiers to tzinfo objects."""

    def __init__(self, zones: Mapping[str, tzinfo]):
        self._zones: Dict[str, tzinfo] = dict(zones)

    def get(self, zone_id: str) -> tzinfo:
        try:
            return self._zones[zone_id]
        except KeyError:
            raise UnknownTimeZone(zone_id) from None


@dataclass(frozen=True)
class ZoneDescription:
    """Display information for a zone at a specific instant."""
    zone_id: str
    offset: timedelta
    abbreviation: str

    @property
    def offset_label(self) -> str:
        return format_offset(self.offset)


def format_offset(offset: timedelta) -> str:
    """Format a UTC offset as ``+HH:MM`` / ``-HH:MM``."""
    total_minutes = int(offset.total_seconds() // 60)
    sign = "-" if total_minutes < 0 else "+"
    hours, minutes = divmod(abs(total_minutes), 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


class ZoneResolver:
    """
    Resolves timezone identifiers to UTC offsets and abbreviations.

    Offsets depend on the instant queried: America/New_York is -05:00 in
    January and -04:00 in July.
    """

    def __init__(self, database: TimeZoneDatabase | None = None):
        self._database = database or PendulumTimeZoneDatabase()

    def timezone(self, zone_id: str) -> tzinfo:
        """
        Look up a timezone.

        Raises:
            UnknownTimeZone: If the identifier is not in the database
        """
        return self._database.get(zone_id)

    def is_valid(self, zone_id: str) -> bool:
        try:
            self.timezone(zone_id)
        except UnknownTimeZone:
            return False
        return True

    def localize(self, zone_id: str, instant: datetime) -> datetime:
        """Express an instant as an aware wall-clock datetime in the zone."""
        tz = self.timezone(zone_id)
        utc = ensure_instant(instant)
        wall_utc = datetime(
            utc.year, utc.month, utc.day,
            utc.hour, utc.minute, utc.second, utc.microsecond,
            tzinfo=tz,
        )
        return tz.fromutc(wall_utc)

    def offset_for(self, zone_id: str, instant: datetime) -> timedelta:
        """Signed UTC offset (DST included) in effect at the instant."""
        return self.localize(zone_id, instant).utcoffset()

    def abbreviation_for(self, zone_id: str, instant: datetime) -> str:
        """Short zone label in effect at the instant, e.g. ``EST`` or ``EDT``."""
        return self.localize(zone_id, instant).tzname() or zone_id

    def offset_at_local(self, zone_id: str, local: datetime) -> timedelta:
        """
        UTC offset used to interpret a wall-clock time in the zone.

        The offset in force just before a transition always wins (PEP 495
        ``fold=0``): a time inside a spring-forward gap keeps the old offset,
        so it lands after the gap; a repeated fall-back time resolves to its
        earlier occurrence.
        """
        tz = self.timezone(zone_id)
        wall = datetime(
            local.year, local.month, local.day,
            local.hour, local.minute, local.second, local.microsecond,
            tzinfo=tz,
            fold=0,
        )
        return wall.utcoffset()

    def describe(self, zone_id: str, instant: datetime | None = None) -> ZoneDescription:
        """Offset and abbreviation of a zone, at ``instant`` or now."""
        moment = instant if instant is not None else pendulum.now("UTC")
        wall = self.localize(zone_id, moment)
        return ZoneDescription(
            zone_id=zone_id,
            offset=wall.utcoffset(),
            abbreviation=wall.tzname() or zone_id,
        )

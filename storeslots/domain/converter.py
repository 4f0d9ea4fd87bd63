"""
Conversion between store-local wall-clock time and absolute instants.

The two directions are not naive inverses: a local time is interpreted with
the offset in force just before any DST transition (see
``ZoneResolver.offset_at_local``). Consequences, using America/New_York:

* 2024-03-10 02:30 does not exist; it maps to 07:30Z and reads back as 03:30.
* 2024-11-03 01:30 happens twice; it maps to the earlier one, 05:30Z.

Outside the spring-forward gap ``to_local(to_instant(L, Z), Z) == L``.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Callable

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidDateFormat
from .models import OperatingWindow, TimeRange, ensure_instant
from .zone_resolver import ZoneResolver

LOCAL_DATE_FORMAT = "YYYY-MM-DD"
LOCAL_ISO_FORMAT = "%Y-%m-%dT%H:%M:%S"


def parse_local_date(text: str) -> Date:
    """
    Parse a store-local calendar date (``YYYY-MM-DD``).

    Raises:
        InvalidDateFormat: If the text is not a valid date
    """
    if not isinstance(text, str):
        raise InvalidDateFormat(f"Expected a date string, got {text!r}")

    try:
        return pendulum.from_format(text.strip(), LOCAL_DATE_FORMAT).date()
    except ValueError as exc:
        raise InvalidDateFormat(f"Invalid local date '{text}', expected YYYY-MM-DD") from exc


def parse_local_datetime(text: str) -> DateTime:
    """
    Parse an ISO-8601 local date-time without offset, e.g. ``2024-06-01T14:30``.

    Raises:
        InvalidDateFormat: If the text is malformed or carries a UTC offset
    """
    if not isinstance(text, str):
        raise InvalidDateFormat(f"Expected a date-time string, got {text!r}")

    try:
        parsed = datetime.fromisoformat(text.strip())
    except ValueError as exc:
        raise InvalidDateFormat(f"Invalid local date-time '{text}'") from exc

    if parsed.tzinfo is not None:
        raise InvalidDateFormat(
            f"Local date-time '{text}' must not carry a UTC offset"
        )

    return _naive(parsed)


def as_local(value: str | datetime) -> DateTime:
    """Accept a local date-time as string or naive datetime."""
    if isinstance(value, str):
        return parse_local_datetime(value)

    if value.tzinfo is not None:
        raise InvalidDateFormat(
            f"Expected a local (naive) date-time, got {value.isoformat()}"
        )
    return _naive(value)


def as_date(value: str | date) -> Date:
    if isinstance(value, str):
        return parse_local_date(value)
    return pendulum.date(value.year, value.month, value.day)


def format_local(local: datetime) -> str:
    """ISO-8601 local string without offset."""
    return local.strftime(LOCAL_ISO_FORMAT)


def parse_instant(text: str) -> DateTime:
    """
    Parse an ISO-8601 timestamp from the backend. Values without offset are UTC.

    Raises:
        InvalidDateFormat: If the text is not a full timestamp
    """
    try:
        parsed = pendulum.parse(text)
    except (TypeError, ValueError) as exc:
        raise InvalidDateFormat(f"Invalid timestamp '{text}'") from exc

    if not isinstance(parsed, DateTime):
        raise InvalidDateFormat(f"Timestamp '{text}' is missing a time of day")

    return ensure_instant(parsed)


def format_instant(instant: datetime) -> str:
    """UTC ISO-8601 string with millisecond precision, e.g. ``2024-06-01T16:00:00.000Z``."""
    utc = ensure_instant(instant)
    return f"{utc.strftime('%Y-%m-%dT%H:%M:%S')}.{utc.microsecond // 1000:03d}Z"


def to_epoch_ms(instant: datetime) -> int:
    """Milliseconds since the Unix epoch."""
    utc = ensure_instant(instant)
    return utc.int_timestamp * 1000 + utc.microsecond // 1000


def from_epoch_ms(value: int) -> DateTime:
    seconds, millis = divmod(value, 1000)
    return pendulum.from_timestamp(seconds, tz="UTC").add(microseconds=millis * 1000)


def _naive(value: datetime) -> DateTime:
    return pendulum.naive(
        value.year, value.month, value.day,
        value.hour, value.minute, value.second, value.microsecond,
    )


class LocalTimeConverter:
    """
    Converts between local wall-clock times of a zone and UTC instants.

    Pure: results depend only on the arguments and the resolver's database.
    """

    def __init__(self, resolver: ZoneResolver | None = None):
        self.resolver = resolver or ZoneResolver()

    def to_instant(self, local: str | datetime, zone_id: str) -> DateTime:
        """
        Interpret a local wall-clock time in ``zone_id`` as a UTC instant.

        Raises:
            InvalidDateFormat: If ``local`` is malformed or already zoned
            UnknownTimeZone: If ``zone_id`` cannot be resolved
        """
        wall = as_local(local)
        offset = self.resolver.offset_at_local(zone_id, wall)
        utc = datetime(
            wall.year, wall.month, wall.day,
            wall.hour, wall.minute, wall.second, wall.microsecond,
        ) - offset

        return pendulum.datetime(
            utc.year, utc.month, utc.day,
            utc.hour, utc.minute, utc.second, utc.microsecond,
            tz="UTC",
        )

    def to_local(self, instant: datetime, zone_id: str) -> DateTime:
        """Wall-clock time in ``zone_id`` at the given instant (naive)."""
        return _naive(self.resolver.localize(zone_id, instant))

    def local_day_range(self, day: str | date, zone_id: str) -> TimeRange:
        """
        Instants covering one local calendar day.

        The end is the next local midnight, exclusive, so DST days span 23 or
        25 hours.
        """
        local_day = as_date(day)
        midnight = datetime.combine(local_day, time.min)

        return TimeRange(
            start=self.to_instant(midnight, zone_id),
            end=self.to_instant(midnight + timedelta(days=1), zone_id),
        )

    def window_range(
        self,
        day: str | date,
        window: OperatingWindow,
        zone_id: str,
    ) -> TimeRange | None:
        """
        Instants covered by an operating window on a local date.

        Returns None when the window collapses, which only happens for a window
        that lies inside a spring-forward gap.
        """
        local_day = as_date(day)
        start = self.to_instant(datetime.combine(local_day, window.start), zone_id)
        if window.ends_at_midnight:
            local_end = datetime.combine(local_day, time.min) + timedelta(days=1)
        else:
            local_end = datetime.combine(local_day, window.end)
        end = self.to_instant(local_end, zone_id)

        if start >= end:
            return None
        return TimeRange(start=start, end=end)

    def now_local(
        self,
        zone_id: str,
        clock: Callable[[], DateTime] | None = None,
    ) -> DateTime:
        now = clock() if clock else pendulum.now("UTC")
        return self.to_local(now, zone_id)

    def today(self, zone_id: str, clock: Callable[[], DateTime] | None = None) -> Date:
        """Current calendar date in the zone."""
        return self.now_local(zone_id, clock).date()

    def format_in_zone(
        self,
        instant: datetime,
        zone_id: str,
        fmt: str = "YYYY-MM-DD HH:mm",
    ) -> str:
        """Render an instant as local time followed by the zone abbreviation."""
        local = self.to_local(instant, zone_id)
        abbreviation = self.resolver.abbreviation_for(zone_id, instant)
        return f"{local.format(fmt)} {abbreviation}"

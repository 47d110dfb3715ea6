"""
Timezone helpers built on pendulum's IANA database.

Every conversion in the planner goes through this module so that an unknown
zone identifier always surfaces as ``InvalidTimezone``.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional

import pendulum
from pendulum import DateTime

from .exceptions import InvalidTimezone

COMMON_TIMEZONES = [
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "America/Toronto",
    "America/Vancouver",
    "Europe/London",
    "Europe/Paris",
    "Europe/Berlin",
    "Europe/Rome",
    "Asia/Tokyo",
    "Asia/Shanghai",
    "Asia/Kolkata",
    "Australia/Sydney",
    "Australia/Melbourne",
    "Pacific/Auckland",
    "UTC",
]


@dataclass(frozen=True)
class TimezoneInfo:
    """Display information for a timezone selector."""
    timezone: str
    offset: str
    abbreviation: str
    display_name: str


def get_timezone(name: str):
    """
    Resolve an IANA identifier to a pendulum timezone.

    Raises:
        InvalidTimezone: If the identifier is unknown
    """
    if not name:
        raise InvalidTimezone(str(name))
    try:
        return pendulum.timezone(name)
    except (ValueError, KeyError) as exc:
        # pendulum raises its own InvalidTimezone (a ValueError); zoneinfo may
        # raise ZoneInfoNotFoundError (a KeyError) for odd keys.
        raise InvalidTimezone(name) from exc


def validate_timezone(name: str) -> str:
    """Return the identifier unchanged if it is a known zone."""
    get_timezone(name)
    return name


def local_timezone() -> str:
    """Name of the host's detected timezone, ``UTC`` if it has no IANA name."""
    zone = pendulum.local_timezone()
    if isinstance(zone, pendulum.Timezone):
        return zone.name
    return "UTC"


def _as_datetime(instant: Optional[datetime]) -> DateTime:
    if instant is None:
        return pendulum.now("UTC")
    if isinstance(instant, DateTime):
        return instant
    return pendulum.instance(instant)


def offset_of(timezone: str, instant: Optional[datetime] = None) -> str:
    """
    Format the UTC offset of a zone at an instant as ``+HH:MM``.

    The offset is the difference between the instant's wall clock in the
    zone and its wall clock in UTC.
    """
    zone = get_timezone(timezone)
    moment = _as_datetime(instant)

    local_wall = moment.in_timezone(zone).naive()
    utc_wall = moment.in_timezone("UTC").naive()
    minutes = int((local_wall - utc_wall).total_seconds() // 60)

    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}:{mins:02d}"


def abbreviation_of(timezone: str, instant: Optional[datetime] = None) -> str:
    """Short zone name at an instant, e.g. ``EST`` or ``BST``."""
    zone = get_timezone(timezone)
    return _as_datetime(instant).in_timezone(zone).tzname() or ""


def display_name(timezone: str) -> str:
    """Human friendly label: ``America/New_York`` -> ``New York (America)``."""
    parts = timezone.split("/")
    city = parts[-1].replace("_", " ")
    return f"{city} ({parts[0]})"


def convert(value: datetime, from_tz: str, to_tz: str) -> DateTime:
    """
    Interpret ``value``'s wall clock in ``from_tz`` and return the same
    instant expressed in ``to_tz``.

    Any tzinfo already attached to ``value`` is ignored.
    """
    source = get_timezone(from_tz)
    target = get_timezone(to_tz)

    pinned = pendulum.datetime(
        value.year,
        value.month,
        value.day,
        value.hour,
        value.minute,
        value.second,
        value.microsecond,
        tz=source,
    )
    return pinned.in_timezone(target)


def zoned_date(day, clock, timezone: str) -> DateTime:
    """
    Build the absolute instant for a civil date and wall-clock time in a zone.

    Args:
        day: ``date`` or ``YYYY-MM-DD`` string
        clock: ``time`` or ``HH:MM[:SS]`` string
        timezone: IANA identifier

    DST gaps and folds are resolved by pendulum.
    """
    zone = get_timezone(timezone)

    if isinstance(day, str):
        day = pendulum.from_format(day, "YYYY-MM-DD").date()
    if isinstance(clock, str):
        clock = time.fromisoformat(clock)

    return pendulum.datetime(
        day.year,
        day.month,
        day.day,
        clock.hour,
        clock.minute,
        clock.second,
        tz=zone,
    )


def time_with_timezone(instant: datetime, timezone: str) -> str:
    """Render an instant as ``9:00 AM EST`` in the given zone."""
    zone = get_timezone(timezone)
    local = _as_datetime(instant).in_timezone(zone)
    return f"{local.format('h:mm A')} {local.tzname() or ''}".strip()


def common_timezones(instant: Optional[datetime] = None) -> List[TimezoneInfo]:
    """Offset, abbreviation and label for the commonly used zones."""
    return [
        TimezoneInfo(
            timezone=tz,
            offset=offset_of(tz, instant),
            abbreviation=abbreviation_of(tz, instant),
            display_name=display_name(tz),
        )
        for tz in COMMON_TIMEZONES
    ]


def today(timezone: str) -> date:
    """Current civil date in a zone."""
    return pendulum.now(get_timezone(timezone)).date()

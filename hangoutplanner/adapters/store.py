"""
Store query interface and parsing of raw store rows into domain records.

Rows arrive as loosely typed mappings (JSON documents, REST responses).
They are validated here so the domain layer only ever sees typed records.
"""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Callable, Iterable, List, Mapping, Optional, Protocol, TypeVar

import pendulum
from pendulum import DateTime

from ..domain.exceptions import StoreError
from ..domain.models import (
    AvailabilityException,
    AvailabilitySlot,
    CalendarEvent,
    Hangout,
    Profile,
)

Row = Mapping[str, Any]
T = TypeVar("T")


class StoreProtocol(Protocol):
    """Queries the planner needs from the availability/event/hangout store."""

    async def get_user_availability(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[AvailabilitySlot]:
        """Active slots of a user; recurring ones plus specific dates in range."""

    async def get_availability_exceptions(
        self,
        user_id: str,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> List[AvailabilityException]:
        """Exceptions dated between start_date and end_date (default: start_date)."""

    async def get_local_calendar_events(
        self,
        user_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[CalendarEvent]:
        """Imported calendar events overlapping [start, end)."""

    async def get_hangouts(self, user_id: str) -> List[Hangout]:
        """Hangouts the user organized or was invited to."""

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        """Profile of the user, or None if there is none."""


def parse_date(value: Any) -> date:
    if isinstance(value, datetime):
        return pendulum.instance(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        # Accept full timestamps too; only the civil date is kept.
        return pendulum.from_format(value[:10], "YYYY-MM-DD").date()
    raise ValueError(f"Could not parse date: {value!r}")


def parse_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        return time.fromisoformat(value)
    raise ValueError(f"Could not parse time: {value!r}")


def parse_instant(value: Any) -> DateTime:
    """
    Parse an ISO 8601 timestamp to a pendulum DateTime.

    Timestamps without an offset are taken as UTC.
    """
    if isinstance(value, DateTime):
        return value
    if isinstance(value, datetime):
        return pendulum.instance(value)
    if isinstance(value, str):
        parsed = pendulum.parse(value)
        if isinstance(parsed, DateTime):
            return parsed
    raise ValueError(f"Could not parse datetime: {value!r}")


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def parse_availability_row(row: Row) -> AvailabilitySlot:
    specific_date = row.get("specific_date")
    day_of_week = row.get("day_of_week")
    return AvailabilitySlot(
        user_id=str(row["user_id"]),
        start_time=parse_time(row["start_time"]),
        end_time=parse_time(row["end_time"]),
        day_of_week=None if day_of_week is None else int(day_of_week),
        specific_date=None if specific_date is None else parse_date(specific_date),
        is_recurring=bool(row.get("is_recurring", True)),
        is_active=bool(row.get("is_active", True)),
        id=_optional_str(row.get("id")),
    )


def parse_exception_row(row: Row) -> AvailabilityException:
    return AvailabilityException(
        user_id=str(row["user_id"]),
        exception_date=parse_date(row["exception_date"]),
        start_time=parse_time(row["start_time"]),
        end_time=parse_time(row["end_time"]),
        reason=row.get("reason"),
        id=_optional_str(row.get("id")),
    )


def parse_calendar_event_row(row: Row) -> CalendarEvent:
    return CalendarEvent(
        user_id=str(row["user_id"]),
        start=parse_instant(row["start_time"]),
        end=parse_instant(row["end_time"]),
        title=row.get("title") or "",
        id=_optional_str(row.get("id")),
    )


def parse_hangout_row(row: Row) -> Hangout:
    duration = row.get("duration_minutes")
    return Hangout(
        organizer_id=str(row["organizer_id"]),
        friend_id=str(row["friend_id"]),
        status=str(row["status"]),
        scheduled_date=parse_date(row["scheduled_date"]),
        scheduled_time=parse_time(row["scheduled_time"]),
        duration_minutes=None if duration is None else int(duration),
        id=_optional_str(row.get("id")),
    )


def parse_profile_row(row: Row) -> Profile:
    user_id = row.get("user_id", row.get("id"))
    if user_id is None:
        raise KeyError("id")
    return Profile(user_id=str(user_id), timezone=row.get("timezone") or None)


def parse_rows(rows: Optional[Iterable[Row]], parser: Callable[[Row], T], kind: str) -> List[T]:
    """
    Parse every row or fail with ``StoreError``.

    ``None`` is treated as an empty result.
    """
    parsed: List[T] = []
    for row in rows or []:
        try:
            parsed.append(parser(row))
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise StoreError(f"Malformed {kind} row {row!r}: {exc}") from exc
    return parsed

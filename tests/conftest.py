"""
Shared fixtures: an in-memory store matching StoreProtocol.
"""

from typing import Dict, List, Optional

import pytest

from hangoutplanner.domain.models import (
    AvailabilityException,
    AvailabilitySlot,
    CalendarEvent,
    Hangout,
    Profile,
)


class StubStore:
    """Minimal stub matching StoreProtocol, with optional failures per query."""

    def __init__(
        self,
        *,
        availability: Optional[List[AvailabilitySlot]] = None,
        exceptions: Optional[List[AvailabilityException]] = None,
        events: Optional[List[CalendarEvent]] = None,
        hangouts: Optional[List[Hangout]] = None,
        timezones: Optional[Dict[str, str]] = None,
        fail: Optional[Dict[str, Exception]] = None,
    ):
        self.availability = availability or []
        self.exceptions = exceptions or []
        self.events = events or []
        self.hangouts = hangouts or []
        self.timezones = timezones or {}
        self.fail = fail or {}
        self.calls: List[str] = []

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise self.fail[name]

    async def get_user_availability(self, user_id, start_date=None, end_date=None):
        self._record("availability")
        return [slot for slot in self.availability if slot.user_id == user_id]

    async def get_availability_exceptions(self, user_id, start_date, end_date=None):
        self._record("exceptions")
        last = end_date or start_date
        return [
            e for e in self.exceptions
            if e.user_id == user_id and start_date <= e.exception_date <= last
        ]

    async def get_local_calendar_events(self, user_id, start, end):
        self._record("events")
        return [
            e for e in self.events
            if e.user_id == user_id and e.start < end and e.end > start
        ]

    async def get_hangouts(self, user_id):
        self._record("hangouts")
        return [h for h in self.hangouts if user_id in (h.organizer_id, h.friend_id)]

    async def get_profile(self, user_id):
        self._record("profile")
        timezone = self.timezones.get(user_id)
        return Profile(user_id=user_id, timezone=timezone) if timezone else None


@pytest.fixture
def make_store():
    """Factory for StubStore instances."""
    return StubStore

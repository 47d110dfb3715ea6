"""
File-backed store for running the planner without the hosted backend.
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from pendulum import DateTime

from ..domain.exceptions import StoreError
from ..domain.models import (
    AvailabilityException,
    AvailabilitySlot,
    CalendarEvent,
    Hangout,
    Profile,
)
from .store import (
    parse_availability_row,
    parse_calendar_event_row,
    parse_exception_row,
    parse_hangout_row,
    parse_profile_row,
    parse_rows,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_store_data.json"


class JsonStore:
    """
    Store that serves rows from a JSON document.

    The document holds one array per table::

        {
            "availability": [...],
            "exceptions": [...],
            "calendar_events": [...],
            "hangouts": [...],
            "profiles": [...]
        }

    Rows use the same field names as the hosted backend's tables and are
    parsed once at load time.
    """

    def __init__(self, data: Dict[str, Any]):
        if not isinstance(data, dict):
            raise StoreError("Store document must be a JSON object at the root level.")

        self._availability = parse_rows(data.get("availability"), parse_availability_row, "availability")
        self._exceptions = parse_rows(data.get("exceptions"), parse_exception_row, "exception")
        self._events = parse_rows(data.get("calendar_events"), parse_calendar_event_row, "calendar event")
        self._hangouts = parse_rows(data.get("hangouts"), parse_hangout_row, "hangout")
        self._profiles = {
            profile.user_id: profile
            for profile in parse_rows(data.get("profiles"), parse_profile_row, "profile")
        }

    @classmethod
    def from_file(cls, data_file: Optional[Path] = None) -> "JsonStore":
        """
        Load a store document from disk.

        Args:
            data_file: JSON file; defaults to the bundled sample data

        Raises:
            StoreError: If the file is missing or not valid JSON
        """
        path = data_file or DEFAULT_DATA_FILE
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as exc:
            raise StoreError(f"Could not read store file {path}: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise StoreError(f"Invalid JSON in store file {path}: {exc}") from exc

        logger.debug("Loaded store data from %s", path)
        return cls(data)

    async def get_user_availability(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[AvailabilitySlot]:
        slots = [
            slot for slot in self._availability
            if slot.user_id == user_id and slot.is_active
        ]

        if start_date is not None and end_date is not None:
            slots = [
                slot for slot in slots
                if slot.specific_date is None or start_date <= slot.specific_date <= end_date
            ]

        return sorted(
            slots,
            key=lambda s: (s.day_of_week if s.day_of_week is not None else -1, s.start_time),
        )

    async def get_availability_exceptions(
        self,
        user_id: str,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> List[AvailabilityException]:
        last_date = end_date or start_date
        exceptions = [
            exception for exception in self._exceptions
            if exception.user_id == user_id
            and start_date <= exception.exception_date <= last_date
        ]
        return sorted(exceptions, key=lambda e: (e.exception_date, e.start_time))

    async def get_local_calendar_events(
        self,
        user_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[CalendarEvent]:
        return [
            event for event in self._events
            if event.user_id == user_id and event.start < end and event.end > start
        ]

    async def get_hangouts(self, user_id: str) -> List[Hangout]:
        return [
            hangout for hangout in self._hangouts
            if user_id in (hangout.organizer_id, hangout.friend_id)
        ]

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        return self._profiles.get(user_id)

"""
REST client for the hosted backend's availability, event and hangout tables.
"""

import asyncio
import logging
import threading
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import requests
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

Params = Union[Dict[str, str], Sequence[Tuple[str, str]]]


class RestStore:
    """
    Store backed by the hosted backend's REST interface.

    Tables are queried with PostgREST style filters, e.g.
    ``GET /rest/v1/user_availability?user_id=eq.<id>&is_active=eq.true``.

    Connection errors, timeouts and 5xx responses are retried with
    exponential backoff; anything else fails immediately with ``StoreError``.
    Blocking HTTP calls run in a worker thread so the async queries can be
    awaited concurrently. Each worker thread keeps its own session, since
    ``requests.Session`` is not safe to share between threads.
    """

    API_PATH = "/rest/v1"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        base_delay_seconds: float = 1.0,
        max_delay_seconds: float = 10.0,
        session_factory: Optional[Callable[[], requests.Session]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the REST store.

        Args:
            base_url: Project URL of the hosted backend
            api_key: API key sent as ``apikey`` and bearer token
            timeout_seconds: Per-request timeout
            max_attempts: Attempts per request including the first one
            base_delay_seconds: Delay before the first retry
            max_delay_seconds: Upper bound for the backoff delay
            session_factory: Builds the session for each worker thread
                (useful for tests); defaults to ``requests.Session``
            sleep: Function used to wait between attempts
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.base_delay_seconds = base_delay_seconds
        self.max_delay_seconds = max_delay_seconds
        self._session_factory = session_factory or requests.Session
        self._local = threading.local()
        self._sleep = sleep
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }

    async def get_user_availability(
        self,
        user_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[AvailabilitySlot]:
        params: List[Tuple[str, str]] = [
            ("select", "*"),
            ("user_id", f"eq.{user_id}"),
            ("is_active", "eq.true"),
            ("order", "day_of_week.asc,start_time.asc"),
        ]
        if start_date is not None and end_date is not None:
            params.append(
                (
                    "or",
                    f"(specific_date.is.null,and(specific_date.gte.{start_date.isoformat()},"
                    f"specific_date.lte.{end_date.isoformat()}))",
                )
            )

        rows = await asyncio.to_thread(self._get, "user_availability", params)
        return parse_rows(rows, parse_availability_row, "availability")

    async def get_availability_exceptions(
        self,
        user_id: str,
        start_date: date,
        end_date: Optional[date] = None,
    ) -> List[AvailabilityException]:
        params = [
            ("select", "*"),
            ("user_id", f"eq.{user_id}"),
            ("exception_date", f"gte.{start_date.isoformat()}"),
            ("exception_date", f"lte.{(end_date or start_date).isoformat()}"),
            ("order", "exception_date.asc,start_time.asc"),
        ]
        rows = await asyncio.to_thread(self._get, "user_availability_exceptions", params)
        return parse_rows(rows, parse_exception_row, "exception")

    async def get_local_calendar_events(
        self,
        user_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[CalendarEvent]:
        params = [
            ("select", "*"),
            ("user_id", f"eq.{user_id}"),
            ("start_time", f"lt.{end.in_timezone('UTC').to_iso8601_string()}"),
            ("end_time", f"gt.{start.in_timezone('UTC').to_iso8601_string()}"),
            ("order", "start_time.asc"),
        ]
        rows = await asyncio.to_thread(self._get, "calendar_events", params)
        return parse_rows(rows, parse_calendar_event_row, "calendar event")

    async def get_hangouts(self, user_id: str) -> List[Hangout]:
        params = [
            ("select", "id,organizer_id,friend_id,status,scheduled_date,scheduled_time,duration_minutes"),
            ("or", f"(organizer_id.eq.{user_id},friend_id.eq.{user_id})"),
            ("order", "scheduled_date.desc"),
        ]
        rows = await asyncio.to_thread(self._get, "hangouts", params)
        return parse_rows(rows, parse_hangout_row, "hangout")

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        params = [("select", "id,timezone"), ("id", f"eq.{user_id}"), ("limit", "1")]
        rows = await asyncio.to_thread(self._get, "profiles", params)
        profiles = parse_rows(rows, parse_profile_row, "profile")
        return profiles[0] if profiles else None

    def _get(self, table: str, params: Params) -> List[Dict[str, Any]]:
        """
        Fetch rows from a table, retrying transient failures.

        Raises:
            StoreError: If the request ultimately fails or the body is not a list
        """
        url = f"{self.base_url}{self.API_PATH}/{table}"

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self._session().get(
                    url,
                    headers=self.headers,
                    params=params,
                    timeout=self.timeout_seconds,
                )
                response.raise_for_status()
                data = response.json()
            except requests.exceptions.RequestException as exc:
                if attempt == self.max_attempts or not self._is_retryable(exc):
                    raise StoreError(f"Failed to fetch {table} from store: {exc}") from exc

                delay = self._backoff_delay(attempt)
                logger.warning(
                    "Request for %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    table,
                    attempt,
                    self.max_attempts,
                    delay,
                    exc,
                )
                self._sleep(delay)
                continue

            if data is None:
                return []
            if not isinstance(data, list):
                raise StoreError(f"Unexpected response for {table}: expected a list of rows")
            return data

        # max_attempts >= 1 means the loop always returns or raises
        raise StoreError(f"Failed to fetch {table} from store")

    def _session(self) -> requests.Session:
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._local.session = self._session_factory()
        return session

    def _backoff_delay(self, attempt: int) -> float:
        return min(self.base_delay_seconds * (2 ** (attempt - 1)), self.max_delay_seconds)

    @staticmethod
    def _is_retryable(exc: requests.exceptions.RequestException) -> bool:
        if isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
            return True
        if isinstance(exc, requests.exceptions.HTTPError) and exc.response is not None:
            return exc.response.status_code >= 500
        return False

"""
Application service for finding windows in which two users are both free.

The service fetches availability, calendar events, exceptions and profiles
through the store protocol and delegates the per-day work to the domain's
``OverlapEngine`` and ``ConfidenceScorer``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, time, timedelta
from typing import Any, Awaitable, Dict, List, Optional, Tuple

from ..adapters.store import StoreProtocol
from ..config import AppConfig
from ..domain.exceptions import InvalidTimezone, SuggestionGenerationFailed
from ..domain.models import (
    AlternativeTime,
    AvailabilityComparison,
    AvailabilityException,
    CalendarEvent,
    Conflict,
    ConflictReport,
    Hangout,
    MutualTimeSlot,
    Profile,
    TimeRange,
    UserPattern,
    date_range,
)
from ..domain.overlap import OverlapEngine
from ..domain.scoring import ConfidenceScorer
from ..domain.timezones import local_timezone, validate_timezone, zoned_date

logger = logging.getLogger(__name__)

DEFAULT_MAX_SLOTS = 10

ALTERNATIVE_START_HOURS = range(9, 21)
ALTERNATIVE_DAYS_AHEAD = 3
ALTERNATIVES_PER_DAY = 2
MAX_ALTERNATIVES = 5


async def gather_or_fail(*aws: Awaitable[Any], what: str) -> Tuple[Any, ...]:
    """
    Await store queries concurrently.

    Any failure other than an unknown timezone is reported as
    ``SuggestionGenerationFailed``; an empty result must never stand in for
    data that could not be fetched.
    """
    try:
        return tuple(await asyncio.gather(*aws))
    except (InvalidTimezone, SuggestionGenerationFailed):
        raise
    except Exception as exc:
        raise SuggestionGenerationFailed(f"Could not fetch {what}: {exc}") from exc


class MutualAvailabilityService:
    """Finds and scores mutual free windows for a pair of users."""

    def __init__(
        self,
        store: StoreProtocol,
        *,
        engine: Optional[OverlapEngine] = None,
        scorer: Optional[ConfidenceScorer] = None,
        default_timezone: Optional[str] = None,
        max_slots: int = DEFAULT_MAX_SLOTS,
    ) -> None:
        self._store = store
        self._engine = engine or OverlapEngine()
        self._scorer = scorer or ConfidenceScorer(
            default_buffer_minutes=self._engine.buffer_minutes
        )
        self.default_timezone = default_timezone or local_timezone()
        self.max_slots = max_slots

    @classmethod
    def from_config(cls, store: StoreProtocol, config: AppConfig) -> "MutualAvailabilityService":
        """Wire engine and scorer from application config."""
        defaults = config.defaults
        return cls(
            store,
            engine=OverlapEngine(buffer_minutes=defaults.buffer_minutes),
            scorer=ConfidenceScorer(
                default_buffer_minutes=defaults.buffer_minutes,
                use_profile_preferences=config.scoring.use_profile_preferences,
            ),
            default_timezone=config.timezone,
            max_slots=defaults.max_mutual_slots,
        )

    async def find_mutual_availability(
        self,
        user_id: str,
        friend_id: str,
        start_date: date,
        end_date: date,
        preferred_duration: int = 120,
        buffer_minutes: Optional[int] = None,
        *,
        user_pattern: Optional[UserPattern] = None,
        friend_pattern: Optional[UserPattern] = None,
    ) -> AvailabilityComparison:
        """
        Compute the best mutual slots between ``start_date`` and ``end_date``.

        Slot times are expressed in the user's timezone. At most
        ``max_slots`` slots are returned, highest confidence first.

        Raises:
            SuggestionGenerationFailed: If store data cannot be fetched
            InvalidTimezone: If a profile carries an unknown timezone
        """
        if end_date < start_date:
            raise ValueError("end_date must not be before start_date")

        logger.debug("Finding mutual availability between %s and %s", user_id, friend_id)

        user_timezone, friend_timezone = await self.resolve_timezones(user_id, friend_id)

        window_start = zoned_date(start_date, time(0, 0), user_timezone)
        window_end = zoned_date(end_date + timedelta(days=1), time(0, 0), user_timezone)

        (
            user_slots,
            friend_slots,
            user_events,
            friend_events,
            user_exceptions,
            friend_exceptions,
        ) = await gather_or_fail(
            self._store.get_user_availability(user_id, start_date, end_date),
            self._store.get_user_availability(friend_id, start_date, end_date),
            self._store.get_local_calendar_events(user_id, window_start, window_end),
            self._store.get_local_calendar_events(friend_id, window_start, window_end),
            self._store.get_availability_exceptions(user_id, start_date, end_date),
            self._store.get_availability_exceptions(friend_id, start_date, end_date),
            what="availability and calendar data",
        )

        mutual_slots: List[MutualTimeSlot] = []
        conflict_count = 0

        for day in date_range(start_date, end_date):
            day_overlap = self._engine.find_day_slots(
                day=day,
                user_slots=user_slots or [],
                friend_slots=friend_slots or [],
                user_timezone=user_timezone,
                friend_timezone=friend_timezone,
                duration_minutes=preferred_duration,
                user_events=user_events or [],
                friend_events=friend_events or [],
                user_exceptions=user_exceptions or [],
                friend_exceptions=friend_exceptions or [],
                buffer_minutes=buffer_minutes,
            )
            conflict_count += day_overlap.conflict_count
            mutual_slots.extend(
                self._scorer.score_slot(slot, user_pattern, friend_pattern)
                for slot in day_overlap.slots
            )

        mutual_slots.sort(key=lambda slot: slot.confidence, reverse=True)

        return AvailabilityComparison(
            user_id=user_id,
            friend_id=friend_id,
            start_date=start_date,
            end_date=end_date,
            mutual_slots=mutual_slots[: self.max_slots],
            conflict_count=conflict_count,
            optimal_duration=preferred_duration,
        )

    async def check_conflicts(
        self,
        user_id: str,
        friend_id: str,
        day: date,
        start_time: time,
        duration_minutes: int,
    ) -> ConflictReport:
        """
        Report calendar events, upcoming hangouts and availability exceptions
        of either user that overlap a proposed meeting.

        The proposed time is read in the user's timezone. When anything
        clashes, the report also lists conflict-free alternatives on the
        same day and the following days.
        """
        if duration_minutes <= 0:
            raise ValueError("duration_minutes must be greater than zero")

        user_timezone, friend_timezone = await self.resolve_timezones(user_id, friend_id)

        start = zoned_date(day, start_time, user_timezone)
        proposed = TimeRange(start=start, end=start.add(minutes=duration_minutes))

        last_day = day + timedelta(days=ALTERNATIVE_DAYS_AHEAD)
        window_start = zoned_date(day, time(0, 0), user_timezone)
        window_end = max(
            proposed.end,
            zoned_date(last_day + timedelta(days=1), time(0, 0), user_timezone).add(
                minutes=duration_minutes
            ),
        )
        # A neighbouring civil date in the other zone can reach into this one.
        first_date = day - timedelta(days=1)
        last_date = last_day + timedelta(days=1)

        (
            user_events,
            friend_events,
            user_exceptions,
            friend_exceptions,
            user_hangouts,
            friend_hangouts,
        ) = await gather_or_fail(
            self._store.get_local_calendar_events(user_id, window_start, window_end),
            self._store.get_local_calendar_events(friend_id, window_start, window_end),
            self._store.get_availability_exceptions(user_id, first_date, last_date),
            self._store.get_availability_exceptions(friend_id, first_date, last_date),
            self._store.get_hangouts(user_id),
            self._store.get_hangouts(friend_id),
            what="conflict data",
        )

        timezones = {user_id: user_timezone, friend_id: friend_timezone}
        busy = self._busy_blocks(
            events=[*(user_events or []), *(friend_events or [])],
            hangouts=[(user_id, h) for h in user_hangouts or []]
            + [(friend_id, h) for h in friend_hangouts or []],
            exceptions=[*(user_exceptions or []), *(friend_exceptions or [])],
            timezones=timezones,
            first_date=first_date,
            last_date=last_date,
        )

        report = ConflictReport(
            proposed=proposed,
            conflicts=[block for block in busy if proposed.overlaps(block.time_range)],
        )
        if report.has_conflicts:
            report.alternative_times = self._alternative_times(
                day, duration_minutes, user_timezone, busy
            )
            logger.debug(
                "%d conflict(s) for %s, offering %d alternative(s)",
                len(report.conflicts),
                proposed,
                len(report.alternative_times),
            )
        return report

    @staticmethod
    def _busy_blocks(
        *,
        events: List[CalendarEvent],
        hangouts: List[Tuple[str, Hangout]],
        exceptions: List[AvailabilityException],
        timezones: Dict[str, str],
        first_date: date,
        last_date: date,
    ) -> List[Conflict]:
        """
        Every busy block of either user as a potential conflict.

        Hangouts are read in the organizer's timezone when the organizer is
        one of the pair, otherwise in the timezone of the participant they
        were fetched for. A hangout shared by both users is listed once.
        """
        blocks: List[Conflict] = []

        for event in events:
            if event.start >= event.end:
                continue
            blocks.append(
                Conflict(
                    kind="calendar",
                    user_id=event.user_id,
                    title=event.title,
                    time_range=event.time_range,
                    description=f"Calendar event: {event.title}",
                )
            )

        seen = set()
        for owner_id, hangout in hangouts:
            key = hangout.id or (
                hangout.organizer_id,
                hangout.friend_id,
                hangout.scheduled_date,
                hangout.scheduled_time,
            )
            if key in seen or not hangout.is_upcoming:
                continue
            if not first_date <= hangout.scheduled_date <= last_date:
                continue
            seen.add(key)

            other = hangout.friend_id if hangout.organizer_id == owner_id else hangout.organizer_id
            timezone = timezones.get(hangout.organizer_id, timezones[owner_id])
            blocks.append(
                Conflict(
                    kind="hangout",
                    user_id=owner_id,
                    title=f"Hangout with {other}",
                    time_range=hangout.pinned_to(timezone),
                    description=f"Existing {hangout.status} hangout",
                )
            )

        for exception in exceptions:
            blocked = exception.pinned_to(timezones[exception.user_id])
            if blocked is None:
                continue
            blocks.append(
                Conflict(
                    kind="availability",
                    user_id=exception.user_id,
                    title="Unavailable",
                    time_range=blocked,
                    description=exception.reason or "User marked as unavailable",
                )
            )

        return blocks

    @staticmethod
    def _alternative_times(
        day: date,
        duration_minutes: int,
        timezone: str,
        busy: List[Conflict],
    ) -> List[AlternativeTime]:
        """
        Conflict-free whole-hour starts between 09:00 and 20:00.

        The proposed day is searched first, then each following day, taking
        at most ``ALTERNATIVES_PER_DAY`` per day and ``MAX_ALTERNATIVES`` in
        total.
        """
        alternatives: List[AlternativeTime] = []

        for offset in range(ALTERNATIVE_DAYS_AHEAD + 1):
            candidate_day = day + timedelta(days=offset)
            found = 0
            for hour in ALTERNATIVE_START_HOURS:
                if found == ALTERNATIVES_PER_DAY or len(alternatives) == MAX_ALTERNATIVES:
                    break
                start = zoned_date(candidate_day, time(hour, 0), timezone)
                window = TimeRange(start=start, end=start.add(minutes=duration_minutes))
                if any(window.overlaps(block.time_range) for block in busy):
                    continue
                alternatives.append(
                    AlternativeTime(
                        date=candidate_day,
                        start_time=start.time(),
                        end_time=window.end.time(),
                    )
                )
                found += 1

        return alternatives

    async def resolve_timezones(self, user_id: str, friend_id: str) -> Tuple[str, str]:
        """Profile timezones of both users, defaulting to ``default_timezone``."""
        user_profile, friend_profile = await gather_or_fail(
            self._store.get_profile(user_id),
            self._store.get_profile(friend_id),
            what="profiles",
        )
        return self.timezone_of(user_profile), self.timezone_of(friend_profile)

    def timezone_of(self, profile: Optional[Profile]) -> str:
        if profile is None or not profile.timezone:
            return self.default_timezone
        return validate_timezone(profile.timezone)


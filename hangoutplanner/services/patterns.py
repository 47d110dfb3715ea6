"""
Mining of per-user and per-pair meeting patterns from store history.

A missing or sparse history is the normal case for new friend pairs, so
analysis never fails a request: fetch problems are logged and answered with
a default pattern (or no mutual history).
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections import Counter
from datetime import time, timedelta
from typing import Iterable, List, Optional, Sequence

from ..adapters.store import StoreProtocol
from ..domain.models import (
    AvailabilitySlot,
    Hangout,
    HistoricalPattern,
    MeetingTime,
    PreferredTimeRange,
    UserPattern,
    format_clock,
)
from ..domain.timezones import local_timezone, today, validate_timezone

logger = logging.getLogger(__name__)

DEFAULT_MEETING_DURATION = 120
DEFAULT_NOTICE_HOURS = 24
WEEKDAYS = [1, 2, 3, 4, 5]


def top_days(days: Iterable[int], limit: int) -> List[int]:
    """
    Most frequent weekdays, most frequent first.

    Ties keep ascending weekday order.
    """
    frequency = [0] * 7
    for day in days:
        frequency[day] += 1

    ranked = sorted(
        (day for day in range(7) if frequency[day] > 0),
        key=lambda day: -frequency[day],
    )
    return ranked[:limit]


def average_duration(hangouts: Sequence[Hangout]) -> int:
    """Mean hangout length in minutes, rounded half up; 120 without history."""
    if not hangouts:
        return DEFAULT_MEETING_DURATION
    total = sum(h.duration_minutes or DEFAULT_MEETING_DURATION for h in hangouts)
    return math.floor(total / len(hangouts) + 0.5)


def common_meeting_times(meeting_times: Sequence[MeetingTime], limit: int = 3) -> List[time]:
    """
    Most frequent start times (to the minute) of past meetings.

    Ties keep the order in which the times were first seen.
    """
    counts = Counter(
        time(meeting.start_time.hour, meeting.start_time.minute)
        for meeting in meeting_times
    )
    return [clock for clock, _ in counts.most_common(limit)]


class PatternAnalyzer:
    """Derives ``UserPattern`` and ``HistoricalPattern`` values from a store."""

    def __init__(
        self,
        store: StoreProtocol,
        *,
        default_timezone: Optional[str] = None,
        history_window_days: int = 30,
    ):
        self._store = store
        self.default_timezone = default_timezone or local_timezone()
        self.history_window_days = history_window_days

    async def analyze_user_patterns(self, user_id: str) -> UserPattern:
        """
        Summarize a user's availability and completed hangouts.

        Falls back to ``default_pattern`` on any error.
        """
        try:
            profile = await self._store.get_profile(user_id)
            timezone = validate_timezone(
                profile.timezone if profile and profile.timezone else self.default_timezone
            )

            window_start = today(timezone)
            window_end = window_start + timedelta(days=self.history_window_days)
            availability, hangouts = await asyncio.gather(
                self._store.get_user_availability(user_id, window_start, window_end),
                self._store.get_hangouts(user_id),
            )
        except Exception as exc:
            logger.warning(
                "Pattern analysis degraded for user %s, using default pattern: %s",
                user_id,
                exc,
            )
            return self.default_pattern(user_id)

        completed = [h for h in hangouts if h.is_completed]

        return UserPattern(
            user_id=user_id,
            preferred_days=self._preferred_days(availability, completed),
            preferred_time_ranges=[
                PreferredTimeRange(start_time=slot.start_time, end_time=slot.end_time, frequency=1.0)
                for slot in availability
            ],
            average_meeting_duration=average_duration(completed),
            common_meeting_days=top_days((h.day_of_week for h in completed), 3),
            timezone=timezone,
        )

    async def analyze_mutual_history(
        self,
        user_id: str,
        friend_id: str,
    ) -> Optional[HistoricalPattern]:
        """
        Summarize the pair's shared hangouts.

        Returns None when the two have never had a hangout together, or when
        the history cannot be fetched.
        """
        try:
            user_hangouts, friend_hangouts = await asyncio.gather(
                self._store.get_hangouts(user_id),
                self._store.get_hangouts(friend_id),
            )
        except Exception as exc:
            logger.warning(
                "Mutual history unavailable for %s and %s: %s",
                user_id,
                friend_id,
                exc,
            )
            return None

        mutual = self._unique(
            h for h in [*user_hangouts, *friend_hangouts]
            if h.is_between(user_id, friend_id)
        )
        if not mutual:
            return None

        completed = [h for h in mutual if h.is_completed]
        meeting_times = [
            MeetingTime(
                date=h.scheduled_date,
                start_time=h.scheduled_time,
                duration=h.duration_minutes or DEFAULT_MEETING_DURATION,
                day_of_week=h.day_of_week,
            )
            for h in completed
        ]

        return HistoricalPattern(
            user_id=user_id,
            friend_id=friend_id,
            successful_meeting_times=meeting_times,
            preferred_duration=average_duration(completed),
            common_days=top_days((m.day_of_week for m in meeting_times), 3),
            # TODO: derive from hangout created_at vs. scheduled date once the
            # store exposes created_at on hangout rows.
            average_notice_time=DEFAULT_NOTICE_HOURS,
        )

    def default_pattern(self, user_id: str) -> UserPattern:
        """Weekday-biased pattern for users without usable history."""
        return UserPattern(
            user_id=user_id,
            preferred_days=list(WEEKDAYS),
            preferred_time_ranges=[
                PreferredTimeRange(start_time=time(9, 0), end_time=time(17, 0), frequency=1.0)
            ],
            average_meeting_duration=DEFAULT_MEETING_DURATION,
            common_meeting_days=list(WEEKDAYS),
            timezone=self.default_timezone,
        )

    @staticmethod
    def _preferred_days(
        availability: Sequence[AvailabilitySlot],
        completed: Sequence[Hangout],
    ) -> List[int]:
        days = [slot.day_of_week for slot in availability if slot.day_of_week is not None]
        days.extend(h.day_of_week for h in completed)
        return top_days(days, 4)

    @staticmethod
    def _unique(hangouts: Iterable[Hangout]) -> List[Hangout]:
        """Drop hangouts seen in both users' histories."""
        seen = set()
        unique: List[Hangout] = []
        for hangout in hangouts:
            key = hangout.id or (
                hangout.organizer_id,
                hangout.friend_id,
                hangout.scheduled_date,
                format_clock(hangout.scheduled_time),
                hangout.status,
            )
            if key in seen:
                continue
            seen.add(key)
            unique.append(hangout)
        return unique

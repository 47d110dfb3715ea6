"""
Core logic for intersecting two users' availability on a single date.

Pure domain logic without any I/O: callers hand in the slots, events and
exceptions they fetched.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, List, Sequence, Tuple

from .models import (
    AvailabilityException,
    AvailabilitySlot,
    CalendarEvent,
    MutualTimeSlot,
    SlotMetrics,
    TimeRange,
)

DEFAULT_BUFFER_MINUTES = 15


@dataclass
class DayOverlap:
    """Viable mutual slots for one date plus how many were lost to conflicts."""
    date: date
    slots: List[MutualTimeSlot] = field(default_factory=list)
    conflict_count: int = 0


class OverlapEngine:
    """
    Finds mutual slots between a user and a friend for one civil date.

    Algorithm:
    1. Select the slots of each user that apply to the date
    2. Pin both users' slots to the date in their own timezone and express
       the friend's slots in the user's timezone
    3. Intersect every (user slot, friend slot) pair
    4. Keep overlaps long enough for the meeting plus a buffer on each side
    5. Drop overlaps that touch any busy block of either user
    """

    def __init__(self, buffer_minutes: int = DEFAULT_BUFFER_MINUTES):
        if buffer_minutes < 0:
            raise ValueError("buffer_minutes must not be negative")
        self.buffer_minutes = buffer_minutes

    def find_day_slots(
        self,
        *,
        day: date,
        user_slots: Sequence[AvailabilitySlot],
        friend_slots: Sequence[AvailabilitySlot],
        user_timezone: str,
        friend_timezone: str,
        duration_minutes: int,
        user_events: Sequence[CalendarEvent] = (),
        friend_events: Sequence[CalendarEvent] = (),
        user_exceptions: Sequence[AvailabilityException] = (),
        friend_exceptions: Sequence[AvailabilityException] = (),
        buffer_minutes: int | None = None,
    ) -> DayOverlap:
        """
        Compute viable mutual slots for ``day``.

        Returned slot times are wall-clock times in ``user_timezone``.
        """
        buffer = self.buffer_minutes if buffer_minutes is None else buffer_minutes
        result = DayOverlap(date=day)

        # windows swallowed by a DST gap come back as None
        user_windows = [
            window for window in (
                slot.pinned_to(day, user_timezone)
                for slot in self.applicable_slots(user_slots, day)
            )
            if window is not None
        ]
        friend_windows = [
            window.in_timezone(user_timezone) for window in (
                slot.pinned_to(day, friend_timezone)
                for slot in self.applicable_slots(friend_slots, day)
            )
            if window is not None
        ]

        if not user_windows or not friend_windows:
            return result

        busy_ranges = self._busy_ranges(
            day=day,
            events=[*user_events, *friend_events],
            exceptions=[
                (exception, user_timezone) for exception in user_exceptions
            ] + [
                (exception, friend_timezone) for exception in friend_exceptions
            ],
        )

        for user_range in user_windows:
            for friend_range in friend_windows:
                overlap = user_range.intersect(friend_range)
                if overlap is None:
                    continue
                if not self.is_viable(overlap, duration_minutes, buffer):
                    continue
                if self.has_conflicts(overlap, busy_ranges):
                    result.conflict_count += 1
                    continue

                result.slots.append(
                    MutualTimeSlot(
                        date=day,
                        start_time=overlap.start.time(),
                        end_time=overlap.end.time(),
                        user_timezone=user_timezone,
                        friend_timezone=friend_timezone,
                        metrics=SlotMetrics(
                            overlap_minutes=overlap.duration_minutes(),
                            user_span_minutes=user_range.duration_minutes(),
                            friend_span_minutes=friend_range.duration_minutes(),
                        ),
                        buffer_before=buffer,
                        buffer_after=buffer,
                    )
                )

        return result

    @staticmethod
    def applicable_slots(
        slots: Iterable[AvailabilitySlot],
        day: date,
    ) -> List[AvailabilitySlot]:
        """All slots in effect on ``day``; no precedence between them."""
        return [slot for slot in slots if slot.applies_to(day)]

    @staticmethod
    def is_viable(overlap: TimeRange, duration_minutes: int, buffer_minutes: int) -> bool:
        return overlap.duration_minutes() >= duration_minutes + 2 * buffer_minutes

    @staticmethod
    def has_conflicts(window: TimeRange, busy_ranges: Iterable[TimeRange]) -> bool:
        return any(window.overlaps(busy) for busy in busy_ranges)

    @staticmethod
    def _busy_ranges(
        *,
        day: date,
        events: Sequence[CalendarEvent],
        exceptions: Sequence[Tuple[AvailabilityException, str]],
    ) -> List[TimeRange]:
        """
        Collect busy blocks relevant to ``day``.

        Events are absolute instants already. Exceptions are wall-clock
        carve-outs pinned in their owner's timezone.
        """
        busy: List[TimeRange] = []

        for event in events:
            if event.start >= event.end:
                continue
            busy.append(event.time_range)

        for exception, timezone in exceptions:
            if exception.exception_date != day:
                continue
            blocked = exception.pinned_to(timezone)
            if blocked is not None:
                busy.append(blocked)

        return busy

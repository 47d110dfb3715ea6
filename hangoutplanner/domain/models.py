"""
Domain models for availability, history patterns and suggested slots.

Weekdays follow the store's convention: 0=Sunday ... 6=Saturday.
"""

from dataclasses import dataclass, field
from datetime import date, time, timedelta
from typing import Iterator, List, Optional

import pendulum
from pendulum import DateTime

from .timezones import zoned_date

MINUTES_PER_DAY = 24 * 60
DEFAULT_HANGOUT_MINUTES = 120


def weekday_index(day: date) -> int:
    """Weekday of a date with Sunday as 0."""
    return day.isoweekday() % 7


def date_range(start: date, end: date) -> Iterator[date]:
    """Every civil date from start to end, inclusive."""
    current = start
    while current <= end:
        yield current
        current = current + timedelta(days=1)


def to_minutes(clock: time) -> int:
    """Minutes since midnight."""
    return clock.hour * 60 + clock.minute


def from_minutes(minutes: int) -> time:
    """Inverse of ``to_minutes`` for values within one day."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minute offset {minutes} is outside a single day")
    hours, mins = divmod(minutes, 60)
    return time(hour=hours, minute=mins)


def format_clock(clock: time) -> str:
    return clock.strftime("%H:%M")


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """Half-open overlap test; touching endpoints do not overlap."""
        return self.start < other.end and self.end > other.start

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)

        return TimeRange(start=start, end=end)

    def in_timezone(self, timezone: str) -> "TimeRange":
        return TimeRange(start=self.start.in_timezone(timezone), end=self.end.in_timezone(timezone))

    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('HH:mm')}"


def pin_window(day: date, start_time: time, end_time: time, timezone: str) -> Optional[TimeRange]:
    """
    Absolute instants of a wall-clock window on ``day`` in ``timezone``.

    Returns None when a DST gap swallows the window, e.g. 02:00-03:00 on a
    spring-forward night resolves to 03:00-03:00.
    """
    start = zoned_date(day, start_time, timezone)
    end = zoned_date(day, end_time, timezone)
    if start >= end:
        return None
    return TimeRange(start=start, end=end)


@dataclass(frozen=True)
class AvailabilitySlot:
    """
    A window during which a user is available.

    Recurring slots apply to every occurrence of ``day_of_week``; a slot
    with ``specific_date`` applies to that date only.
    """
    user_id: str
    start_time: time
    end_time: time
    day_of_week: Optional[int] = None
    specific_date: Optional[date] = None
    is_recurring: bool = True
    is_active: bool = True
    id: Optional[str] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Slot start {self.start_time} must be before end {self.end_time}"
            )
        if self.day_of_week is not None and self.day_of_week not in range(7):
            raise ValueError(f"day_of_week must be between 0 and 6, got {self.day_of_week}")
        if self.day_of_week is None and self.specific_date is None:
            raise ValueError("Slot needs a day_of_week or a specific_date")

    def span_minutes(self) -> int:
        return to_minutes(self.end_time) - to_minutes(self.start_time)

    def applies_to(self, day: date) -> bool:
        """Check whether this slot is in effect on a civil date."""
        if not self.is_active:
            return False
        if self.specific_date is not None:
            return self.specific_date == day
        return self.is_recurring and self.day_of_week == weekday_index(day)

    def pinned_to(self, day: date, timezone: str) -> Optional[TimeRange]:
        """Absolute instants of this slot on ``day`` in the owner's zone, if any."""
        return pin_window(day, self.start_time, self.end_time, timezone)


@dataclass(frozen=True)
class AvailabilityException:
    """A carve-out of unavailability on a single date."""
    user_id: str
    exception_date: date
    start_time: time
    end_time: time
    reason: Optional[str] = None
    id: Optional[str] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Exception start {self.start_time} must be before end {self.end_time}"
            )

    def pinned_to(self, timezone: str) -> Optional[TimeRange]:
        return pin_window(self.exception_date, self.start_time, self.end_time, timezone)


@dataclass(frozen=True)
class CalendarEvent:
    """An imported external calendar event (busy block)."""
    user_id: str
    start: DateTime
    end: DateTime
    title: str = ""
    id: Optional[str] = None

    @property
    def time_range(self) -> TimeRange:
        return TimeRange(start=self.start, end=self.end)


@dataclass(frozen=True)
class Hangout:
    """A scheduled or past hangout between an organizer and a friend."""
    organizer_id: str
    friend_id: str
    status: str
    scheduled_date: date
    scheduled_time: time
    duration_minutes: Optional[int] = None
    id: Optional[str] = None

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def day_of_week(self) -> int:
        return weekday_index(self.scheduled_date)

    def is_between(self, user_id: str, friend_id: str) -> bool:
        """True if the hangout is between exactly these two users."""
        return (
            (self.organizer_id == user_id and self.friend_id == friend_id)
            or (self.organizer_id == friend_id and self.friend_id == user_id)
        )

    @property
    def is_upcoming(self) -> bool:
        return self.status in ("pending", "confirmed")

    def pinned_to(self, timezone: str, default_duration: int = DEFAULT_HANGOUT_MINUTES) -> TimeRange:
        """Absolute instants of the hangout, read in ``timezone``."""
        start = zoned_date(self.scheduled_date, self.scheduled_time, timezone)
        minutes = self.duration_minutes if (self.duration_minutes or 0) > 0 else default_duration
        return TimeRange(start=start, end=start.add(minutes=minutes))


@dataclass(frozen=True)
class Profile:
    user_id: str
    timezone: Optional[str] = None


@dataclass(frozen=True)
class SlotMetrics:
    """Window sizes a candidate was derived from, used for scoring."""
    overlap_minutes: int
    user_span_minutes: int
    friend_span_minutes: int

    def overlap_ratio(self) -> float:
        widest = max(self.user_span_minutes, self.friend_span_minutes)
        if widest <= 0:
            return 0.0
        return self.overlap_minutes / widest


@dataclass
class MutualTimeSlot:
    """
    A window on one date during which both users are free.

    Times are wall-clock times in the requesting user's timezone. The
    window is the full overlap; buffers are not trimmed from it.
    """
    date: date
    start_time: time
    end_time: time
    user_timezone: str
    friend_timezone: str
    metrics: SlotMetrics
    confidence: float = 0.0
    buffer_before: int = 0
    buffer_after: int = 0
    reasoning: List[str] = field(default_factory=list)

    def duration_minutes(self) -> int:
        return self.metrics.overlap_minutes

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, YYYY-MM-DD | HH:MM – HH:MM (N min)
        """
        return _format_window(self.date, self.start_time, self.end_time, self.duration_minutes())


@dataclass(frozen=True)
class PreferredTimeRange:
    start_time: time
    end_time: time
    frequency: float = 1.0

    def contains(self, clock: time) -> bool:
        """Inclusive on both ends."""
        return self.start_time <= clock <= self.end_time

    def span_minutes(self) -> int:
        return to_minutes(self.end_time) - to_minutes(self.start_time)

    def pinned_to(self, day: date, timezone: str) -> Optional[TimeRange]:
        return pin_window(day, self.start_time, self.end_time, timezone)


@dataclass
class UserPattern:
    """Per-user summary of when they tend to be available and meet."""
    user_id: str
    preferred_days: List[int]
    preferred_time_ranges: List[PreferredTimeRange]
    average_meeting_duration: int
    common_meeting_days: List[int]
    timezone: str


@dataclass(frozen=True)
class MeetingTime:
    date: date
    start_time: time
    duration: int
    day_of_week: int
    was_successful: bool = True


@dataclass
class HistoricalPattern:
    """Summary of the pair's past hangouts."""
    user_id: str
    friend_id: str
    successful_meeting_times: List[MeetingTime]
    preferred_duration: int
    common_days: List[int]
    # hours; not derived from data yet
    average_notice_time: int = 24


@dataclass
class SmartSuggestion:
    """A ranked candidate meeting window."""
    id: str
    date: date
    start_time: time
    end_time: time
    duration: int
    confidence: float
    reasoning: List[str]
    pattern_based: bool
    mutual_convenience: float
    user_timezone: str
    friend_timezone: str
    suggestion_type: str
    metrics: SlotMetrics
    buffer_before: int = 0
    buffer_after: int = 0

    def format_display(self) -> str:
        return _format_window(self.date, self.start_time, self.end_time, self.duration)


@dataclass
class AvailabilityComparison:
    user_id: str
    friend_id: str
    start_date: date
    end_date: date
    mutual_slots: List[MutualTimeSlot] = field(default_factory=list)
    conflict_count: int = 0
    optimal_duration: int = 120


@dataclass
class SuggestionResponse:
    suggestions: List[SmartSuggestion]
    total_analyzed: int
    pattern_confidence: float
    user_patterns: UserPattern
    friend_patterns: UserPattern
    mutual_history: Optional[HistoricalPattern] = None


@dataclass(frozen=True)
class Conflict:
    """A busy block overlapping a proposed meeting."""
    kind: str  # "calendar", "hangout" or "availability"
    user_id: str
    title: str
    time_range: TimeRange
    description: str = ""

    @property
    def is_hard(self) -> bool:
        return self.kind in ("calendar", "hangout")


@dataclass(frozen=True)
class AlternativeTime:
    """A conflict-free start time offered instead of a clashing proposal."""
    date: date
    start_time: time
    end_time: time

    @property
    def id(self) -> str:
        return f"{self.date.isoformat()}-{format_clock(self.start_time)}-alt"


@dataclass
class ConflictReport:
    proposed: TimeRange
    conflicts: List[Conflict] = field(default_factory=list)
    alternative_times: List[AlternativeTime] = field(default_factory=list)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def severity(self) -> str:
        """
        ``high`` for more than two conflicts including a calendar event or
        hangout, ``medium`` for any of those or more than one conflict,
        ``low`` otherwise.
        """
        if not self.conflicts:
            return "low"
        has_hard = any(conflict.is_hard for conflict in self.conflicts)
        if has_hard and len(self.conflicts) > 2:
            return "high"
        if has_hard or len(self.conflicts) > 1:
            return "medium"
        return "low"


def _format_window(day: date, start: time, end: time, duration: int) -> str:
    weekday = pendulum.date(day.year, day.month, day.day).format("dddd")
    return (
        f"{weekday}, {day.isoformat()} | "
        f"{format_clock(start)} – {format_clock(end)} ({duration} min)"
    )

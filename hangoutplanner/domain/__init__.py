"""
Domain layer - Pure business logic without external dependencies.
"""

from .exceptions import (
    ConfigError,
    HangoutPlannerError,
    InvalidTimezone,
    StoreError,
    SuggestionGenerationFailed,
)
from .models import (
    AvailabilityComparison,
    AvailabilityException,
    AvailabilitySlot,
    CalendarEvent,
    Conflict,
    ConflictReport,
    Hangout,
    HistoricalPattern,
    MeetingTime,
    MutualTimeSlot,
    PreferredTimeRange,
    Profile,
    SlotMetrics,
    SmartSuggestion,
    SuggestionResponse,
    TimeRange,
    UserPattern,
)
from .overlap import DayOverlap, OverlapEngine
from .scoring import ConfidenceScorer, ScoringWeights

__all__ = [
    "AvailabilityComparison",
    "AvailabilityException",
    "AvailabilitySlot",
    "CalendarEvent",
    "ConfidenceScorer",
    "ConfigError",
    "Conflict",
    "ConflictReport",
    "DayOverlap",
    "Hangout",
    "HangoutPlannerError",
    "HistoricalPattern",
    "InvalidTimezone",
    "MeetingTime",
    "MutualTimeSlot",
    "OverlapEngine",
    "PreferredTimeRange",
    "Profile",
    "ScoringWeights",
    "SlotMetrics",
    "SmartSuggestion",
    "StoreError",
    "SuggestionGenerationFailed",
    "SuggestionResponse",
    "TimeRange",
    "UserPattern",
]

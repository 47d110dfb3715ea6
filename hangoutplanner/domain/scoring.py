"""
Confidence scoring for candidate meeting windows.

A weighted linear score in [0, 1]; a ranking heuristic, not a probability.
"""

from dataclasses import dataclass, replace
from datetime import time
from typing import List, Optional

from .models import MutualTimeSlot, SlotMetrics, UserPattern, to_minutes
from .overlap import DEFAULT_BUFFER_MINUTES

PREFERRED_START = time(9, 0)
PREFERRED_END = time(18, 0)

# 10:00 - 16:00, in minutes since midnight
CONVENIENT_START_MINUTES = 600
CONVENIENT_END_MINUTES = 960


@dataclass(frozen=True)
class ScoringWeights:
    both_preferred: float = 0.4
    timezone_convenience: float = 0.3
    availability_overlap: float = 0.2
    buffer_adequacy: float = 0.1

    def __post_init__(self):
        total = (
            self.both_preferred
            + self.timezone_convenience
            + self.availability_overlap
            + self.buffer_adequacy
        )
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"Scoring weights must sum to 1.0, got {total}")


class ConfidenceScorer:
    """
    Scores candidate windows from four factors:

    - both users prefer the start time
    - the start time is convenient across both timezones
    - how much of the wider source window the overlap uses
    - whether the buffer around the meeting is adequate

    By default "preferred" means the fixed 09:00-18:00 window for both
    users. With ``use_profile_preferences`` each user's own preferred time
    ranges are used instead, when their pattern is supplied.
    """

    def __init__(
        self,
        default_buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
        weights: ScoringWeights = ScoringWeights(),
        use_profile_preferences: bool = False,
    ):
        self.default_buffer_minutes = default_buffer_minutes
        self.weights = weights
        self.use_profile_preferences = use_profile_preferences

    def score(
        self,
        *,
        start_time: time,
        metrics: SlotMetrics,
        user_timezone: str,
        friend_timezone: str,
        buffer_minutes: int,
        user_pattern: Optional[UserPattern] = None,
        friend_pattern: Optional[UserPattern] = None,
    ) -> float:
        score = 0.0

        user_preferred = self._prefers(user_pattern, start_time)
        friend_preferred = self._prefers(friend_pattern, start_time)
        if user_preferred and friend_preferred:
            score += self.weights.both_preferred

        score += (
            self.timezone_convenience(user_timezone, friend_timezone, start_time)
            * self.weights.timezone_convenience
        )
        score += metrics.overlap_ratio() * self.weights.availability_overlap
        score += self.buffer_adequacy(buffer_minutes) * self.weights.buffer_adequacy

        return max(0.0, min(score, 1.0))

    def score_slot(
        self,
        slot: MutualTimeSlot,
        user_pattern: Optional[UserPattern] = None,
        friend_pattern: Optional[UserPattern] = None,
    ) -> MutualTimeSlot:
        """Return a copy of ``slot`` with confidence and reasoning filled in."""
        confidence = self.score(
            start_time=slot.start_time,
            metrics=slot.metrics,
            user_timezone=slot.user_timezone,
            friend_timezone=slot.friend_timezone,
            buffer_minutes=slot.buffer_before,
            user_pattern=user_pattern,
            friend_pattern=friend_pattern,
        )
        return replace(
            slot,
            confidence=confidence,
            reasoning=self.reasoning(
                slot.start_time, slot.metrics.overlap_minutes, confidence
            ),
        )

    @staticmethod
    def is_preferred_time(clock: time) -> bool:
        """Start within the global preferred window [09:00, 18:00)."""
        return PREFERRED_START <= clock < PREFERRED_END

    @staticmethod
    def timezone_convenience(user_timezone: str, friend_timezone: str, clock: time) -> float:
        if user_timezone == friend_timezone:
            return 1.0
        minutes = to_minutes(clock)
        if CONVENIENT_START_MINUTES <= minutes < CONVENIENT_END_MINUTES:
            return 0.8
        return 0.5

    def buffer_adequacy(self, buffer_minutes: int) -> float:
        if self.default_buffer_minutes <= 0:
            return 1.0
        return min(buffer_minutes / self.default_buffer_minutes, 1.0)

    def reasoning(self, start_time: time, overlap_minutes: int, confidence: float) -> List[str]:
        """Descriptive notes for a scored window; not used for ranking."""
        reasons: List[str] = []

        if confidence > 0.8:
            reasons.append("Optimal time for both users")

        if self.is_preferred_time(start_time):
            reasons.append("Within preferred hours")

        if overlap_minutes >= 120:
            reasons.append("Ample time available")
        elif overlap_minutes >= 60:
            reasons.append("Adequate time available")

        if not reasons:
            reasons.append("Available time slot")

        return reasons

    def _prefers(self, pattern: Optional[UserPattern], clock: time) -> bool:
        if not self.use_profile_preferences or pattern is None:
            return self.is_preferred_time(clock)
        return any(rng.contains(clock) for rng in pattern.preferred_time_ranges)

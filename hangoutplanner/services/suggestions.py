"""
Smart meeting-time suggestions for a pair of users.

Candidates come from three pools (mutual availability, the pair's meeting
history, overlapping preferences), are re-scored on one scale and the best
ones returned.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, time
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, field_validator, model_validator

from ..adapters.store import StoreProtocol
from ..config import AppConfig
from ..domain.models import (
    MINUTES_PER_DAY,
    AvailabilityComparison,
    HistoricalPattern,
    SlotMetrics,
    SmartSuggestion,
    SuggestionResponse,
    TimeRange,
    UserPattern,
    date_range,
    format_clock,
    from_minutes,
    to_minutes,
    weekday_index,
)
from ..domain.overlap import OverlapEngine
from ..domain.scoring import ConfidenceScorer
from .mutual_availability import MutualAvailabilityService
from .patterns import PatternAnalyzer, common_meeting_times

logger = logging.getLogger(__name__)

PATTERN_BONUS = 0.3

# Candidate pools stop growing once a date pushes them past these sizes.
PATTERN_POOL_LIMIT = 10
PREFERENCE_POOL_LIMIT = 8

TIME_PERIODS: Dict[str, Tuple[time, time]] = {
    "morning": (time(7, 0), time(12, 0)),
    "afternoon": (time(12, 0), time(17, 0)),
    "evening": (time(17, 0), time(22, 0)),
}

WEEKEND_DAYS = (0, 6)


class SuggestionRequest(BaseModel):
    """
    Parameters for ``generate_smart_suggestions``.

    Unset optional values fall back to the service's configured defaults.
    """
    user_id: str
    friend_id: str
    start_date: date
    end_date: date
    preferred_duration: Optional[int] = None
    max_suggestions: Optional[int] = None
    include_weekends: bool = True
    time_of_day_preference: Literal["morning", "afternoon", "evening", "any"] = "any"
    buffer_minutes: Optional[int] = None

    @field_validator("preferred_duration", "max_suggestions")
    @classmethod
    def validate_positive(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("buffer_minutes")
    @classmethod
    def validate_buffer(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 0:
            raise ValueError("buffer_minutes must not be negative")
        return value

    @model_validator(mode="after")
    def validate_range(self) -> "SuggestionRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        if self.user_id == self.friend_id:
            raise ValueError("user_id and friend_id must differ")
        return self


def rank_suggestions(suggestions: Sequence[SmartSuggestion], limit: int) -> List[SmartSuggestion]:
    """Highest confidence first, equal scores in insertion order, at most ``limit``."""
    return sorted(suggestions, key=lambda s: s.confidence, reverse=True)[:limit]


def pattern_confidence(
    user_patterns: UserPattern,
    friend_patterns: UserPattern,
    mutual_history: Optional[HistoricalPattern],
) -> float:
    """How much the pair's history backs the suggestions; metadata only."""
    confidence = 0.5

    if mutual_history and len(mutual_history.successful_meeting_times) > 2:
        confidence += 0.3

    if user_patterns.preferred_days and friend_patterns.preferred_days:
        confidence += 0.2

    return min(confidence, 1.0)


class SuggestionService:
    """
    Orchestrates pattern analysis, mutual availability and ranking.

    The four store-backed analyses run concurrently; everything after them
    is synchronous and deterministic for a given store state.
    """

    def __init__(
        self,
        store: StoreProtocol,
        *,
        analyzer: Optional[PatternAnalyzer] = None,
        availability: Optional[MutualAvailabilityService] = None,
        scorer: Optional[ConfidenceScorer] = None,
        default_duration: int = 120,
        default_max_suggestions: int = 5,
        default_buffer: int = 15,
    ) -> None:
        self._analyzer = analyzer or PatternAnalyzer(store)
        self._availability = availability or MutualAvailabilityService(
            store,
            engine=OverlapEngine(buffer_minutes=default_buffer),
        )
        self._scorer = scorer or ConfidenceScorer(default_buffer_minutes=default_buffer)
        self.default_duration = default_duration
        self.default_max_suggestions = default_max_suggestions
        self.default_buffer = default_buffer

    @classmethod
    def from_config(cls, store: StoreProtocol, config: AppConfig) -> "SuggestionService":
        """Wire the service and its collaborators from application config."""
        defaults = config.defaults
        scorer = ConfidenceScorer(
            default_buffer_minutes=defaults.buffer_minutes,
            use_profile_preferences=config.scoring.use_profile_preferences,
        )
        return cls(
            store,
            analyzer=PatternAnalyzer(
                store,
                default_timezone=config.timezone,
                history_window_days=defaults.history_window_days,
            ),
            availability=MutualAvailabilityService.from_config(store, config),
            scorer=scorer,
            default_duration=defaults.duration_minutes,
            default_max_suggestions=defaults.max_suggestions,
            default_buffer=defaults.buffer_minutes,
        )

    async def generate_smart_suggestions(self, request: SuggestionRequest) -> SuggestionResponse:
        """
        Produce ranked meeting suggestions for ``request``.

        Raises:
            SuggestionGenerationFailed: If availability or calendar data cannot be fetched
            InvalidTimezone: If a profile carries an unknown timezone
        """
        duration = request.preferred_duration or self.default_duration
        buffer = self.default_buffer if request.buffer_minutes is None else request.buffer_minutes
        limit = request.max_suggestions or self.default_max_suggestions

        user_patterns, friend_patterns, mutual_history, availability = await asyncio.gather(
            self._analyzer.analyze_user_patterns(request.user_id),
            self._analyzer.analyze_user_patterns(request.friend_id),
            self._analyzer.analyze_mutual_history(request.user_id, request.friend_id),
            self._availability.find_mutual_availability(
                request.user_id,
                request.friend_id,
                request.start_date,
                request.end_date,
                duration,
                buffer,
            ),
        )

        candidates = self.generate_candidates(
            request,
            user_patterns,
            friend_patterns,
            mutual_history,
            availability,
            buffer=buffer,
        )

        scored = [
            self.score_candidate(candidate, user_patterns, friend_patterns, mutual_history)
            for candidate in candidates
        ]

        logger.info(
            "Analyzed %d candidate(s) for %s and %s",
            len(candidates),
            request.user_id,
            request.friend_id,
        )

        return SuggestionResponse(
            suggestions=rank_suggestions(scored, limit),
            total_analyzed=len(candidates),
            pattern_confidence=pattern_confidence(user_patterns, friend_patterns, mutual_history),
            user_patterns=user_patterns,
            friend_patterns=friend_patterns,
            mutual_history=mutual_history,
        )

    def generate_candidates(
        self,
        request: SuggestionRequest,
        user_patterns: UserPattern,
        friend_patterns: UserPattern,
        mutual_history: Optional[HistoricalPattern],
        availability: AvailabilityComparison,
        *,
        buffer: int,
    ) -> List[SmartSuggestion]:
        """All candidates from the three pools, after request filters."""
        candidates = self._availability_candidates(availability)

        if mutual_history and mutual_history.successful_meeting_times:
            candidates.extend(
                self._pattern_candidates(request, user_patterns, friend_patterns, mutual_history)
            )

        candidates.extend(
            self._preference_candidates(request, user_patterns, friend_patterns, buffer)
        )

        return [c for c in candidates if self._matches_filters(c, request)]

    def score_candidate(
        self,
        candidate: SmartSuggestion,
        user_patterns: UserPattern,
        friend_patterns: UserPattern,
        mutual_history: Optional[HistoricalPattern],
    ) -> SmartSuggestion:
        """Confidence on the common scale, plus the history bonus."""
        score = self._scorer.score(
            start_time=candidate.start_time,
            metrics=candidate.metrics,
            user_timezone=candidate.user_timezone,
            friend_timezone=candidate.friend_timezone,
            buffer_minutes=candidate.buffer_before,
            user_pattern=user_patterns,
            friend_pattern=friend_patterns,
        )
        if candidate.pattern_based and mutual_history is not None:
            score += PATTERN_BONUS
        confidence = min(score, 1.0)

        reasoning = list(candidate.reasoning)
        for reason in self._scorer.reasoning(candidate.start_time, candidate.duration, confidence):
            if reason not in reasoning:
                reasoning.append(reason)

        candidate.confidence = confidence
        candidate.reasoning = reasoning
        return candidate

    @staticmethod
    def _availability_candidates(availability: AvailabilityComparison) -> List[SmartSuggestion]:
        return [
            SmartSuggestion(
                id=f"availability-{index}",
                date=slot.date,
                start_time=slot.start_time,
                end_time=slot.end_time,
                duration=slot.duration_minutes(),
                confidence=0.5,
                reasoning=["Available for both users"],
                pattern_based=False,
                mutual_convenience=0.5,
                user_timezone=slot.user_timezone,
                friend_timezone=slot.friend_timezone,
                suggestion_type="availability",
                metrics=slot.metrics,
                buffer_before=slot.buffer_before,
                buffer_after=slot.buffer_after,
            )
            for index, slot in enumerate(availability.mutual_slots)
        ]

    @staticmethod
    def _pattern_candidates(
        request: SuggestionRequest,
        user_patterns: UserPattern,
        friend_patterns: UserPattern,
        mutual_history: HistoricalPattern,
    ) -> List[SmartSuggestion]:
        """Repeat the pair's most common start times on their usual days."""
        suggestions: List[SmartSuggestion] = []
        duration = mutual_history.preferred_duration
        common_times = common_meeting_times(mutual_history.successful_meeting_times)

        for day in date_range(request.start_date, request.end_date):
            if len(suggestions) >= PATTERN_POOL_LIMIT:
                break
            if weekday_index(day) not in mutual_history.common_days:
                continue

            for start in common_times:
                end_minutes = to_minutes(start) + duration
                if end_minutes >= MINUTES_PER_DAY:
                    continue

                suggestions.append(
                    SmartSuggestion(
                        id=f"pattern-{day.isoformat()}-{format_clock(start)}",
                        date=day,
                        start_time=start,
                        end_time=from_minutes(end_minutes),
                        duration=duration,
                        confidence=0.8,
                        reasoning=[
                            "Based on your successful meeting history",
                            "This time worked well before",
                        ],
                        pattern_based=True,
                        mutual_convenience=0.8,
                        user_timezone=user_patterns.timezone,
                        friend_timezone=friend_patterns.timezone,
                        suggestion_type="pattern",
                        # Not backed by an availability window.
                        metrics=SlotMetrics(overlap_minutes=0, user_span_minutes=0, friend_span_minutes=0),
                    )
                )

        return suggestions

    @staticmethod
    def _preference_candidates(
        request: SuggestionRequest,
        user_patterns: UserPattern,
        friend_patterns: UserPattern,
        buffer: int,
    ) -> List[SmartSuggestion]:
        """Overlapping preferred ranges on days both users prefer."""
        suggestions: List[SmartSuggestion] = []
        mutual_days = [
            day for day in user_patterns.preferred_days
            if day in friend_patterns.preferred_days
        ]
        if not mutual_days:
            return suggestions

        user_tz = user_patterns.timezone
        friend_tz = friend_patterns.timezone

        for day in date_range(request.start_date, request.end_date):
            if len(suggestions) >= PREFERENCE_POOL_LIMIT:
                break
            if weekday_index(day) not in mutual_days:
                continue

            seen = set()
            for user_range in user_patterns.preferred_time_ranges:
                user_window = user_range.pinned_to(day, user_tz)
                if user_window is None:
                    continue

                for friend_range in friend_patterns.preferred_time_ranges:
                    friend_window = friend_range.pinned_to(day, friend_tz)
                    if friend_window is None:
                        continue
                    friend_window = friend_window.in_timezone(user_tz)
                    overlap: Optional[TimeRange] = user_window.intersect(friend_window)
                    if overlap is None or (overlap.start, overlap.end) in seen:
                        continue
                    seen.add((overlap.start, overlap.end))

                    start = overlap.start.time()
                    suggestions.append(
                        SmartSuggestion(
                            id=f"preference-{day.isoformat()}-{format_clock(start)}",
                            date=day,
                            start_time=start,
                            end_time=overlap.end.time(),
                            duration=overlap.duration_minutes(),
                            confidence=0.7,
                            reasoning=[
                                "Matches both users' preferred times",
                                "Optimal day for both users",
                            ],
                            pattern_based=False,
                            mutual_convenience=(user_range.frequency + friend_range.frequency) / 2,
                            user_timezone=user_tz,
                            friend_timezone=friend_tz,
                            suggestion_type="preference",
                            metrics=SlotMetrics(
                                overlap_minutes=overlap.duration_minutes(),
                                user_span_minutes=user_window.duration_minutes(),
                                friend_span_minutes=friend_window.duration_minutes(),
                            ),
                            buffer_before=buffer,
                            buffer_after=buffer,
                        )
                    )

        return suggestions

    @staticmethod
    def _matches_filters(candidate: SmartSuggestion, request: SuggestionRequest) -> bool:
        if not request.include_weekends and weekday_index(candidate.date) in WEEKEND_DAYS:
            return False

        period = TIME_PERIODS.get(request.time_of_day_preference)
        if period is not None:
            start, end = period
            if not start <= candidate.start_time < end:
                return False

        return True

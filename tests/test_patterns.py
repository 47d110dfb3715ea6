"""
Tests for pattern analysis.
"""

import asyncio
import logging
from datetime import date, time

from hangoutplanner.domain.exceptions import StoreError
from hangoutplanner.domain.models import AvailabilitySlot, Hangout, MeetingTime
from hangoutplanner.services.patterns import (
    PatternAnalyzer,
    average_duration,
    common_meeting_times,
    top_days,
)


def _hangout(hangout_id, organizer, friend, day, clock="12:00", status="completed", duration=90):
    return Hangout(
        id=hangout_id,
        organizer_id=organizer,
        friend_id=friend,
        status=status,
        scheduled_date=day,
        scheduled_time=time.fromisoformat(clock),
        duration_minutes=duration,
    )


CAROL_AVAILABILITY = [
    AvailabilitySlot(user_id="carol", day_of_week=1, start_time=time(11, 0), end_time=time(15, 0)),
    AvailabilitySlot(user_id="carol", day_of_week=3, start_time=time(13, 0), end_time=time(19, 0)),
    AvailabilitySlot(user_id="carol", day_of_week=6, start_time=time(9, 0), end_time=time(13, 0)),
]

PAIR_HANGOUTS = [
    _hangout("h1", "alice", "carol", date(2026, 11, 2), "12:00", duration=90),   # Monday
    _hangout("h2", "carol", "alice", date(2026, 11, 9), "12:00", duration=120),  # Monday
    _hangout("h3", "alice", "carol", date(2026, 11, 4), "14:00", duration=90),   # Wednesday
    _hangout("h4", "alice", "carol", date(2026, 11, 6), "14:00", status="cancelled"),
]


class TestHelpers:
    """Tests for the ranking helpers."""

    def test_top_days_orders_by_frequency_then_weekday(self):
        assert top_days([5, 3, 3, 1, 1], 2) == [1, 3]
        assert top_days([6, 6, 2], 3) == [6, 2]
        assert top_days([], 3) == []

    def test_average_duration_rounds_half_up(self):
        hangouts = PAIR_HANGOUTS[:3]

        assert average_duration(hangouts) == 100
        assert average_duration([
            _hangout("x", "a", "b", date(2026, 11, 2), duration=90),
            _hangout("y", "a", "b", date(2026, 11, 2), duration=91),
        ]) == 91
        assert average_duration([]) == 120

    def test_common_meeting_times(self):
        meetings = [
            MeetingTime(date=date(2026, 11, 2), start_time=time(14, 0), duration=60, day_of_week=1),
            MeetingTime(date=date(2026, 11, 3), start_time=time(12, 0), duration=60, day_of_week=2),
            MeetingTime(date=date(2026, 11, 4), start_time=time(12, 0), duration=60, day_of_week=3),
        ]

        assert common_meeting_times(meetings) == [time(12, 0), time(14, 0)]
        assert common_meeting_times(meetings, limit=1) == [time(12, 0)]


class TestAnalyzeUserPatterns:
    """Tests for PatternAnalyzer.analyze_user_patterns."""

    def test_pattern_from_availability_and_history(self, make_store):
        store = make_store(
            availability=CAROL_AVAILABILITY,
            hangouts=PAIR_HANGOUTS,
            timezones={"carol": "America/New_York"},
        )
        analyzer = PatternAnalyzer(store, default_timezone="UTC")

        pattern = asyncio.run(analyzer.analyze_user_patterns("carol"))

        assert pattern.user_id == "carol"
        assert pattern.timezone == "America/New_York"
        assert pattern.preferred_days == [1, 3, 6]
        assert pattern.common_meeting_days == [1, 3]
        assert pattern.average_meeting_duration == 100
        assert [(r.start_time, r.end_time) for r in pattern.preferred_time_ranges] == [
            (time(11, 0), time(15, 0)),
            (time(13, 0), time(19, 0)),
            (time(9, 0), time(13, 0)),
        ]
        assert all(r.frequency == 1.0 for r in pattern.preferred_time_ranges)

    def test_profile_without_timezone_uses_default(self, make_store):
        store = make_store(availability=CAROL_AVAILABILITY)
        analyzer = PatternAnalyzer(store, default_timezone="Europe/London")

        pattern = asyncio.run(analyzer.analyze_user_patterns("carol"))

        assert pattern.timezone == "Europe/London"
        assert pattern.average_meeting_duration == 120
        assert pattern.common_meeting_days == []

    def test_store_failure_degrades_to_default(self, make_store, caplog):
        store = make_store(fail={"availability": StoreError("store is down")})
        analyzer = PatternAnalyzer(store, default_timezone="UTC")

        with caplog.at_level(logging.WARNING):
            pattern = asyncio.run(analyzer.analyze_user_patterns("carol"))

        assert pattern.preferred_days == [1, 2, 3, 4, 5]
        assert pattern.common_meeting_days == [1, 2, 3, 4, 5]
        assert [(r.start_time, r.end_time) for r in pattern.preferred_time_ranges] == [
            (time(9, 0), time(17, 0))
        ]
        assert pattern.average_meeting_duration == 120
        assert pattern.timezone == "UTC"
        assert "Pattern analysis degraded" in caplog.text

    def test_invalid_profile_timezone_degrades(self, make_store):
        store = make_store(availability=CAROL_AVAILABILITY, timezones={"carol": "Not/AZone"})
        analyzer = PatternAnalyzer(store, default_timezone="UTC")

        pattern = asyncio.run(analyzer.analyze_user_patterns("carol"))

        assert pattern.preferred_days == [1, 2, 3, 4, 5]


class TestAnalyzeMutualHistory:
    """Tests for PatternAnalyzer.analyze_mutual_history."""

    def test_no_shared_hangouts_returns_none(self, make_store):
        store = make_store(hangouts=[_hangout("h9", "bob", "dave", date(2026, 11, 2))])
        analyzer = PatternAnalyzer(store, default_timezone="UTC")

        assert asyncio.run(analyzer.analyze_mutual_history("alice", "bob")) is None

    def test_shared_hangouts_counted_once(self, make_store):
        """Both users' histories contain the same hangouts."""
        store = make_store(hangouts=PAIR_HANGOUTS)
        analyzer = PatternAnalyzer(store, default_timezone="UTC")

        history = asyncio.run(analyzer.analyze_mutual_history("alice", "carol"))

        assert history is not None
        assert len(history.successful_meeting_times) == 3
        assert history.preferred_duration == 100
        assert history.common_days == [1, 3]
        assert history.average_notice_time == 24
        assert [m.start_time for m in history.successful_meeting_times] == [
            time(12, 0), time(12, 0), time(14, 0)
        ]

    def test_hangouts_without_id_are_deduplicated(self, make_store):
        hangout = _hangout(None, "alice", "carol", date(2026, 11, 2))
        store = make_store(hangouts=[hangout])
        analyzer = PatternAnalyzer(store, default_timezone="UTC")

        history = asyncio.run(analyzer.analyze_mutual_history("carol", "alice"))

        assert len(history.successful_meeting_times) == 1

    def test_only_cancelled_hangouts(self, make_store):
        store = make_store(hangouts=[PAIR_HANGOUTS[3]])
        analyzer = PatternAnalyzer(store, default_timezone="UTC")

        history = asyncio.run(analyzer.analyze_mutual_history("alice", "carol"))

        assert history is not None
        assert history.successful_meeting_times == []
        assert history.preferred_duration == 120
        assert history.common_days == []

    def test_history_failure_returns_none(self, make_store):
        store = make_store(hangouts=PAIR_HANGOUTS, fail={"hangouts": StoreError("down")})
        analyzer = PatternAnalyzer(store, default_timezone="UTC")

        assert asyncio.run(analyzer.analyze_mutual_history("alice", "carol")) is None

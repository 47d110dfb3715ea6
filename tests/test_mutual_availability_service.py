"""
Tests for the MutualAvailabilityService orchestration layer.
"""

import asyncio
from datetime import date, time

import pendulum
import pytest

from hangoutplanner.config import AppConfig
from hangoutplanner.domain.exceptions import InvalidTimezone, StoreError, SuggestionGenerationFailed
from hangoutplanner.domain.models import AvailabilityException, AvailabilitySlot, CalendarEvent, Hangout
from hangoutplanner.services.mutual_availability import MutualAvailabilityService

MONDAY = date(2026, 11, 16)
NY = "America/New_York"
LONDON = "Europe/London"


def _slot(user_id: str, start: str, end: str, day_of_week: int = 1) -> AvailabilitySlot:
    return AvailabilitySlot(
        user_id=user_id,
        day_of_week=day_of_week,
        start_time=time.fromisoformat(start),
        end_time=time.fromisoformat(end),
    )


def _event(user_id: str, start: str, end: str, tz: str = NY) -> CalendarEvent:
    return CalendarEvent(
        user_id=user_id,
        start=pendulum.parse(start, tz=tz),
        end=pendulum.parse(end, tz=tz),
        title="Busy",
    )


class TestFindMutualAvailability:
    """Tests for find_mutual_availability."""

    def test_finds_scored_slot(self, make_store):
        store = make_store(
            availability=[_slot("a", "09:00", "12:00"), _slot("b", "10:00", "13:00")],
            timezones={"a": NY, "b": NY},
        )
        service = MutualAvailabilityService(store)

        comparison = asyncio.run(service.find_mutual_availability("a", "b", MONDAY, MONDAY, 60, 15))

        assert comparison.user_id == "a"
        assert comparison.friend_id == "b"
        assert comparison.optimal_duration == 60
        assert len(comparison.mutual_slots) == 1
        slot = comparison.mutual_slots[0]
        assert (slot.start_time, slot.end_time) == (time(10, 0), time(12, 0))
        assert slot.confidence == pytest.approx(0.4 + 0.3 + 0.2 * (120 / 180) + 0.1)
        assert "Within preferred hours" in slot.reasoning

    def test_conflicting_event_drops_slot(self, make_store):
        store = make_store(
            availability=[_slot("a", "09:00", "12:00"), _slot("b", "10:00", "13:00")],
            events=[_event("a", "2026-11-16 10:30", "2026-11-16 11:00")],
            timezones={"a": NY, "b": NY},
        )
        service = MutualAvailabilityService(store)

        comparison = asyncio.run(service.find_mutual_availability("a", "b", MONDAY, MONDAY, 60, 15))

        assert comparison.mutual_slots == []
        assert comparison.conflict_count == 1

    def test_cross_timezone_slot_in_user_timezone(self, make_store):
        store = make_store(
            availability=[_slot("a", "09:00", "17:00"), _slot("b", "09:00", "17:00")],
            timezones={"a": NY, "b": LONDON},
        )
        service = MutualAvailabilityService(store)

        comparison = asyncio.run(service.find_mutual_availability("a", "b", MONDAY, MONDAY, 60))

        slot = comparison.mutual_slots[0]
        assert (slot.start_time, slot.end_time) == (time(9, 0), time(12, 0))
        assert slot.friend_timezone == LONDON

    def test_missing_profiles_use_default_timezone(self, make_store):
        store = make_store(availability=[_slot("a", "09:00", "12:00"), _slot("b", "09:00", "12:00")])
        service = MutualAvailabilityService(store, default_timezone=LONDON)

        comparison = asyncio.run(service.find_mutual_availability("a", "b", MONDAY, MONDAY, 60))

        assert comparison.mutual_slots[0].user_timezone == LONDON

    def test_results_sorted_and_truncated(self, make_store):
        """Equal scores keep date order; at most max_slots are returned."""
        store = make_store(
            availability=[
                _slot("a", "09:00", "12:00"),
                _slot("b", "09:00", "12:00"),
                _slot("a", "20:00", "23:00", day_of_week=2),
                _slot("b", "20:00", "23:00", day_of_week=2),
            ],
            timezones={"a": NY, "b": NY},
        )
        service = MutualAvailabilityService(store, max_slots=3)

        comparison = asyncio.run(
            service.find_mutual_availability("a", "b", MONDAY, date(2026, 12, 8), 60)
        )

        assert [s.date for s in comparison.mutual_slots] == [
            date(2026, 11, 16), date(2026, 11, 23), date(2026, 11, 30)
        ]
        confidences = [s.confidence for s in comparison.mutual_slots]
        assert confidences == sorted(confidences, reverse=True)

    def test_no_availability_returns_empty_lists(self, make_store):
        service = MutualAvailabilityService(make_store(timezones={"a": NY, "b": NY}))

        comparison = asyncio.run(service.find_mutual_availability("a", "b", MONDAY, MONDAY))

        assert comparison.mutual_slots == []
        assert comparison.conflict_count == 0

    def test_store_failure_raises_generation_failed(self, make_store):
        store = make_store(timezones={"a": NY, "b": NY}, fail={"events": StoreError("timeout")})
        service = MutualAvailabilityService(store)

        with pytest.raises(SuggestionGenerationFailed) as exc_info:
            asyncio.run(service.find_mutual_availability("a", "b", MONDAY, MONDAY))

        assert isinstance(exc_info.value.__cause__, StoreError)

    def test_invalid_profile_timezone_raises(self, make_store):
        store = make_store(timezones={"a": NY, "b": "Moon/Base"})
        service = MutualAvailabilityService(store)

        with pytest.raises(InvalidTimezone):
            asyncio.run(service.find_mutual_availability("a", "b", MONDAY, MONDAY))

    def test_reversed_range_rejected(self, make_store):
        service = MutualAvailabilityService(make_store())

        with pytest.raises(ValueError):
            asyncio.run(service.find_mutual_availability("a", "b", MONDAY, date(2026, 11, 15)))

    def test_from_config(self, make_store):
        config = AppConfig(timezone=LONDON, defaults={"max_mutual_slots": 4, "buffer_minutes": 5})

        service = MutualAvailabilityService.from_config(make_store(), config)

        assert service.max_slots == 4
        assert service.default_timezone == LONDON


class TestCheckConflicts:
    """Tests for check_conflicts."""

    def test_reports_events_and_exceptions(self, make_store):
        store = make_store(
            events=[_event("a", "2026-11-16 10:30", "2026-11-16 11:00")],
            exceptions=[
                AvailabilityException(
                    user_id="b",
                    exception_date=MONDAY,
                    start_time=time(15, 30),
                    end_time=time(16, 30),
                    reason="Doctor",
                )
            ],
            timezones={"a": NY, "b": LONDON},
        )
        service = MutualAvailabilityService(store)

        report = asyncio.run(service.check_conflicts("a", "b", MONDAY, time(10, 0), 60))

        assert report.has_conflicts
        assert [c.kind for c in report.conflicts] == ["calendar", "availability"]
        assert report.conflicts[1].description == "Doctor"
        assert report.severity == "medium"

    def test_no_conflicts(self, make_store):
        store = make_store(
            events=[_event("a", "2026-11-16 11:00", "2026-11-16 12:00")],
            timezones={"a": NY, "b": NY},
        )
        service = MutualAvailabilityService(store)

        report = asyncio.run(service.check_conflicts("a", "b", MONDAY, time(10, 0), 60))

        assert not report.has_conflicts
        assert report.severity == "low"
        assert report.proposed.duration_minutes() == 60
        assert report.alternative_times == []

    def test_invalid_duration(self, make_store):
        service = MutualAvailabilityService(make_store())

        with pytest.raises(ValueError):
            asyncio.run(service.check_conflicts("a", "b", MONDAY, time(10, 0), 0))

    def test_reports_upcoming_hangouts(self, make_store):
        """A confirmed London hangout at 15:00 blocks 10:00-12:00 in New York."""

        def hangout(hangout_id: str, status: str) -> Hangout:
            return Hangout(
                id=hangout_id,
                organizer_id="b",
                friend_id="a",
                status=status,
                scheduled_date=MONDAY,
                scheduled_time=time(15, 0),
            )

        store = make_store(
            hangouts=[hangout("h1", "confirmed"), hangout("h2", "completed"), hangout("h3", "cancelled")],
            timezones={"a": NY, "b": LONDON},
        )
        service = MutualAvailabilityService(store)

        report = asyncio.run(service.check_conflicts("a", "b", MONDAY, time(11, 30), 60))

        assert [c.kind for c in report.conflicts] == ["hangout"]
        conflict = report.conflicts[0]
        assert conflict.title == "Hangout with b"
        assert conflict.description == "Existing confirmed hangout"
        assert conflict.time_range.start == pendulum.datetime(2026, 11, 16, 10, tz=NY)
        assert conflict.time_range.duration_minutes() == 120
        assert report.severity == "medium"

    def test_hangout_touching_proposal_is_not_a_conflict(self, make_store):
        store = make_store(
            hangouts=[
                Hangout(
                    id="h1",
                    organizer_id="a",
                    friend_id="c",
                    status="pending",
                    scheduled_date=MONDAY,
                    scheduled_time=time(9, 0),
                    duration_minutes=60,
                )
            ],
            timezones={"a": NY, "b": NY},
        )
        service = MutualAvailabilityService(store)

        report = asyncio.run(service.check_conflicts("a", "b", MONDAY, time(10, 0), 60))

        assert not report.has_conflicts

    def test_alternatives_for_conflicting_proposal(self, make_store):
        """Two free hours per day from 09:00, the proposed day first, five at most."""
        store = make_store(
            events=[
                _event("a", "2026-11-16 10:00", "2026-11-16 11:00"),
                _event("b", "2026-11-17 09:30", "2026-11-17 10:30"),
            ],
            timezones={"a": NY, "b": NY},
        )
        service = MutualAvailabilityService(store)

        report = asyncio.run(service.check_conflicts("a", "b", MONDAY, time(10, 0), 60))

        assert report.severity == "medium"
        assert [(a.date, a.start_time) for a in report.alternative_times] == [
            (MONDAY, time(9, 0)),
            (MONDAY, time(11, 0)),
            (date(2026, 11, 17), time(11, 0)),
            (date(2026, 11, 17), time(12, 0)),
            (date(2026, 11, 18), time(9, 0)),
        ]
        assert report.alternative_times[0].end_time == time(10, 0)
        assert report.alternative_times[0].id == "2026-11-16-09:00-alt"

    def test_friend_exception_dated_next_day_in_their_zone(self, make_store):
        """Monday 18:00 in Los Angeles is Tuesday 11:00 in Tokyo."""
        store = make_store(
            exceptions=[
                AvailabilityException(
                    user_id="b",
                    exception_date=date(2026, 11, 17),
                    start_time=time(10, 0),
                    end_time=time(12, 0),
                    reason="Flight",
                )
            ],
            timezones={"a": "America/Los_Angeles", "b": "Asia/Tokyo"},
        )
        service = MutualAvailabilityService(store)

        report = asyncio.run(service.check_conflicts("a", "b", MONDAY, time(18, 0), 60))

        assert [c.kind for c in report.conflicts] == ["availability"]
        assert report.conflicts[0].description == "Flight"

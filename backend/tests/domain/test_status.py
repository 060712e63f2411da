"""Tests for wall-clock status derivation.

All functions are pure: results depend only on the events and `now`.
"""

from datetime import timedelta

import pytest

from eyedoo.domain.status import (
    current_event,
    minutes_until_next,
    next_event,
    progress_of,
    recompute_all,
    status_of,
    summarize,
)
from eyedoo.schemas.timeline import EventStatus

pytestmark = pytest.mark.unit


class TestStatusOf:
    def test_cancelled_is_never_recomputed(self, make_event, at):
        event = make_event(start="10:00", duration=60, status=EventStatus.CANCELLED)
        for now in (at("08:00"), at("10:30"), at("12:00")):
            assert status_of(event, now) == EventStatus.CANCELLED

    def test_completed_at_effective_end(self, make_event, at):
        event = make_event(start="10:00", duration=60)
        assert status_of(event, at("11:00")) == EventStatus.COMPLETED
        assert status_of(event, at("15:00")) == EventStatus.COMPLETED

    def test_in_progress_between_start_and_end(self, make_event, at):
        """Ten minutes into a 60-minute event."""
        event = make_event(start="10:00", duration=60)
        assert status_of(event, at("10:10")) == EventStatus.IN_PROGRESS

    def test_in_progress_starts_exactly_at_start(self, make_event, at):
        event = make_event(start="10:00", end="10:30")
        assert status_of(event, at("10:00")) == EventStatus.IN_PROGRESS

    def test_upcoming_within_window(self, make_event, at):
        event = make_event(start="10:00", duration=30)
        assert status_of(event, at("09:30")) == EventStatus.UPCOMING
        assert status_of(event, at("09:45")) == EventStatus.UPCOMING

    def test_far_future_is_upcoming(self, make_event, at):
        event = make_event(start="18:00", duration=30)
        assert status_of(event, at("08:00")) == EventStatus.UPCOMING

    def test_point_event_uses_one_hour_fallback(self, make_event, at):
        point = make_event(start="10:00")
        assert status_of(point, at("10:00")) == EventStatus.IN_PROGRESS
        assert status_of(point, at("10:59")) == EventStatus.IN_PROGRESS

    def test_point_event_past_fallback_is_scheduled(self, make_event, at):
        point = make_event(start="10:00")
        assert status_of(point, at("11:00")) == EventStatus.SCHEDULED
        assert status_of(point, at("16:00")) == EventStatus.SCHEDULED

    def test_no_start_is_upcoming(self, make_event, at):
        assert status_of(make_event(duration=30), at("12:00")) == EventStatus.UPCOMING

    def test_zero_duration_completes_at_start(self, make_event, at):
        event = make_event(start="10:00", duration=0)
        assert status_of(event, at("09:59")) == EventStatus.UPCOMING
        assert status_of(event, at("10:00")) == EventStatus.COMPLETED

    def test_stored_status_is_ignored(self, make_event, at):
        event = make_event(start="10:00", duration=60, status=EventStatus.COMPLETED)
        assert status_of(event, at("08:00")) == EventStatus.UPCOMING

    def test_custom_windows(self, make_event, at):
        point = make_event(start="10:00")
        assert status_of(point, at("10:20"), fallback_minutes=15) == EventStatus.SCHEDULED


class TestRecomputeAll:
    def test_statuses_replaced(self, make_event, at):
        events = [
            make_event(start="09:00", duration=30),
            make_event(start="10:00", duration=60),
            make_event(start="17:00", duration=60, status=EventStatus.CANCELLED),
        ]

        result = recompute_all(events, at("10:15"))

        assert [event.status for event in result] == [
            EventStatus.COMPLETED,
            EventStatus.IN_PROGRESS,
            EventStatus.CANCELLED,
        ]

    def test_idempotent(self, make_event, at):
        now = at("10:15")
        events = [
            make_event(start="09:00", duration=30),
            make_event(start="10:00"),
            make_event(start="10:40", end="11:00"),
            make_event(duration=10),
        ]
        once = recompute_all(events, now)
        assert recompute_all(once, now) == once

    def test_inputs_not_mutated(self, make_event, at):
        event = make_event(start="09:00", duration=30)
        recompute_all([event], at("12:00"))
        assert event.status == EventStatus.UPCOMING


class TestProgressOf:
    def test_progress_of_in_progress_event(self, make_event, at):
        """10 of 60 minutes elapsed."""
        event = make_event(start="10:00", duration=60)
        assert progress_of(event, at("10:10")) == pytest.approx(16.67, abs=0.01)

    def test_progress_with_explicit_end(self, make_event, at):
        event = make_event(start="10:00", end="12:00")
        assert progress_of(event, at("11:00")) == pytest.approx(50)

    def test_no_progress_when_not_in_progress(self, make_event, at):
        event = make_event(start="10:00", duration=60)
        assert progress_of(event, at("09:00")) is None
        assert progress_of(event, at("11:30")) is None

    def test_no_progress_without_known_end(self, make_event, at):
        assert progress_of(make_event(start="10:00"), at("10:10")) is None

    def test_no_progress_for_cancelled(self, make_event, at):
        event = make_event(start="10:00", duration=60, status=EventStatus.CANCELLED)
        assert progress_of(event, at("10:30")) is None


class TestCurrentAndNext:
    def test_current_event(self, make_event, at):
        events = [
            make_event(start="09:00", duration=30),
            make_event(start="10:00", duration=60, event_id="ceremony"),
            make_event(start="12:00", duration=60),
        ]
        assert current_event(events, at("10:30")).id == "ceremony"

    def test_current_event_prefers_earliest_start(self, make_event, at):
        events = [
            make_event(start="10:15", duration=60, event_id="later"),
            make_event(start="10:00", duration=60, event_id="earlier"),
        ]
        assert current_event(events, at("10:30")).id == "earlier"

    def test_no_current_event(self, make_event, at):
        events = [make_event(start="10:00", duration=60)]
        assert current_event(events, at("09:00")) is None

    def test_next_event(self, make_event, at):
        events = [
            make_event(start="14:00", duration=60, event_id="speeches"),
            make_event(start="10:00", duration=60),
            make_event(start="12:00", duration=60, event_id="drinks"),
            make_event(duration=60),
        ]
        assert next_event(events, at("11:00")).id == "drinks"

    def test_next_event_requires_strictly_future_start(self, make_event, at):
        events = [make_event(start="11:00", duration=60)]
        assert next_event(events, at("11:00")) is None

    def test_minutes_until_next(self, make_event, at):
        events = [make_event(start="12:00", duration=60)]
        assert minutes_until_next(events, at("11:15")) == pytest.approx(45)
        assert minutes_until_next(events, at("13:00")) is None


class TestSummarize:
    def test_summary(self, make_event, at):
        events = [
            make_event(start="09:00", duration=30),
            make_event(start="10:00", duration=60, event_id="ceremony"),
            make_event(start="11:30", duration=60, event_id="drinks"),
            make_event(start="15:00", duration=60, status=EventStatus.CANCELLED),
        ]
        now = at("10:30")

        summary = summarize("proj-1", events, now)

        assert summary.project_id == "proj-1"
        assert summary.generated_at == now
        assert summary.current_event.id == "ceremony"
        assert summary.current_event.status == EventStatus.IN_PROGRESS
        assert summary.current_progress == pytest.approx(50)
        assert summary.next_event.id == "drinks"
        assert summary.minutes_until_next == pytest.approx(60)
        assert summary.status_counts == {
            "completed": 1,
            "in_progress": 1,
            "upcoming": 1,
            "cancelled": 1,
        }

    def test_empty_summary(self, at):
        summary = summarize("proj-1", [], at("10:00") + timedelta(minutes=1))
        assert summary.current_event is None
        assert summary.next_event is None
        assert summary.minutes_until_next is None
        assert summary.status_counts == {}

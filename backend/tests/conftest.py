"""Shared test fixtures for all test groups."""

import itertools
from datetime import UTC, datetime

import pytest
import pytest_asyncio

from eyedoo.persistence.memory import InMemoryTimelineStore
from eyedoo.schemas.timeline import EventStatus, EventType, TimelineEvent
from eyedoo.services.timeline_engine import TimelineEngine

# Wedding day used across tests; times are given as "HH:MM" on this date
WEDDING_DAY = datetime(2026, 6, 20, tzinfo=UTC)


def _at(hhmm: str) -> datetime:
    hours, minutes = (int(part) for part in hhmm.split(":"))
    return WEDDING_DAY.replace(hour=hours, minute=minutes)


class FixedClock:
    """Callable clock whose time tests can move."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def at():
    """Convert "HH:MM" to an instant on the wedding day."""
    return _at


@pytest.fixture
def make_event():
    """Factory for TimelineEvent values with readable "HH:MM" times."""
    counter = itertools.count(1)

    def _make(
        start: str | None = None,
        end: str | None = None,
        duration: int | None = None,
        event_id: str | None = None,
        name: str | None = None,
        status: EventStatus = EventStatus.UPCOMING,
        event_type: EventType = EventType.OTHER,
    ) -> TimelineEvent:
        n = next(counter)
        return TimelineEvent(
            id=event_id or f"evt-{n}",
            item_name=name or f"Event {n}",
            type=event_type,
            start_time=_at(start) if start else None,
            end_time=_at(end) if end else None,
            duration=duration,
            status=status,
        )

    return _make


@pytest.fixture
def clock():
    """Clock fixed at 08:00 on the wedding day."""
    return FixedClock(_at("08:00"))


@pytest.fixture
def store():
    """Fresh in-memory timeline store."""
    return InMemoryTimelineStore()


@pytest.fixture
def engine(store, clock):
    """TimelineEngine over the in-memory store with default rules."""
    return TimelineEngine(store, clock=clock)


@pytest_asyncio.fixture
async def timeline(engine):
    """Initialized, empty timeline for project 'proj-1'."""
    return await engine.initialize("proj-1", created_by="photographer-1")

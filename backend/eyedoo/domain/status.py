"""Wall-clock status derivation for timeline events.

Pure functions -- every result depends only on the events and the `now`
passed in. Stored statuses are never trusted except CANCELLED, which is an
authoritative override set by a caller.
"""

from collections import Counter
from datetime import datetime, timedelta

from eyedoo.domain.timing import effective_end
from eyedoo.schemas.timeline import EventStatus, TimelineEvent, TimelineSummary

UPCOMING_WINDOW_MINUTES = 30
IN_PROGRESS_FALLBACK_MINUTES = 60


def status_of(
    event: TimelineEvent,
    now: datetime,
    upcoming_window_minutes: int = UPCOMING_WINDOW_MINUTES,
    fallback_minutes: int = IN_PROGRESS_FALLBACK_MINUTES,
) -> EventStatus:
    """Derive an event's status at `now`.

    Rules, first match wins:
        1. Stored CANCELLED is returned unchanged
        2. now >= effective end -> COMPLETED
        3. start <= now < effective end (start + fallback when no end is known) -> IN_PROGRESS
        4. start is in the future within the upcoming window -> UPCOMING
        5. start has passed with no end info, outside the fallback -> SCHEDULED
        6. anything else (far future, or no start) -> UPCOMING
    """
    if event.status == EventStatus.CANCELLED:
        return EventStatus.CANCELLED

    end = effective_end(event)
    if end is not None and now >= end:
        return EventStatus.COMPLETED

    start = event.start_time
    if start is None:
        return EventStatus.UPCOMING

    active_until = end if end is not None else start + timedelta(minutes=fallback_minutes)
    if start <= now < active_until:
        return EventStatus.IN_PROGRESS

    if start > now and start - now <= timedelta(minutes=upcoming_window_minutes):
        return EventStatus.UPCOMING

    if start <= now:
        return EventStatus.SCHEDULED

    return EventStatus.UPCOMING


def recompute_all(
    events: list[TimelineEvent],
    now: datetime,
    upcoming_window_minutes: int = UPCOMING_WINDOW_MINUTES,
    fallback_minutes: int = IN_PROGRESS_FALLBACK_MINUTES,
) -> list[TimelineEvent]:
    """Return the events with statuses derived at `now`. Idempotent for a fixed `now`."""
    recomputed = []
    for event in events:
        status = status_of(event, now, upcoming_window_minutes, fallback_minutes)
        if status != event.status:
            event = event.model_copy(update={"status": status})
        recomputed.append(event)
    return recomputed


def progress_of(
    event: TimelineEvent,
    now: datetime,
    upcoming_window_minutes: int = UPCOMING_WINDOW_MINUTES,
    fallback_minutes: int = IN_PROGRESS_FALLBACK_MINUTES,
) -> float | None:
    """Percent complete (0-100) of an in-progress event with a known start and end.

    None for any other status, or when the end is unknown or equal to the start.
    """
    if status_of(event, now, upcoming_window_minutes, fallback_minutes) != EventStatus.IN_PROGRESS:
        return None

    end = effective_end(event)
    start = event.start_time
    if end is None or start is None or end <= start:
        return None

    fraction = (now - start) / (end - start)
    return max(0.0, min(100.0, fraction * 100))


def current_event(
    events: list[TimelineEvent],
    now: datetime,
    upcoming_window_minutes: int = UPCOMING_WINDOW_MINUTES,
    fallback_minutes: int = IN_PROGRESS_FALLBACK_MINUTES,
) -> TimelineEvent | None:
    """The in-progress event; the earliest-starting one if legacy data overlaps."""
    active = [
        event for event in events
        if status_of(event, now, upcoming_window_minutes, fallback_minutes) == EventStatus.IN_PROGRESS
    ]
    if not active:
        return None
    return min(active, key=lambda event: event.start_time)


def next_event(events: list[TimelineEvent], now: datetime) -> TimelineEvent | None:
    """Among events starting after `now`, the one that starts first."""
    future = [event for event in events if event.start_time is not None and event.start_time > now]
    if not future:
        return None
    return min(future, key=lambda event: event.start_time)


def minutes_until_next(events: list[TimelineEvent], now: datetime) -> float | None:
    upcoming = next_event(events, now)
    if upcoming is None:
        return None
    return (upcoming.start_time - now).total_seconds() / 60


def summarize(
    project_id: str,
    events: list[TimelineEvent],
    now: datetime,
    upcoming_window_minutes: int = UPCOMING_WINDOW_MINUTES,
    fallback_minutes: int = IN_PROGRESS_FALLBACK_MINUTES,
) -> TimelineSummary:
    """Build the current/next view of a timeline at `now`."""
    recomputed = recompute_all(events, now, upcoming_window_minutes, fallback_minutes)
    active = current_event(recomputed, now, upcoming_window_minutes, fallback_minutes)
    upcoming = next_event(recomputed, now)

    return TimelineSummary(
        project_id=project_id,
        generated_at=now,
        current_event=active,
        current_progress=(
            progress_of(active, now, upcoming_window_minutes, fallback_minutes) if active else None
        ),
        next_event=upcoming,
        minutes_until_next=minutes_until_next(recomputed, now),
        status_counts=dict(Counter(event.status.value for event in recomputed)),
    )

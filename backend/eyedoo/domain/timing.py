"""Interval helpers for timeline events.

Pure functions with no external dependencies.

An event's interval is [start_time, effective_end). A point event (no end_time,
no duration) is a zero-width interval at start_time. Events without a
start_time take part in no timing comparison.
"""

from datetime import datetime, timedelta

from eyedoo.schemas.timeline import TimelineEvent


def effective_end(event: TimelineEvent) -> datetime | None:
    """Return the instant the event finishes.

    end_time wins over duration. None for a point event, and for a
    duration-only event without a start_time.
    """
    if event.end_time is not None:
        return event.end_time
    if event.start_time is not None and event.duration is not None:
        return event.start_time + timedelta(minutes=event.duration)
    return None


def _interval_end(event: TimelineEvent) -> datetime:
    # Point events collapse to their start
    end = effective_end(event)
    return end if end is not None else event.start_time


def overlaps(a: TimelineEvent, b: TimelineEvent) -> bool:
    """True if the two events occupy overlapping time.

    Events sharing a start instant always overlap, so two identical points
    collide and a point at an interval's start is contained by it.
    """
    if a.start_time is None or b.start_time is None:
        return False
    if a.start_time == b.start_time:
        return True
    return a.start_time < _interval_end(b) and b.start_time < _interval_end(a)


def gap_minutes(a: TimelineEvent, b: TimelineEvent) -> float | None:
    """Minutes between the end of the earlier event and the start of the later one.

    None when either event has no start_time or the events overlap.
    """
    if a.start_time is None or b.start_time is None or overlaps(a, b):
        return None

    if _interval_end(a) <= b.start_time:
        delta = b.start_time - _interval_end(a)
    else:
        delta = a.start_time - _interval_end(b)
    return delta.total_seconds() / 60

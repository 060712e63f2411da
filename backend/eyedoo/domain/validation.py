"""Timing validation rules for timeline events.

Pure domain functions -- no persistence access, fully deterministic.
Each check returns a TimingResult; the engine turns failures into TimingError.
"""

from collections.abc import Iterable
from dataclasses import dataclass

from eyedoo.core.exceptions import ErrorCode
from eyedoo.domain.timing import gap_minutes, overlaps
from eyedoo.schemas.timeline import TimelineEvent

MIN_BUFFER_MINUTES = 5


@dataclass(frozen=True)
class TimingResult:
    """Outcome of a timing check."""

    ok: bool
    code: ErrorCode | None = None
    other_event_id: str | None = None
    gap_minutes: float | None = None
    reason: str = ""


PASSED = TimingResult(True)


def ensure_ordering(event: TimelineEvent) -> TimingResult:
    """Fail with INVALID_ORDERING when end_time is before start_time.

    Events with only a duration never fail: duration is non-negative by schema.
    An end_time equal to start_time is a valid point event.
    """
    if event.start_time is None or event.end_time is None:
        return PASSED
    if event.end_time < event.start_time:
        return TimingResult(
            False,
            ErrorCode.INVALID_ORDERING,
            reason=f"Event '{event.item_name}' ends before it starts",
        )
    return PASSED


def validate_against_existing(
    candidate: TimelineEvent,
    existing: Iterable[TimelineEvent],
    min_buffer_minutes: int = MIN_BUFFER_MINUTES,
) -> TimingResult:
    """Check a candidate event against every other event in the timeline.

    Args:
        candidate: Event being added or updated
        existing: Events currently in the timeline (may include the candidate itself)
        min_buffer_minutes: Minimum gap required between non-overlapping events

    Returns:
        TimingResult for the first violation found, or a passing result

    Rules:
        - Events sharing the candidate's id are skipped (update flows)
        - Events without a start_time are skipped; a candidate without one never conflicts
        - Overlap fails with CONFLICT(other_id)
        - A gap under the buffer fails with INSUFFICIENT_BUFFER(other_id, gap)
        - All pairs are checked, not only time-adjacent neighbours
    """
    if candidate.start_time is None:
        return PASSED

    for other in existing:
        if other.id == candidate.id or other.start_time is None:
            continue

        if overlaps(candidate, other):
            return TimingResult(
                False,
                ErrorCode.CONFLICT,
                other_event_id=other.id,
                reason=f"'{candidate.item_name}' overlaps '{other.item_name}'",
            )

        gap = gap_minutes(candidate, other)
        if gap is not None and gap < min_buffer_minutes:
            return TimingResult(
                False,
                ErrorCode.INSUFFICIENT_BUFFER,
                other_event_id=other.id,
                gap_minutes=gap,
                reason=(
                    f"Only {gap:g} minutes between '{candidate.item_name}' and "
                    f"'{other.item_name}' (minimum {min_buffer_minutes})"
                ),
            )

    return PASSED


def validate_timeline(
    events: list[TimelineEvent],
    min_buffer_minutes: int = MIN_BUFFER_MINUTES,
) -> TimingResult:
    """Validate a complete set of events, as for a bulk replace.

    Ordering is checked for every event before any pairwise check runs.
    """
    for event in events:
        result = ensure_ordering(event)
        if not result.ok:
            return result

    for event in events:
        result = validate_against_existing(event, events, min_buffer_minutes)
        if not result.ok:
            return result

    return PASSED

"""TimelinePersistencePort: the storage abstraction consumed by TimelineEngine.

One document per project holds the whole TimelineList. Adapters must:
- load_timeline: return the stored aggregate, or None when the project has none
- save_timeline: persist the entire aggregate atomically, checking
  timeline.revision against the stored revision (optimistic concurrency),
  and return the stored copy carrying the new revision
- subscribe_timeline: push every new snapshot, in revision order, to
  on_snapshot until the returned unsubscribe callable is invoked
"""

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from eyedoo.core.exceptions import ConcurrentModificationError, TimelineExistsError
from eyedoo.schemas.timeline import TimelineList

SnapshotCallback = Callable[[TimelineList], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


@runtime_checkable
class TimelinePersistencePort(Protocol):
    """Protocol for timeline document storage."""

    async def load_timeline(self, project_id: str) -> TimelineList | None:
        """Load the timeline aggregate for a project.

        Returns:
            The stored TimelineList, or None if the project has no timeline
        """
        ...

    async def save_timeline(self, project_id: str, timeline: TimelineList) -> TimelineList:
        """Persist the whole aggregate as one unit.

        Args:
            project_id: Owning project
            timeline: New aggregate; its revision is the revision it was derived from
                (0 for a brand new timeline)

        Returns:
            The stored aggregate with revision incremented

        Raises:
            TimelineExistsError: revision is 0 but a timeline is already stored
            ConcurrentModificationError: the stored revision moved since load
            PersistenceError: storage failure
        """
        ...

    async def subscribe_timeline(
        self,
        project_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """Deliver the full aggregate on every change until unsubscribed."""
        ...


def check_revision(project_id: str, timeline: TimelineList, stored_revision: int | None) -> None:
    """Shared conditional-write rule for adapters.

    Args:
        project_id: Owning project
        timeline: Aggregate about to be written
        stored_revision: Revision currently stored, None when nothing is stored

    Raises:
        TimelineExistsError: creating over an existing document
        ConcurrentModificationError: revision mismatch
    """
    if stored_revision is None:
        if timeline.revision != 0:
            raise ConcurrentModificationError(project_id, timeline.revision, None)
        return

    if timeline.revision == 0:
        raise TimelineExistsError(project_id)
    if timeline.revision != stored_revision:
        raise ConcurrentModificationError(project_id, timeline.revision, stored_revision)

"""In-process TimelinePersistencePort implementation.

Documents are kept as serialized JSON so callers can never mutate stored
state through a returned model. Subscribers are called synchronously, in
save order, before save_timeline returns.
"""

from collections import defaultdict

import structlog

from eyedoo.persistence.port import (
    ErrorCallback,
    SnapshotCallback,
    Unsubscribe,
    check_revision,
)
from eyedoo.schemas.timeline import TimelineList

logger = structlog.get_logger(__name__)


class InMemoryTimelineStore:
    """Dictionary-backed timeline storage for tests and single-process deployments."""

    def __init__(self) -> None:
        self._documents: dict[str, str] = {}
        self._subscribers: dict[str, list[tuple[SnapshotCallback, ErrorCallback]]] = defaultdict(list)

    async def load_timeline(self, project_id: str) -> TimelineList | None:
        raw = self._documents.get(project_id)
        if raw is None:
            return None
        return TimelineList.model_validate_json(raw)

    async def save_timeline(self, project_id: str, timeline: TimelineList) -> TimelineList:
        stored = self._documents.get(project_id)
        stored_revision = TimelineList.model_validate_json(stored).revision if stored else None
        check_revision(project_id, timeline, stored_revision)

        saved = timeline.model_copy(update={"revision": timeline.revision + 1})
        self._documents[project_id] = saved.model_dump_json()
        self._notify(project_id, saved)
        return saved

    async def subscribe_timeline(
        self,
        project_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        entry = (on_snapshot, on_error)
        self._subscribers[project_id].append(entry)

        current = await self.load_timeline(project_id)
        if current is not None:
            self._deliver(project_id, entry, current)

        def unsubscribe() -> None:
            if entry in self._subscribers[project_id]:
                self._subscribers[project_id].remove(entry)

        return unsubscribe

    def _notify(self, project_id: str, timeline: TimelineList) -> None:
        for entry in list(self._subscribers[project_id]):
            self._deliver(project_id, entry, timeline)

    def _deliver(
        self,
        project_id: str,
        entry: tuple[SnapshotCallback, ErrorCallback],
        timeline: TimelineList,
    ) -> None:
        on_snapshot, on_error = entry
        try:
            on_snapshot(timeline)
        except Exception as exc:
            # A failing subscriber must not fail the writer
            logger.warning(
                "timeline_subscriber_failed",
                project_id=project_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            try:
                on_error(exc)
            except Exception as callback_exc:
                logger.warning(
                    "timeline_error_callback_failed",
                    project_id=project_id,
                    error=str(callback_exc),
                    error_type=type(callback_exc).__name__,
                )

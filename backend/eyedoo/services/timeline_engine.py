"""TimelineEngine: orchestrates guard, validation, and persistence for project timelines.

Every mutating call follows the same pipeline:
    load via port -> finalization guard -> shape validation -> timing validation -> single save

Reads load the stored aggregate and recompute statuses against the clock;
the engine never writes derived statuses back and keeps no cache.
"""

import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any

import structlog
from pydantic import BaseModel, TypeAdapter, ValidationError

from eyedoo.core.config import Settings, get_settings
from eyedoo.core.exceptions import (
    EventNotFoundError,
    FinalizationError,
    PersistenceError,
    TimelineExistsError,
    TimelineNotFoundError,
    TimelineValidationError,
    TimingError,
)
from eyedoo.domain.finalization import ensure_not_finalized
from eyedoo.domain.status import (
    IN_PROGRESS_FALLBACK_MINUTES,
    UPCOMING_WINDOW_MINUTES,
    recompute_all,
    summarize,
)
from eyedoo.domain.validation import (
    MIN_BUFFER_MINUTES,
    TimingResult,
    ensure_ordering,
    validate_against_existing,
    validate_timeline,
)
from eyedoo.persistence.port import ErrorCallback, SnapshotCallback, TimelinePersistencePort, Unsubscribe
from eyedoo.schemas.timeline import (
    TimelineConfig,
    TimelineConfigUpdate,
    TimelineEvent,
    TimelineEventInput,
    TimelineList,
    TimelineSummary,
    as_utc,
)

logger = structlog.get_logger(__name__)

_CATEGORIES = TypeAdapter(list[dict[str, Any]])


def new_event_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _coerce(model_cls: type[BaseModel], data: Any) -> Any:
    """Validate caller input into model_cls, raising TimelineValidationError on bad shape."""
    if isinstance(data, model_cls):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        raise TimelineValidationError.from_pydantic(exc) from exc


def _as_event(data: Any) -> TimelineEvent:
    """Turn caller input into a stored event, assigning an id when none is given."""
    if isinstance(data, TimelineEvent):
        return data
    if isinstance(data, dict):
        if data.get("id"):
            return _coerce(TimelineEvent, data)
        # A null or empty id counts as missing
        data = {key: value for key, value in data.items() if key != "id"}
    event_input = _coerce(TimelineEventInput, data)
    return TimelineEvent.model_validate({**event_input.model_dump(), "id": new_event_id()})


class TimelineEngine:
    """Public operations on per-project timelines.

    Uses dependency injection (takes a TimelinePersistencePort) so every
    operation can be exercised against an in-memory store.
    """

    def __init__(
        self,
        store: TimelinePersistencePort,
        min_buffer_minutes: int = MIN_BUFFER_MINUTES,
        upcoming_window_minutes: int = UPCOMING_WINDOW_MINUTES,
        fallback_minutes: int = IN_PROGRESS_FALLBACK_MINUTES,
        max_events: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize with an injected store.

        Args:
            store: Persistence port holding one TimelineList per project
            min_buffer_minutes: Minimum gap between non-overlapping events
            upcoming_window_minutes: How soon before start an event counts as upcoming
            fallback_minutes: In-progress window for events without end or duration
            max_events: Cap on events per timeline (None = unlimited)
            clock: Source of "now" for audit stamps and read-time statuses
        """
        self.store = store
        self.min_buffer_minutes = min_buffer_minutes
        self.upcoming_window_minutes = upcoming_window_minutes
        self.fallback_minutes = fallback_minutes
        self.max_events = max_events
        self.clock = clock

    @classmethod
    def from_settings(cls, store: TimelinePersistencePort, settings: Settings | None = None) -> "TimelineEngine":
        settings = settings or get_settings()
        return cls(
            store,
            min_buffer_minutes=settings.min_buffer_minutes,
            upcoming_window_minutes=settings.upcoming_window_minutes,
            fallback_minutes=settings.in_progress_fallback_minutes,
            max_events=settings.timeline_max_events,
        )

    # ------------------------------------------------------------------
    # Mutating operations
    # ------------------------------------------------------------------

    async def initialize(
        self,
        project_id: str,
        created_by: str | None = None,
        categories: list[dict] | None = None,
    ) -> TimelineList:
        """Create the empty timeline for a project.

        Raises:
            TimelineExistsError: The project already has a timeline
            TimelineValidationError: categories is not a list of objects
        """
        if await self.store.load_timeline(project_id) is not None:
            raise TimelineExistsError(project_id)

        categories = self._validate_categories(categories or [])
        now = self.clock()
        timeline = TimelineList(
            config=TimelineConfig(
                id=str(uuid.uuid4()),
                project_id=project_id,
                created_at=now,
                created_by=created_by,
                last_modified_by=created_by,
                total_categories=len(categories),
            ),
            categories=categories,
        )

        saved = await self._save(project_id, timeline, "initialize")
        logger.info("timeline_initialized", project_id=project_id, timeline_id=saved.config.id)
        return saved

    async def reconfigure(
        self,
        project_id: str,
        changes: TimelineConfigUpdate | dict,
        modified_by: str | None = None,
    ) -> TimelineConfig:
        """Merge a partial config into the timeline config.

        The guard runs first, so a finalized timeline can never be un-finalized here.
        """
        timeline = await self._load(project_id)
        self._guard(project_id, timeline, "reconfigure")
        changes = _coerce(TimelineConfigUpdate, changes)

        update = changes.model_dump(exclude_none=True)
        saved = await self._commit(project_id, timeline, "reconfigure", config_update=update, modified_by=modified_by)

        if update.get("finalized"):
            logger.info("timeline_finalized", project_id=project_id, modified_by=modified_by)
        else:
            logger.info("timeline_reconfigured", project_id=project_id, fields=sorted(update))
        return saved.config

    async def finalize(self, project_id: str, modified_by: str | None = None) -> TimelineConfig:
        """Lock the timeline against further mutation."""
        return await self.reconfigure(project_id, TimelineConfigUpdate(finalized=True), modified_by)

    async def add_event(
        self,
        project_id: str,
        event_input: TimelineEventInput | dict,
        modified_by: str | None = None,
    ) -> str:
        """Validate and append a new event.

        Returns:
            The engine-generated event id

        Raises:
            FinalizationError, TimelineValidationError, TimingError
        """
        timeline = await self._load(project_id)
        self._guard(project_id, timeline, "add_event")
        event_input = _coerce(TimelineEventInput, event_input)
        self._check_capacity(project_id, len(timeline.items) + 1)

        event = TimelineEvent.model_validate({**event_input.model_dump(), "id": new_event_id()})
        self._check_timing(project_id, ensure_ordering(event))
        self._check_timing(
            project_id,
            validate_against_existing(event, timeline.items, self.min_buffer_minutes),
        )

        await self._commit(project_id, timeline, "add_event", items=[*timeline.items, event], modified_by=modified_by)
        logger.info("timeline_event_added", project_id=project_id, event_id=event.id, event_type=event.type.value)
        return event.id

    async def update_event(
        self,
        project_id: str,
        event: TimelineEvent | dict,
        modified_by: str | None = None,
    ) -> TimelineEvent:
        """Replace an existing event (matched by id) after re-validating its timing.

        The event is never compared against its own previous version.

        Raises:
            EventNotFoundError: No event with that id exists
        """
        timeline = await self._load(project_id)
        self._guard(project_id, timeline, "update_event")
        event = _coerce(TimelineEvent, event)

        if not any(item.id == event.id for item in timeline.items):
            raise EventNotFoundError(project_id, event.id)

        self._check_timing(project_id, ensure_ordering(event))
        self._check_timing(
            project_id,
            validate_against_existing(event, timeline.items, self.min_buffer_minutes),
        )

        items = [event if item.id == event.id else item for item in timeline.items]
        await self._commit(project_id, timeline, "update_event", items=items, modified_by=modified_by)
        logger.info("timeline_event_updated", project_id=project_id, event_id=event.id)
        return event

    async def delete_event(self, project_id: str, event_id: str, modified_by: str | None = None) -> bool:
        """Remove an event by id.

        Returns:
            True if an event was removed, False if the id was unknown (no write happens)
        """
        timeline = await self._load(project_id)
        self._guard(project_id, timeline, "delete_event")

        remaining = [item for item in timeline.items if item.id != event_id]
        if len(remaining) == len(timeline.items):
            logger.info("timeline_event_delete_noop", project_id=project_id, event_id=event_id)
            return False

        await self._commit(project_id, timeline, "delete_event", items=remaining, modified_by=modified_by)
        logger.info("timeline_event_deleted", project_id=project_id, event_id=event_id)
        return True

    async def replace_all_events(
        self,
        project_id: str,
        events: Iterable[TimelineEvent | TimelineEventInput | dict],
        modified_by: str | None = None,
    ) -> TimelineList:
        """Swap the whole event set in one write.

        Events without an id get a fresh one. A single invalid event rejects
        the entire batch.
        """
        timeline = await self._load(project_id)
        self._guard(project_id, timeline, "replace_all_events")

        parsed: list[TimelineEvent] = []
        for index, data in enumerate(events):
            try:
                parsed.append(_as_event(data))
            except TimelineValidationError as exc:
                errors = [{**err, "field": f"items.{index}.{err['field']}"} for err in exc.errors]
                raise TimelineValidationError(f"Event {index} is invalid", errors) from exc

        seen: set[str] = set()
        for event in parsed:
            if event.id in seen:
                raise TimelineValidationError(
                    f"Duplicate event id '{event.id}'",
                    [{"field": "items.id", "message": f"Duplicate id {event.id}", "type": "duplicate"}],
                )
            seen.add(event.id)

        self._check_capacity(project_id, len(parsed))
        self._check_timing(project_id, validate_timeline(parsed, self.min_buffer_minutes))

        saved = await self._commit(project_id, timeline, "replace_all_events", items=parsed, modified_by=modified_by)
        logger.info("timeline_events_replaced", project_id=project_id, count=len(parsed))
        return saved

    async def update_categories(
        self,
        project_id: str,
        categories: list[dict],
        modified_by: str | None = None,
    ) -> TimelineList:
        """Replace the pass-through category list."""
        timeline = await self._load(project_id)
        self._guard(project_id, timeline, "update_categories")
        categories = self._validate_categories(categories)

        saved = await self._commit(
            project_id, timeline, "update_categories", categories=categories, modified_by=modified_by
        )
        logger.info("timeline_categories_updated", project_id=project_id, count=len(categories))
        return saved

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def fetch(self, project_id: str, now: datetime | None = None) -> TimelineList:
        """Load the timeline with statuses recomputed at `now` (defaults to the clock)."""
        timeline = await self._load(project_id)
        return self._with_statuses(timeline, now)

    async def summary(self, project_id: str, now: datetime | None = None) -> TimelineSummary:
        """Current event, next event, and progress at `now`."""
        timeline = await self._load(project_id)
        now = as_utc(now) if now is not None else self.clock()
        return summarize(
            project_id,
            timeline.items,
            now,
            self.upcoming_window_minutes,
            self.fallback_minutes,
        )

    async def subscribe(
        self,
        project_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
        clock: Callable[[], datetime] | None = None,
    ) -> Unsubscribe:
        """Push every stored snapshot to on_snapshot with statuses recomputed on delivery."""
        clock = clock or self.clock

        def deliver(timeline: TimelineList) -> None:
            on_snapshot(self._with_statuses(timeline, clock()))

        return await self.store.subscribe_timeline(project_id, deliver, on_error)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _load(self, project_id: str) -> TimelineList:
        timeline = await self.store.load_timeline(project_id)
        if timeline is None:
            raise TimelineNotFoundError(project_id)
        return timeline

    def _with_statuses(self, timeline: TimelineList, now: datetime | None) -> TimelineList:
        now = as_utc(now) if now is not None else self.clock()
        items = recompute_all(timeline.items, now, self.upcoming_window_minutes, self.fallback_minutes)
        return timeline.model_copy(update={"items": items})

    def _guard(self, project_id: str, timeline: TimelineList, operation: str) -> None:
        result = ensure_not_finalized(timeline.config)
        if not result.allowed:
            logger.warning("timeline_mutation_rejected", project_id=project_id, operation=operation, reason=result.reason)
            raise FinalizationError(project_id)

    def _check_timing(self, project_id: str, result: TimingResult) -> None:
        if result.ok:
            return
        logger.info(
            "timeline_timing_rejected",
            project_id=project_id,
            code=result.code.value,
            other_event_id=result.other_event_id,
            gap_minutes=result.gap_minutes,
        )
        raise TimingError(result.code, result.reason, result.other_event_id, result.gap_minutes)

    def _check_capacity(self, project_id: str, count: int) -> None:
        if self.max_events is not None and count > self.max_events:
            raise TimelineValidationError(
                f"Timeline for project '{project_id}' is limited to {self.max_events} events",
                [{"field": "items", "message": f"At most {self.max_events} events", "type": "too_long"}],
            )

    def _validate_categories(self, categories: Any) -> list[dict[str, Any]]:
        try:
            return _CATEGORIES.validate_python(categories)
        except ValidationError as exc:
            raise TimelineValidationError.from_pydantic(exc) from exc

    async def _commit(
        self,
        project_id: str,
        timeline: TimelineList,
        operation: str,
        items: list[TimelineEvent] | None = None,
        categories: list[dict[str, Any]] | None = None,
        config_update: dict[str, Any] | None = None,
        modified_by: str | None = None,
    ) -> TimelineList:
        """Build the next aggregate value from `timeline` and persist it in one write."""
        items = timeline.items if items is None else items
        categories = timeline.categories if categories is None else categories
        config = timeline.config.model_copy(
            update={
                **(config_update or {}),
                "updated_at": self.clock(),
                "last_modified_by": modified_by or timeline.config.last_modified_by,
                "total_items": len(items),
                "total_categories": len(categories),
            }
        )
        updated = timeline.model_copy(update={"config": config, "items": items, "categories": categories})
        return await self._save(project_id, updated, operation)

    async def _save(self, project_id: str, timeline: TimelineList, operation: str) -> TimelineList:
        try:
            return await self.store.save_timeline(project_id, timeline)
        except PersistenceError as exc:
            logger.warning(
                "timeline_save_failed",
                project_id=project_id,
                operation=operation,
                code=exc.code.value,
                retryable=exc.retryable,
                error=str(exc),
            )
            raise

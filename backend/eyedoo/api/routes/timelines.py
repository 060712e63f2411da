"""Timeline API endpoints.

POST   /api/timelines/{project_id}                      - Initialize an empty timeline
GET    /api/timelines/{project_id}                      - Timeline with statuses derived now
GET    /api/timelines/{project_id}/summary              - Current/next event and progress
PATCH  /api/timelines/{project_id}/config               - Partial config update
POST   /api/timelines/{project_id}/finalize             - Lock the timeline
PUT    /api/timelines/{project_id}/categories           - Replace categories
POST   /api/timelines/{project_id}/events               - Add an event
PUT    /api/timelines/{project_id}/events               - Replace every event
PUT    /api/timelines/{project_id}/events/{event_id}    - Update one event
DELETE /api/timelines/{project_id}/events/{event_id}    - Delete one event (idempotent)

Engine errors are rendered by the EyeDooError handler registered in main.py.
"""

from fastapi import APIRouter, Depends, Header, Response

from eyedoo.persistence import get_store
from eyedoo.schemas.timeline import (
    AddEventResponse,
    CategoriesUpdateRequest,
    InitializeTimelineRequest,
    TimelineConfig,
    TimelineConfigUpdate,
    TimelineEvent,
    TimelineEventInput,
    TimelineList,
    TimelineSummary,
)
from eyedoo.services.timeline_engine import TimelineEngine

router = APIRouter()


def get_timeline_engine() -> TimelineEngine:
    """Dependency that provides the TimelineEngine.

    Override this dependency in tests via app.dependency_overrides.
    """
    return TimelineEngine.from_settings(get_store())


@router.post("/{project_id}", response_model=TimelineList, status_code=201)
async def initialize_timeline(
    project_id: str,
    request: InitializeTimelineRequest | None = None,
    engine: TimelineEngine = Depends(get_timeline_engine),
):
    """Create the empty timeline for a project.

    Raises:
        409 ALREADY_EXISTS: The project already has a timeline
    """
    request = request or InitializeTimelineRequest()
    return await engine.initialize(project_id, created_by=request.created_by, categories=request.categories)


@router.get("/{project_id}", response_model=TimelineList)
async def get_timeline(project_id: str, engine: TimelineEngine = Depends(get_timeline_engine)):
    """Get the timeline with every event status recomputed against the current time."""
    return await engine.fetch(project_id)


@router.get("/{project_id}/summary", response_model=TimelineSummary)
async def get_timeline_summary(project_id: str, engine: TimelineEngine = Depends(get_timeline_engine)):
    return await engine.summary(project_id)


@router.patch("/{project_id}/config", response_model=TimelineConfig)
async def reconfigure_timeline(
    project_id: str,
    changes: TimelineConfigUpdate,
    engine: TimelineEngine = Depends(get_timeline_engine),
    x_actor_id: str | None = Header(default=None),
):
    return await engine.reconfigure(project_id, changes, modified_by=x_actor_id)


@router.post("/{project_id}/finalize", response_model=TimelineConfig)
async def finalize_timeline(
    project_id: str,
    engine: TimelineEngine = Depends(get_timeline_engine),
    x_actor_id: str | None = Header(default=None),
):
    """Lock the timeline. Every later mutation fails with 423 FINALIZED."""
    return await engine.finalize(project_id, modified_by=x_actor_id)


@router.put("/{project_id}/categories", response_model=TimelineList)
async def replace_categories(
    project_id: str,
    request: CategoriesUpdateRequest,
    engine: TimelineEngine = Depends(get_timeline_engine),
    x_actor_id: str | None = Header(default=None),
):
    return await engine.update_categories(project_id, request.categories, modified_by=x_actor_id)


@router.post("/{project_id}/events", response_model=AddEventResponse, status_code=201)
async def add_event(
    project_id: str,
    event: TimelineEventInput,
    engine: TimelineEngine = Depends(get_timeline_engine),
    x_actor_id: str | None = Header(default=None),
):
    """Add an event to the timeline.

    Raises:
        409 CONFLICT / INSUFFICIENT_BUFFER / INVALID_ORDERING: Timing rules violated
        423 FINALIZED: Timeline is locked
    """
    event_id = await engine.add_event(project_id, event, modified_by=x_actor_id)
    return AddEventResponse(event_id=event_id)


@router.put("/{project_id}/events", response_model=TimelineList)
async def replace_events(
    project_id: str,
    events: list[dict],
    engine: TimelineEngine = Depends(get_timeline_engine),
    x_actor_id: str | None = Header(default=None),
):
    """Replace the full event set atomically. Items without an id receive one."""
    return await engine.replace_all_events(project_id, events, modified_by=x_actor_id)


@router.put("/{project_id}/events/{event_id}", response_model=TimelineEvent)
async def update_event(
    project_id: str,
    event_id: str,
    event: TimelineEventInput,
    engine: TimelineEngine = Depends(get_timeline_engine),
    x_actor_id: str | None = Header(default=None),
):
    updated = TimelineEvent.model_validate({**event.model_dump(), "id": event_id})
    return await engine.update_event(project_id, updated, modified_by=x_actor_id)


@router.delete("/{project_id}/events/{event_id}", status_code=204)
async def delete_event(
    project_id: str,
    event_id: str,
    engine: TimelineEngine = Depends(get_timeline_engine),
    x_actor_id: str | None = Header(default=None),
):
    """Delete an event. Unknown ids succeed without a write."""
    await engine.delete_event(project_id, event_id, modified_by=x_actor_id)
    return Response(status_code=204)

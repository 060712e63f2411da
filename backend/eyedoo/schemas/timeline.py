"""Pydantic schemas for project timelines.

A TimelineList is the aggregate persisted as one document per project:
config + opaque categories + events. Models are frozen; transitions build
new values with model_copy(update=...).
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
NOTES_MAX_LENGTH = 1000


def as_utc(value: datetime) -> datetime:
    """Read naive datetimes as UTC so every instant is absolute."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


Instant = Annotated[datetime, AfterValidator(as_utc)]


class TimelineMode(StrEnum):
    """Informational timeline mode; does not gate writes."""

    SETUP = "setup"
    ACTIVE = "active"
    REVIEW = "review"


class EventType(StrEnum):
    """Display category of a timeline event. No effect on scheduling."""

    BRIDAL_PREP = "bridal_prep"
    GROOM_PREP = "groom_prep"
    FIRST_LOOK = "first_look"
    CEREMONY = "ceremony"
    CONFETTI = "confetti"
    COUPLE_SHOTS = "couple_shots"
    GROUP_SHOTS = "group_shots"
    DRINKS_RECEPTION = "drinks_reception"
    RECEPTION = "reception"
    WEDDING_BREAKFAST = "wedding_breakfast"
    SPEECHES = "speeches"
    CAKE_CUTTING = "cake_cutting"
    FIRST_DANCE = "first_dance"
    EVENING_GUESTS = "evening_guests"
    TRAVEL = "travel"
    BREAK = "break"
    OTHER = "other"


class EventStatus(StrEnum):
    """Lifecycle status. Derived on read; CANCELLED is an authoritative override."""

    UPCOMING = "upcoming"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DELAYED = "delayed"


class WeatherData(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    temperature: float | None = None
    condition: str | None = None


class NotificationData(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    scheduled_time: Instant | None = None
    has_been_sent: bool = False
    message: str | None = Field(default=None, max_length=200)


class TimelineEventInput(BaseModel):
    """Caller-supplied event fields. The id is assigned by the engine."""

    model_config = ConfigDict(frozen=True, extra="forbid", str_strip_whitespace=True)

    type: EventType = EventType.OTHER
    item_name: str = Field(min_length=1, max_length=NAME_MAX_LENGTH)
    description: str | None = Field(default=None, max_length=DESCRIPTION_MAX_LENGTH)
    notes: str | None = Field(default=None, max_length=NOTES_MAX_LENGTH)
    start_time: Instant | None = None
    end_time: Instant | None = None
    duration: int | None = Field(default=None, ge=0, description="Minutes")
    status: EventStatus = EventStatus.UPCOMING
    location_id: str | None = None
    weather: WeatherData | None = None
    notification: NotificationData | None = None


class TimelineEvent(TimelineEventInput):
    """A stored timeline event."""

    id: str = Field(min_length=1)


class TimelineConfig(BaseModel):
    """Per-project timeline configuration."""

    model_config = ConfigDict(frozen=True)

    id: str
    project_id: str
    mode: TimelineMode = TimelineMode.SETUP
    finalized: bool = False
    # Written by the client portal only
    client_last_viewed: Instant | None = None

    created_at: Instant
    updated_at: Instant | None = None
    created_by: str | None = None
    last_modified_by: str | None = None
    total_items: int = Field(default=0, ge=0)
    total_categories: int = Field(default=0, ge=0)


class TimelineConfigUpdate(BaseModel):
    """Partial config accepted by reconfigure."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: TimelineMode | None = None
    finalized: bool | None = None


class TimelineList(BaseModel):
    """The timeline aggregate, persisted and loaded as a single unit."""

    model_config = ConfigDict(frozen=True)

    config: TimelineConfig
    categories: list[dict[str, Any]] = Field(default_factory=list)
    items: list[TimelineEvent] = Field(default_factory=list)
    revision: int = Field(default=0, ge=0, description="Stored document revision")


class TimelineSummary(BaseModel):
    """Wall-clock view of a timeline for progress displays."""

    project_id: str
    generated_at: datetime
    current_event: TimelineEvent | None = None
    current_progress: float | None = None
    next_event: TimelineEvent | None = None
    minutes_until_next: float | None = None
    status_counts: dict[str, int] = Field(default_factory=dict)


class InitializeTimelineRequest(BaseModel):
    created_by: str | None = None
    categories: list[dict[str, Any]] = Field(default_factory=list)


class CategoriesUpdateRequest(BaseModel):
    categories: list[dict[str, Any]]


class AddEventResponse(BaseModel):
    event_id: str

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Eye-Doo Timeline"
    debug: bool = False

    # API
    frontend_url: str = "http://localhost:3000"

    # Storage
    timeline_store: Literal["memory", "redis"] = "memory"  # env: TIMELINE_STORE
    redis_url: str = "redis://localhost:6379"
    timeline_key_prefix: str = "timeline"

    # Scheduling rules (global, not per timeline)
    min_buffer_minutes: int = 5  # env: MIN_BUFFER_MINUTES
    upcoming_window_minutes: int = 30
    in_progress_fallback_minutes: int = 60

    # Event cap per timeline; None means unlimited
    timeline_max_events: int | None = None  # env: TIMELINE_MAX_EVENTS


@lru_cache
def get_settings() -> Settings:
    return Settings()

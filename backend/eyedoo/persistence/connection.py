"""Process-wide timeline store, selected by the TIMELINE_STORE setting."""

import redis.asyncio as redis
import structlog

from eyedoo.core.config import get_settings
from eyedoo.persistence.memory import InMemoryTimelineStore
from eyedoo.persistence.port import TimelinePersistencePort
from eyedoo.persistence.redis_store import RedisTimelineStore

logger = structlog.get_logger(__name__)

_store: TimelinePersistencePort | None = None
_redis: redis.Redis | None = None


async def init_store(redis_url: str | None = None) -> None:
    """Create the shared store. For "redis" this opens the connection pool and pings it."""
    global _store, _redis

    if _store is not None:
        return

    settings = get_settings()
    if settings.timeline_store == "redis":
        _redis = redis.from_url(
            redis_url or settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        # Verify connectivity
        await _redis.ping()
        _store = RedisTimelineStore(_redis, key_prefix=settings.timeline_key_prefix)
    else:
        _store = InMemoryTimelineStore()

    logger.info("timeline_store_initialized", backend=settings.timeline_store)


async def close_store() -> None:
    """Drop the shared store and close the Redis pool if one was opened."""
    global _store, _redis

    if _redis is not None:
        await _redis.aclose()
        _redis = None
    _store = None


def get_store() -> TimelinePersistencePort:
    """Return the shared store.

    Raises RuntimeError if init_store() has not been called.
    """
    if _store is None:
        raise RuntimeError("Timeline store not initialized. Call init_store() first.")
    return _store


async def ping_store() -> bool:
    """Readiness probe: True when the configured backend answers."""
    if _store is None:
        return False
    if _redis is not None:
        return bool(await _redis.ping())
    return True

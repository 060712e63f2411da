"""Timeline persistence: port protocol, adapters, and the shared store."""

from eyedoo.persistence.connection import close_store, get_store, init_store, ping_store
from eyedoo.persistence.memory import InMemoryTimelineStore
from eyedoo.persistence.port import TimelinePersistencePort
from eyedoo.persistence.redis_store import RedisTimelineStore

__all__ = [
    "InMemoryTimelineStore",
    "RedisTimelineStore",
    "TimelinePersistencePort",
    "close_store",
    "get_store",
    "init_store",
    "ping_store",
]

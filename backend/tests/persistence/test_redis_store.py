"""Tests for RedisTimelineStore.

Uses fakeredis.aioredis.FakeRedis() for an in-process Redis with
transactions and Pub/Sub.
"""

import asyncio
from datetime import UTC, datetime

import fakeredis.aioredis
import pytest
import pytest_asyncio
from pydantic import ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import ResponseError

from eyedoo.core.exceptions import (
    ConcurrentModificationError,
    PersistenceError,
    TimelineExistsError,
)
from eyedoo.persistence.port import TimelinePersistencePort
from eyedoo.persistence.redis_store import RedisTimelineStore
from eyedoo.schemas.timeline import TimelineConfig, TimelineEvent, TimelineList

pytestmark = pytest.mark.unit

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def redis():
    """In-process fake Redis."""
    r = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield r
    await r.aclose()


@pytest.fixture
def redis_store(redis):
    return RedisTimelineStore(redis, key_prefix="test-timeline", poll_interval=0.05)


def _timeline(project_id="proj-1", revision=0, items=()) -> TimelineList:
    return TimelineList(
        config=TimelineConfig(id="cfg-1", project_id=project_id, created_at=datetime(2026, 6, 1, tzinfo=UTC)),
        items=list(items),
        revision=revision,
    )


async def wait_for_count(items: list, count: int, timeout: float = 2.0) -> None:
    """Poll until `items` holds at least `count` entries."""

    async def _wait():
        while len(items) < count:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_wait(), timeout)


class BrokenRedis:
    """Redis stand-in whose reads fail with the given error."""

    def __init__(self, error: Exception):
        self.error = error

    async def get(self, key):
        raise self.error


# ===========================================================================
# 1. Load / save
# ===========================================================================


def test_store_satisfies_port(redis_store):
    assert isinstance(redis_store, TimelinePersistencePort)


async def test_load_missing_returns_none(redis_store):
    assert await redis_store.load_timeline("proj-1") is None


async def test_save_writes_json_document(redis_store, redis):
    event = TimelineEvent(id="evt-1", item_name="Ceremony")
    saved = await redis_store.save_timeline("proj-1", _timeline(items=[event]))

    assert saved.revision == 1
    raw = await redis.get("test-timeline:proj-1")
    assert TimelineList.model_validate_json(raw) == saved
    assert await redis_store.load_timeline("proj-1") == saved


async def test_save_existing_with_revision_zero_fails(redis_store):
    await redis_store.save_timeline("proj-1", _timeline())

    with pytest.raises(TimelineExistsError):
        await redis_store.save_timeline("proj-1", _timeline())


async def test_stale_save_rejected(redis_store):
    first = await redis_store.save_timeline("proj-1", _timeline())
    await redis_store.save_timeline("proj-1", first)

    with pytest.raises(ConcurrentModificationError) as exc_info:
        await redis_store.save_timeline("proj-1", first)

    assert exc_info.value.retryable is True
    assert (await redis_store.load_timeline("proj-1")).revision == 2


async def test_connection_errors_are_retryable():
    store = RedisTimelineStore(BrokenRedis(RedisConnectionError("refused")))

    with pytest.raises(PersistenceError) as exc_info:
        await store.load_timeline("proj-1")
    assert exc_info.value.retryable is True


async def test_command_errors_are_not_retryable():
    store = RedisTimelineStore(BrokenRedis(ResponseError("WRONGTYPE")))

    with pytest.raises(PersistenceError) as exc_info:
        await store.load_timeline("proj-1")
    assert exc_info.value.retryable is False


# ===========================================================================
# 2. Subscriptions
# ===========================================================================


async def test_subscription_delivers_initial_and_published(redis_store):
    saved = await redis_store.save_timeline("proj-1", _timeline())
    received, errors = [], []

    unsubscribe = await redis_store.subscribe_timeline("proj-1", received.append, errors.append)
    await wait_for_count(received, 1)

    await redis_store.save_timeline("proj-1", saved)
    await wait_for_count(received, 2)
    unsubscribe()
    await asyncio.sleep(0.05)

    assert [timeline.revision for timeline in received] == [1, 2]
    assert errors == []


async def test_subscription_before_document_exists(redis_store):
    received = []
    unsubscribe = await redis_store.subscribe_timeline("proj-1", received.append, pytest.fail)
    await asyncio.sleep(0.1)
    assert received == []

    await redis_store.save_timeline("proj-1", _timeline())
    await wait_for_count(received, 1)
    unsubscribe()
    await asyncio.sleep(0.05)

    assert received[0].revision == 1


async def test_unsubscribe_stops_delivery(redis_store):
    saved = await redis_store.save_timeline("proj-1", _timeline())
    received = []
    unsubscribe = await redis_store.subscribe_timeline("proj-1", received.append, pytest.fail)
    await wait_for_count(received, 1)

    unsubscribe()
    await asyncio.sleep(0.1)
    await redis_store.save_timeline("proj-1", saved)
    await asyncio.sleep(0.2)

    assert len(received) == 1


async def test_failing_callback_reports_and_keeps_listening(redis_store):
    saved = await redis_store.save_timeline("proj-1", _timeline())
    calls, errors = [], []

    def flaky(timeline):
        calls.append(timeline)
        raise RuntimeError("render failed")

    unsubscribe = await redis_store.subscribe_timeline("proj-1", flaky, errors.append)
    await wait_for_count(calls, 1)
    await redis_store.save_timeline("proj-1", saved)
    await wait_for_count(calls, 2)
    unsubscribe()
    await asyncio.sleep(0.05)

    assert len(errors) == 2


async def test_unreadable_message_reported_and_listening_continues(redis_store, redis):
    received, errors = [], []
    unsubscribe = await redis_store.subscribe_timeline("proj-1", received.append, errors.append)
    await asyncio.sleep(0.1)

    await redis.publish("test-timeline:proj-1:events", "not json")
    await wait_for_count(errors, 1)
    await redis_store.save_timeline("proj-1", _timeline())
    await wait_for_count(received, 1)
    unsubscribe()
    await asyncio.sleep(0.05)

    assert isinstance(errors[0], ValidationError)
    assert received[0].revision == 1


async def test_failing_error_callback_keeps_listening(redis_store, redis):
    received = []

    def broken_on_error(exc):
        raise RuntimeError("error display crashed")

    unsubscribe = await redis_store.subscribe_timeline("proj-1", received.append, broken_on_error)
    await asyncio.sleep(0.1)

    await redis.publish("test-timeline:proj-1:events", "not json")
    await redis_store.save_timeline("proj-1", _timeline())
    await wait_for_count(received, 1)
    unsubscribe()
    await asyncio.sleep(0.05)

    assert received[0].revision == 1

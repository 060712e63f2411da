"""Redis-backed TimelinePersistencePort.

Storage layout:
    {prefix}:{project_id}          JSON document (the whole TimelineList)
    {prefix}:{project_id}:events   Pub/Sub channel carrying every saved snapshot

Writes use WATCH/MULTI so the revision check and the write happen atomically;
the snapshot is published inside the same transaction, which keeps channel
order identical to write order.
"""

import asyncio
import contextlib

import structlog
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError, WatchError
from redis.exceptions import TimeoutError as RedisTimeoutError

from eyedoo.core.exceptions import ConcurrentModificationError, PersistenceError
from eyedoo.persistence.port import (
    ErrorCallback,
    SnapshotCallback,
    Unsubscribe,
    check_revision,
)
from eyedoo.schemas.timeline import TimelineList

logger = structlog.get_logger(__name__)

POLL_INTERVAL_SECONDS = 1.0


def _storage_error(action: str, project_id: str, exc: RedisError) -> PersistenceError:
    """Classify a Redis failure; connectivity problems are retryable."""
    retryable = isinstance(exc, (RedisConnectionError, RedisTimeoutError))
    return PersistenceError(f"Redis {action} failed for project '{project_id}': {exc}", retryable=retryable)


def _report_error(project_id: str, on_error: ErrorCallback, exc: Exception) -> None:
    try:
        on_error(exc)
    except Exception as callback_exc:
        logger.warning(
            "timeline_error_callback_failed",
            project_id=project_id,
            error=str(callback_exc),
            error_type=type(callback_exc).__name__,
        )


class RedisTimelineStore:
    """Stores one JSON timeline document per project in Redis."""

    def __init__(
        self,
        redis: Redis,
        key_prefix: str = "timeline",
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self.redis = redis
        self.key_prefix = key_prefix
        self.poll_interval = poll_interval

    def _key(self, project_id: str) -> str:
        return f"{self.key_prefix}:{project_id}"

    def _channel(self, project_id: str) -> str:
        return f"{self.key_prefix}:{project_id}:events"

    async def load_timeline(self, project_id: str) -> TimelineList | None:
        try:
            raw = await self.redis.get(self._key(project_id))
        except RedisError as exc:
            raise _storage_error("load", project_id, exc) from exc

        if raw is None:
            return None
        return TimelineList.model_validate_json(raw)

    async def save_timeline(self, project_id: str, timeline: TimelineList) -> TimelineList:
        key = self._key(project_id)
        saved = timeline.model_copy(update={"revision": timeline.revision + 1})
        payload = saved.model_dump_json()

        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                raw = await pipe.get(key)
                stored_revision = TimelineList.model_validate_json(raw).revision if raw else None
                check_revision(project_id, timeline, stored_revision)

                pipe.multi()
                pipe.set(key, payload)
                pipe.publish(self._channel(project_id), payload)
                await pipe.execute()
        except WatchError as exc:
            raise ConcurrentModificationError(project_id, timeline.revision, None) from exc
        except RedisError as exc:
            raise _storage_error("save", project_id, exc) from exc

        return saved

    async def subscribe_timeline(
        self,
        project_id: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        pubsub = self.redis.pubsub()
        try:
            await pubsub.subscribe(self._channel(project_id))
        except RedisError as exc:
            await pubsub.aclose()
            raise _storage_error("subscribe", project_id, exc) from exc

        task = asyncio.create_task(self._listen(project_id, pubsub, on_snapshot, on_error))

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def _listen(self, project_id, pubsub, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> None:
        """Deliver the current document, then every published snapshot.

        Snapshots at or below the last delivered revision are dropped, so the
        initial load and the channel never deliver out of order.
        """
        last_revision = 0

        def deliver(timeline: TimelineList) -> None:
            nonlocal last_revision
            if timeline.revision <= last_revision:
                return
            last_revision = timeline.revision
            try:
                on_snapshot(timeline)
            except Exception as exc:
                logger.warning(
                    "timeline_subscriber_failed",
                    project_id=project_id,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                _report_error(project_id, on_error, exc)

        try:
            current = await self.load_timeline(project_id)
            if current is not None:
                deliver(current)

            while True:
                message = await pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=self.poll_interval,
                )
                if message is None or message.get("type") != "message":
                    continue
                try:
                    timeline = TimelineList.model_validate_json(message["data"])
                except ValidationError as exc:
                    logger.warning("timeline_snapshot_unreadable", project_id=project_id, error=str(exc))
                    _report_error(project_id, on_error, exc)
                    continue
                deliver(timeline)
        except (RedisError, PersistenceError) as exc:
            logger.warning("timeline_subscription_lost", project_id=project_id, error=str(exc))
            _report_error(project_id, on_error, exc)
        finally:
            with contextlib.suppress(RedisError):
                await pubsub.unsubscribe()
            await pubsub.aclose()

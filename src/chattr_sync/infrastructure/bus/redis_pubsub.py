"""Redis Pub/Sub realtime changes: publish side + per-subscription listener task."""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import redis.asyncio as aioredis

from chattr_sync.application.dto.events import MessageEvent, MessageInserted, MessageUpdated
from chattr_sync.application.ports.realtime import ChangeFilter, MessageEventSink
from chattr_sync.domain.value_objects.enums import ChangeType
from chattr_sync.infrastructure.bus.records import MessageRecord
from chattr_sync.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)


def channel_name(prefix: str, table: str, change_filter: ChangeFilter) -> str:
    return f"{prefix}:{table}:{change_filter}"


def decode_message_change(raw: str | bytes) -> MessageEvent | None:
    event_type, data = deserialize_event(raw)
    message = MessageRecord.model_validate(data).to_entity()
    if event_type == ChangeType.INSERT:
        return MessageInserted(message)
    if event_type == ChangeType.UPDATE:
        return MessageUpdated(message)
    return None


class RedisChangePublisher:
    def __init__(self, redis: aioredis.Redis, prefix: str) -> None:
        self._redis = redis
        self._prefix = prefix

    async def publish(
        self,
        table: str,
        change_filter: ChangeFilter,
        change_type: ChangeType,
        record: dict[str, Any],
    ) -> None:
        raw = serialize_event(change_type.value, record)
        await self._redis.publish(channel_name(self._prefix, table, change_filter), raw)


class RedisChangeSubscription:
    """Background task that listens to one change channel and feeds a sink."""

    def __init__(self, redis: aioredis.Redis, channel: str, sink: MessageEventSink) -> None:
        self._redis = redis
        self._channel = channel
        self._sink = sink
        self._task: asyncio.Task[None] | None = None
        self._closed = False

    async def start(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        self._task = asyncio.create_task(self._listen(pubsub), name=f"realtime-{self._channel}")
        logger.debug("Subscribed to %s", self._channel)

    async def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.debug("Unsubscribed from %s", self._channel)

    async def _listen(self, pubsub: Any) -> None:
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event = decode_message_change(message["data"])
                    if event is not None:
                        self._sink(event)
                except Exception:
                    logger.exception("Error processing change on %s", self._channel)
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()


class RedisRealtimeChannel:
    def __init__(self, redis: aioredis.Redis, prefix: str) -> None:
        self._redis = redis
        self._prefix = prefix

    async def subscribe(
        self,
        table: str,
        change_filter: ChangeFilter,
        sink: MessageEventSink,
    ) -> RedisChangeSubscription:
        subscription = RedisChangeSubscription(
            self._redis, channel_name(self._prefix, table, change_filter), sink,
        )
        await subscription.start()
        return subscription

"""Presence channel on Redis: a hash of leased metas plus a join/leave Pub/Sub feed.

Layout for channel ``name``:

* ``presence:<name>`` hash, field = per-connection presence key, value = JSON
  lease ``{"expires_at_ms": ..., "presences": [...]}``.
* ``presence:<name>:events`` Pub/Sub channel carrying ``join``/``leave``
  envelopes ``{"key": ..., "presences": [...]}``.

A tracking connection renews its lease every ``ttl / 3`` seconds. A lease
that lapses (the connection died without untracking) is removed by the next
snapshot read, which also publishes the matching ``leave``. A ``sync``
snapshot is built from the hash right after subscribing and then every
``sync_interval`` seconds.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from typing import Any, Callable

import redis.asyncio as aioredis

from chattr_sync.application.dto.events import (
    PresenceEvent,
    PresenceJoin,
    PresenceLeave,
    PresenceMeta,
    PresenceSync,
)
from chattr_sync.application.ports.realtime import PresenceEventSink
from chattr_sync.infrastructure.bus.records import PresenceLease, PresenceRecord
from chattr_sync.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _meta_records(metas: tuple[PresenceMeta, ...]) -> list[dict[str, Any]]:
    return [{"user_id": m.user_id, "online_at": m.online_at} for m in metas]


def decode_presence_delta(raw: str | bytes) -> PresenceEvent | None:
    event_type, data = deserialize_event(raw)
    presences = tuple(PresenceRecord.model_validate(p).to_meta() for p in data.get("presences", []))
    if event_type == "join":
        return PresenceJoin(key=data["key"], presences=presences)
    if event_type == "leave":
        return PresenceLeave(key=data["key"], presences=presences)
    return None


class RedisPresenceChannel:
    def __init__(
        self,
        redis: aioredis.Redis,
        name: str,
        *,
        sync_interval: float = 30.0,
        ttl: float = 60.0,
        now_ms: Callable[[], int] = _now_ms,
    ) -> None:
        self._redis = redis
        self._hash_key = f"presence:{name}"
        self._events_channel = f"presence:{name}:events"
        self._sync_interval = sync_interval
        self._ttl_ms = int(ttl * 1000)
        self._now_ms = now_ms
        self._key = uuid.uuid4().hex
        self._tracked: tuple[PresenceMeta, ...] = ()
        self._sink: PresenceEventSink | None = None
        self._deltas_seen = 0
        self._listen_task: asyncio.Task[None] | None = None
        self._sync_task: asyncio.Task[None] | None = None
        self._renew_task: asyncio.Task[None] | None = None

    @property
    def key(self) -> str:
        return self._key

    @property
    def hash_key(self) -> str:
        return self._hash_key

    @property
    def events_channel(self) -> str:
        return self._events_channel

    async def subscribe(self, sink: PresenceEventSink) -> None:
        self._sink = sink
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._events_channel)
        # deltas published meanwhile stay buffered on the pubsub connection
        # and are delivered after the initial snapshot
        try:
            await self._emit_sync()
        except Exception:
            await pubsub.aclose()
            raise
        self._listen_task = asyncio.create_task(
            self._listen(pubsub), name=f"presence-listen-{self._key}",
        )
        self._sync_task = asyncio.create_task(
            self._resync(), name=f"presence-sync-{self._key}",
        )
        logger.info("Presence channel %s subscribed (key=%s)", self._events_channel, self._key)

    async def track(self, meta: PresenceMeta) -> None:
        self._tracked = (meta,)
        await self._write_lease()
        await self._publish("join", self._key, self._tracked)
        if self._renew_task is None:
            self._renew_task = asyncio.create_task(
                self._renew(), name=f"presence-renew-{self._key}",
            )

    async def untrack(self) -> None:
        await self._cancel("_renew_task")
        if not self._tracked:
            return
        left, self._tracked = self._tracked, ()
        await self._redis.hdel(self._hash_key, self._key)
        await self._publish("leave", self._key, left)

    async def unsubscribe(self) -> None:
        self._sink = None
        for attr in ("_renew_task", "_sync_task", "_listen_task"):
            await self._cancel(attr)
        logger.info("Presence channel %s unsubscribed", self._events_channel)

    async def snapshot(self) -> dict[str, tuple[PresenceMeta, ...]]:
        """Live leases by presence key. Lapsed leases are removed and announced as left."""
        raw: dict[str, str] = await self._redis.hgetall(self._hash_key)
        now = self._now_ms()
        state: dict[str, tuple[PresenceMeta, ...]] = {}
        for key, value in raw.items():
            try:
                lease = PresenceLease.model_validate_json(value)
            except ValueError:
                logger.warning("Skipping malformed presence entry %s", key)
                continue
            if not lease.is_expired(now):
                state[key] = lease.to_metas()
                continue
            # only the reader whose HDEL wins announces the departure
            if await self._redis.hdel(self._hash_key, key):
                logger.info("Presence lease %s on %s expired", key, self._events_channel)
                await self._publish("leave", key, lease.to_metas())
        return state

    async def _write_lease(self) -> None:
        lease = PresenceLease(
            expires_at_ms=self._now_ms() + self._ttl_ms,
            presences=[
                PresenceRecord(user_id=m.user_id, online_at=m.online_at) for m in self._tracked
            ],
        )
        await self._redis.hset(self._hash_key, self._key, lease.model_dump_json())

    async def _publish(self, event_type: str, key: str, metas: tuple[PresenceMeta, ...]) -> None:
        payload: dict[str, Any] = {"key": key, "presences": _meta_records(metas)}
        await self._redis.publish(self._events_channel, serialize_event(event_type, payload))

    def _deliver(self, event: PresenceEvent) -> None:
        if self._sink is not None:
            self._sink(event)

    async def _emit_sync(self) -> None:
        self._deliver(PresenceSync(state=await self.snapshot()))

    async def _resync(self) -> None:
        while True:
            await asyncio.sleep(self._sync_interval)
            seen = self._deltas_seen
            try:
                state = await self.snapshot()
            except Exception:
                logger.exception("Presence resync failed on %s", self._events_channel)
                continue
            if self._deltas_seen != seen:
                # a delta landed while reading; this snapshot may predate it
                logger.debug("Skipping stale presence snapshot on %s", self._events_channel)
                continue
            self._deliver(PresenceSync(state=state))

    async def _renew(self) -> None:
        while True:
            await asyncio.sleep(self._ttl_ms / 3000)
            try:
                await self._write_lease()
            except Exception:
                logger.exception("Presence lease renewal failed on %s", self._events_channel)

    async def _cancel(self, attr: str) -> None:
        task: asyncio.Task[None] | None = getattr(self, attr)
        if task is None:
            return
        setattr(self, attr, None)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _listen(self, pubsub: Any) -> None:
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event = decode_presence_delta(message["data"])
                    if event is not None:
                        self._deltas_seen += 1
                        self._deliver(event)
                except Exception:
                    logger.exception("Error processing presence message")
        finally:
            await pubsub.unsubscribe(self._events_channel)
            await pubsub.aclose()

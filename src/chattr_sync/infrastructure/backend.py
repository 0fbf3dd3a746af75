"""Concrete backing service: PostgreSQL via SQLAlchemy plus Redis for realtime and presence."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chattr_sync.config import Settings
from chattr_sync.infrastructure.bus.redis_pubsub import (
    RedisChangePublisher,
    RedisRealtimeChannel,
)
from chattr_sync.infrastructure.db.repositories.conversation import (
    ConversationReaderRepo,
    ConversationWriterRepo,
)
from chattr_sync.infrastructure.db.repositories.message import (
    MessageReaderRepo,
    MessageWriterRepo,
)
from chattr_sync.infrastructure.db.repositories.profile import ProfileReaderRepo
from chattr_sync.infrastructure.db.session import create_engine, create_sessionmaker
from chattr_sync.infrastructure.presence.redis_presence import RedisPresenceChannel

logger = logging.getLogger(__name__)


class SqlAlchemyRedisBackend:
    """Implements application.backend.Backend."""

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        redis: aioredis.Redis,
        *,
        channel_prefix: str = "realtime",
        presence_sync_interval: float = 30.0,
        presence_ttl: float = 60.0,
    ) -> None:
        self._redis = redis
        self._presence_sync_interval = presence_sync_interval
        self._presence_ttl = presence_ttl
        publisher = RedisChangePublisher(redis, channel_prefix)
        self.profiles = ProfileReaderRepo(sessions)
        self.conversations = ConversationReaderRepo(sessions)
        self.conversations_w = ConversationWriterRepo(sessions)
        self.messages = MessageReaderRepo(sessions)
        self.messages_w = MessageWriterRepo(sessions, publisher)
        self.realtime = RedisRealtimeChannel(redis, channel_prefix)

    def presence_channel(self, name: str) -> RedisPresenceChannel:
        return RedisPresenceChannel(
            self._redis,
            name,
            sync_interval=self._presence_sync_interval,
            ttl=self._presence_ttl,
        )


@asynccontextmanager
async def open_backend(settings: Settings) -> AsyncIterator[SqlAlchemyRedisBackend]:
    """Create the engine and Redis pool for the session lifetime."""
    engine = create_engine(settings)
    redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    logger.info("Backend connections created")
    try:
        yield SqlAlchemyRedisBackend(
            create_sessionmaker(engine),
            redis,
            channel_prefix=settings.REALTIME_CHANNEL_PREFIX,
            presence_sync_interval=settings.PRESENCE_SYNC_INTERVAL,
            presence_ttl=settings.PRESENCE_TTL,
        )
    finally:
        await redis.aclose()
        await engine.dispose()
        logger.info("Backend connections closed")

from __future__ import annotations

import logging
from typing import Sequence
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chattr_sync.application.ports.realtime import ChangeFilter
from chattr_sync.domain.entities.message import Message
from chattr_sync.domain.value_objects.enums import ChangeType
from chattr_sync.infrastructure.bus.redis_pubsub import RedisChangePublisher
from chattr_sync.infrastructure.db.mappers import message as mapper
from chattr_sync.infrastructure.db.models.message import MessageModel

logger = logging.getLogger(__name__)

TABLE = MessageModel.__tablename__


class MessageReaderRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return [mapper.model_to_entity(m) for m in result.scalars().all()]


class MessageWriterRepo:
    """Writes messages and fans the committed rows out as change events."""

    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        publisher: RedisChangePublisher,
    ) -> None:
        self._sessions = sessions
        self._publisher = publisher

    async def insert(self, message: Message) -> Message:
        stmt = (
            pg_insert(MessageModel)
            .values(**mapper.entity_to_values(message))
            .returning(MessageModel)
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            stored = mapper.model_to_entity(result.scalar_one())
            await session.commit()

        await self._publish(ChangeType.INSERT, stored)
        return stored

    async def mark_read(self, message_ids: Sequence[UUID]) -> list[Message]:
        if not message_ids:
            return []
        stmt = (
            update(MessageModel)
            .where(MessageModel.id.in_(list(message_ids)), MessageModel.read.is_(False))
            .values(read=True)
            .returning(MessageModel)
            .execution_options(synchronize_session=False)
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            updated = [mapper.model_to_entity(m) for m in result.scalars().all()]
            await session.commit()

        for msg in updated:
            await self._publish(ChangeType.UPDATE, msg)
        return updated

    async def _publish(self, change_type: ChangeType, message: Message) -> None:
        # the write is committed; a lost notification is repaired by the next fetch
        try:
            await self._publisher.publish(
                TABLE,
                ChangeFilter("conversation_id", message.conversation_id),
                change_type,
                mapper.entity_to_record(message),
            )
        except Exception:
            logger.exception("Failed to publish %s for message %s", change_type, message.id)

from __future__ import annotations

from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chattr_sync.domain.entities.conversation import Conversation
from chattr_sync.infrastructure.db.mappers import conversation as mapper
from chattr_sync.infrastructure.db.models.conversation import ConversationModel


def _pair_clause(first: UUID, second: UUID):
    return or_(
        and_(ConversationModel.user1_id == first, ConversationModel.user2_id == second),
        and_(ConversationModel.user1_id == second, ConversationModel.user2_id == first),
    )


class ConversationReaderRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        async with self._sessions() as session:
            model = await session.get(ConversationModel, conversation_id)
            return mapper.model_to_entity(model) if model else None

    async def list_for_user(self, user_id: UUID) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .where(
                or_(
                    ConversationModel.user1_id == user_id,
                    ConversationModel.user2_id == user_id,
                )
            )
            .order_by(ConversationModel.created_at.asc(), ConversationModel.id.asc())
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ConversationWriterRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def create(self, participant_a_id: UUID, participant_b_id: UUID) -> Conversation:
        """Insert the pair idempotently; returns the existing row on conflict."""
        stmt = (
            pg_insert(ConversationModel)
            .values(user1_id=participant_a_id, user2_id=participant_b_id)
            .on_conflict_do_nothing()
            .returning(ConversationModel.id)
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            conversation_id = result.scalar_one_or_none()
            await session.commit()

            if conversation_id is not None:
                model = await session.get(ConversationModel, conversation_id)
            else:
                # Another session created the pair first
                existing = await session.execute(
                    select(ConversationModel).where(
                        _pair_clause(participant_a_id, participant_b_id)
                    )
                )
                model = existing.scalar_one_or_none()
            assert model is not None
            return mapper.model_to_entity(model)

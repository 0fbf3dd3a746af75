from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chattr_sync.domain.entities.user import User
from chattr_sync.infrastructure.db.mappers import profile as mapper
from chattr_sync.infrastructure.db.models.profile import ProfileModel


class ProfileReaderRepo:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def get_by_id(self, user_id: UUID) -> User | None:
        async with self._sessions() as session:
            model = await session.get(ProfileModel, user_id)
            return mapper.model_to_entity(model) if model else None

    async def list_except(self, user_id: UUID) -> list[User]:
        stmt = (
            select(ProfileModel)
            .where(ProfileModel.id != user_id)
            .order_by(ProfileModel.username.asc())
        )
        async with self._sessions() as session:
            result = await session.execute(stmt)
            return [mapper.model_to_entity(m) for m in result.scalars().all()]

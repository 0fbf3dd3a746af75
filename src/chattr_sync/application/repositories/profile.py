from __future__ import annotations

from typing import Protocol
from uuid import UUID

from chattr_sync.domain.entities.user import User


class ProfileReader(Protocol):
    async def get_by_id(self, user_id: UUID) -> User | None: ...

    async def list_except(self, user_id: UUID) -> list[User]:
        """All profiles other than the given user's."""
        ...

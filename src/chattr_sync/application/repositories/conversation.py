from __future__ import annotations

from typing import Protocol
from uuid import UUID

from chattr_sync.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: UUID) -> Conversation | None: ...

    async def list_for_user(self, user_id: UUID) -> list[Conversation]:
        """Conversations where the user is either participant, both profiles resolved."""
        ...


class ConversationWriter(Protocol):
    async def create(
        self, participant_a_id: UUID, participant_b_id: UUID
    ) -> Conversation:
        """Insert and return the row with both profiles resolved."""
        ...

from __future__ import annotations

from typing import Protocol, Sequence
from uuid import UUID

from chattr_sync.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        """All messages of a conversation ordered by created_at ascending."""
        ...


class MessageWriter(Protocol):
    async def insert(self, message: Message) -> Message:
        """Persist the message and return the stored row with its server id."""
        ...

    async def mark_read(self, message_ids: Sequence[UUID]) -> list[Message]:
        """Set ``read`` on the given ids and return the updated rows."""
        ...

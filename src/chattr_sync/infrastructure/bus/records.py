"""Wire records carried inside change and presence envelopes."""
from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from chattr_sync.application.dto.events import PresenceMeta
from chattr_sync.domain.entities.message import Message


class MessageRecord(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str
    created_at: datetime
    read: bool = False

    model_config = {"from_attributes": True}

    def to_entity(self) -> Message:
        return Message(
            id=self.id,
            conversation_id=self.conversation_id,
            sender_id=self.sender_id,
            content=self.content,
            created_at=self.created_at,
            read=self.read,
        )


class PresenceRecord(BaseModel):
    user_id: UUID
    online_at: datetime

    model_config = {"from_attributes": True}

    def to_meta(self) -> PresenceMeta:
        return PresenceMeta(user_id=self.user_id, online_at=self.online_at)


class PresenceLease(BaseModel):
    """Value of one presence hash field: the metas a connection tracks and when they lapse."""

    expires_at_ms: int
    presences: list[PresenceRecord]

    def is_expired(self, now_ms: int) -> bool:
        return self.expires_at_ms <= now_ms

    def to_metas(self) -> tuple[PresenceMeta, ...]:
        return tuple(p.to_meta() for p in self.presences)

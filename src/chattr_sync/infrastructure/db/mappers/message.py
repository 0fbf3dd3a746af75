from __future__ import annotations

from typing import Any

from chattr_sync.domain.entities.message import Message
from chattr_sync.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        id=model.id,
        conversation_id=model.conversation_id,
        sender_id=model.sender_id,
        content=model.content,
        created_at=model.created_at,
        read=model.read,
    )


def entity_to_values(entity: Message) -> dict[str, Any]:
    """Insert values; id, created_at and read are assigned by the database."""
    return {
        "conversation_id": entity.conversation_id,
        "sender_id": entity.sender_id,
        "content": entity.content,
    }


def entity_to_record(entity: Message) -> dict[str, Any]:
    return {
        "id": entity.id,
        "conversation_id": entity.conversation_id,
        "sender_id": entity.sender_id,
        "content": entity.content,
        "created_at": entity.created_at,
        "read": entity.read,
    }

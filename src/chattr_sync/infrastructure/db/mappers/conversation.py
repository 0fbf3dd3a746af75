from __future__ import annotations

from chattr_sync.domain.entities.conversation import Conversation
from chattr_sync.infrastructure.db.mappers import profile as profile_mapper
from chattr_sync.infrastructure.db.models.conversation import ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        participant_a_id=model.user1_id,
        participant_b_id=model.user2_id,
        created_at=model.created_at,
        participant_a=profile_mapper.model_to_entity(model.user1) if model.user1 else None,
        participant_b=profile_mapper.model_to_entity(model.user2) if model.user2 else None,
    )

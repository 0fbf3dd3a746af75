from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from chattr_sync.domain.value_objects.enums import DeliveryState


@dataclass(frozen=True, slots=True)
class Message:
    id: UUID | None
    conversation_id: UUID
    sender_id: UUID
    content: str
    created_at: datetime
    read: bool = False
    # Local correlation key for optimistic sends; never persisted.
    client_msg_id: UUID | None = None

    @property
    def delivery(self) -> DeliveryState:
        if self.id is None:
            return DeliveryState.UNCONFIRMED
        return DeliveryState.CONFIRMED

    @property
    def is_confirmed(self) -> bool:
        return self.id is not None

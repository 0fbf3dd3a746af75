from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from chattr_sync.domain.entities.user import User


@dataclass(frozen=True, slots=True)
class Conversation:
    """A two-party conversation.

    ``participant_a_id``/``participant_b_id`` carry no ordering guarantee;
    pair matching is always unordered.
    """

    id: UUID
    participant_a_id: UUID
    participant_b_id: UUID
    created_at: datetime
    participant_a: User | None = None
    participant_b: User | None = None

    def involves(self, user_id: UUID) -> bool:
        return user_id in (self.participant_a_id, self.participant_b_id)

    def pairs_with(self, first: UUID, second: UUID) -> bool:
        return {self.participant_a_id, self.participant_b_id} == {first, second}

    def other_participant_id(self, user_id: UUID) -> UUID:
        if self.participant_a_id == user_id:
            return self.participant_b_id
        return self.participant_a_id

    def other_participant(self, user_id: UUID) -> User | None:
        if self.participant_a_id == user_id:
            return self.participant_b
        return self.participant_a

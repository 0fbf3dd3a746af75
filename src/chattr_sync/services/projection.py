"""Pure view-model projections over directory, presence and message state."""
from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Iterable
from uuid import UUID

from chattr_sync.domain.entities.conversation import Conversation
from chattr_sync.domain.entities.message import Message
from chattr_sync.domain.entities.user import User
from chattr_sync.domain.value_objects.enums import OnlineStatus, ReceiptStatus

DEFAULT_AVATAR_URL = "/static/default-avatar.png"


@dataclass(frozen=True, slots=True)
class ConversationSummary:
    conversation: Conversation
    other_user_id: UUID
    other_user: User | None
    display_name: str
    avatar_url: str
    status: OnlineStatus
    is_active: bool


def online_status(
    conversation: Conversation,
    current_user_id: UUID,
    online: AbstractSet[UUID],
) -> OnlineStatus:
    other = conversation.other_participant_id(current_user_id)
    return OnlineStatus.ONLINE if other in online else OnlineStatus.OFFLINE


def avatar_url(user: User | None, default: str = DEFAULT_AVATAR_URL) -> str:
    if user is None or not user.avatar_url:
        return default
    return user.avatar_url


def summarize(
    conversations: Iterable[Conversation],
    current_user_id: UUID,
    online: AbstractSet[UUID],
    *,
    active_id: UUID | None = None,
    default_avatar: str = DEFAULT_AVATAR_URL,
) -> list[ConversationSummary]:
    result: list[ConversationSummary] = []
    for conv in conversations:
        other = conv.other_participant(current_user_id)
        result.append(
            ConversationSummary(
                conversation=conv,
                other_user_id=conv.other_participant_id(current_user_id),
                other_user=other,
                display_name=other.display_name if other else "",
                avatar_url=avatar_url(other, default_avatar),
                status=online_status(conv, current_user_id, online),
                is_active=conv.id == active_id,
            )
        )
    return result


def receipt_status(message: Message, current_user_id: UUID) -> ReceiptStatus | None:
    """Tick marker for the sender's own messages; None for received ones."""
    if message.sender_id != current_user_id:
        return None
    if not message.is_confirmed:
        return ReceiptStatus.PENDING
    return ReceiptStatus.READ if message.read else ReceiptStatus.SENT


def unread_from_others(messages: Iterable[Message], current_user_id: UUID) -> list[Message]:
    return [
        m for m in messages
        if m.sender_id != current_user_id and not m.read and m.id is not None
    ]


def unread_count(messages: Iterable[Message], current_user_id: UUID) -> int:
    return len(unread_from_others(messages, current_user_id))

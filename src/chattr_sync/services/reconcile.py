"""List-reconciliation helpers for the resident message list.

All helpers mutate the list in place. Matching is by server id or by the
client correlation id, never by position.
"""
from __future__ import annotations

from dataclasses import replace
from uuid import UUID

from chattr_sync.domain.entities.message import Message


def index_of_id(messages: list[Message], message_id: UUID) -> int | None:
    for i, msg in enumerate(messages):
        if msg.id is not None and msg.id == message_id:
            return i
    return None


def index_of_correlation(messages: list[Message], client_msg_id: UUID) -> int | None:
    for i, msg in enumerate(messages):
        if msg.id is None and msg.client_msg_id == client_msg_id:
            return i
    return None


def contains_id(messages: list[Message], message_id: UUID) -> bool:
    return index_of_id(messages, message_id) is not None


def insert_ordered(messages: list[Message], message: Message) -> int:
    """Insert after the last entry whose created_at is <= the new one's.

    Equal timestamps keep arrival order. Scans from the tail since new
    messages are almost always the most recent.
    """
    pos = len(messages)
    while pos > 0 and messages[pos - 1].created_at > message.created_at:
        pos -= 1
    messages.insert(pos, message)
    return pos


def remove_by_correlation(messages: list[Message], client_msg_id: UUID) -> Message | None:
    idx = index_of_correlation(messages, client_msg_id)
    if idx is None:
        return None
    return messages.pop(idx)


def confirm(messages: list[Message], client_msg_id: UUID, confirmed: Message) -> bool:
    """Swap the placeholder for its confirmed row.

    The confirmed row is re-positioned by its server timestamp. Returns False
    when the row was already resident, in which case only the placeholder is
    dropped.
    """
    remove_by_correlation(messages, client_msg_id)
    if confirmed.id is not None and contains_id(messages, confirmed.id):
        return False
    insert_ordered(messages, confirmed)
    return True


def merge_update(current: Message, incoming: Message) -> Message:
    # read only ever flips false -> true
    merged = replace(incoming, client_msg_id=current.client_msg_id)
    if current.read and not incoming.read:
        merged = replace(merged, read=True)
    return merged


def apply_update(messages: list[Message], incoming: Message) -> bool:
    if incoming.id is None:
        return False
    idx = index_of_id(messages, incoming.id)
    if idx is None:
        return False
    messages[idx] = merge_update(messages[idx], incoming)
    return True


def is_ordered(messages: list[Message]) -> bool:
    return all(a.created_at <= b.created_at for a, b in zip(messages, messages[1:]))

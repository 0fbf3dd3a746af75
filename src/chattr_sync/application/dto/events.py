"""Typed events pushed by the backend into component queues."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Mapping
from uuid import UUID

from chattr_sync.domain.entities.message import Message


@dataclass(frozen=True, slots=True)
class PresenceMeta:
    user_id: UUID
    online_at: datetime


@dataclass(frozen=True, slots=True)
class MessageInserted:
    message: Message


@dataclass(frozen=True, slots=True)
class MessageUpdated:
    message: Message


@dataclass(frozen=True, slots=True)
class PresenceSync:
    """Full presence snapshot: presence key -> metas tracked under that key."""

    state: Mapping[str, tuple[PresenceMeta, ...]]


@dataclass(frozen=True, slots=True)
class PresenceJoin:
    key: str
    presences: tuple[PresenceMeta, ...]


@dataclass(frozen=True, slots=True)
class PresenceLeave:
    key: str
    presences: tuple[PresenceMeta, ...]


MessageEvent = MessageInserted | MessageUpdated
PresenceEvent = PresenceSync | PresenceJoin | PresenceLeave

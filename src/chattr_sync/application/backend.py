from __future__ import annotations

from typing import Protocol

from chattr_sync.application.ports.realtime import PresenceChannel, RealtimeChannel
from chattr_sync.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from chattr_sync.application.repositories.message import MessageReader, MessageWriter
from chattr_sync.application.repositories.profile import ProfileReader


class Backend(Protocol):
    """The managed realtime data service, as seen by the sync core."""

    profiles: ProfileReader
    conversations: ConversationReader
    conversations_w: ConversationWriter
    messages: MessageReader
    messages_w: MessageWriter
    realtime: RealtimeChannel

    def presence_channel(self, name: str) -> PresenceChannel: ...

"""Signed-in session: owns the directory, presence and the active conversation."""
from __future__ import annotations

import logging
from uuid import UUID

from chattr_sync.application.backend import Backend
from chattr_sync.application.dto.principal import Principal
from chattr_sync.application.exceptions import PresenceCleanupError
from chattr_sync.application.ports.clock import Clock, SystemClock
from chattr_sync.domain.entities.conversation import Conversation
from chattr_sync.domain.value_objects.enums import OnlineStatus
from chattr_sync.services import projection
from chattr_sync.services.conversation_directory import ConversationDirectory
from chattr_sync.services.message_sync import MessageStoreSync
from chattr_sync.services.presence_tracker import PresenceTracker

logger = logging.getLogger(__name__)

DEFAULT_PRESENCE_CHANNEL = "online_users"


class ChatSession:
    def __init__(
        self,
        principal: Principal,
        backend: Backend,
        *,
        clock: Clock | None = None,
        presence_channel: str = DEFAULT_PRESENCE_CHANNEL,
        auto_mark_read: bool = True,
    ) -> None:
        self.principal = principal
        self._backend = backend
        self._clock = clock or SystemClock()
        self._auto_mark_read = auto_mark_read
        self.directory = ConversationDirectory(principal, backend)
        self.presence = PresenceTracker(
            principal, backend.presence_channel(presence_channel), clock=self._clock,
        )
        self._active: MessageStoreSync | None = None
        self._torn_down = False

    @property
    def active(self) -> MessageStoreSync | None:
        return self._active

    async def init(self) -> None:
        """Sign-in hook. Presence failures are logged; FetchError from loading propagates."""
        try:
            await self.presence.start()
        except Exception:
            logger.warning(
                "Presence unavailable for %s, continuing offline",
                self.principal.user_id, exc_info=True,
            )
        await self.directory.load()

    async def select(self, conversation: Conversation) -> MessageStoreSync:
        """Close the active conversation and open ``conversation``.

        Re-selecting the active conversation returns the existing sync.
        """
        current = self._active
        if current is not None and current.conversation.id == conversation.id and not current.is_closed:
            await current.open()
            return current
        if current is not None:
            await current.close()
            self._active = None

        sync = MessageStoreSync(
            self.principal,
            conversation,
            self._backend,
            clock=self._clock,
            auto_mark_read=self._auto_mark_read,
        )
        self._active = sync
        await sync.open()
        return sync

    async def start_conversation(self, other_user_id: UUID) -> MessageStoreSync:
        conversation = await self.directory.find_or_create(other_user_id)
        return await self.select(conversation)

    async def deselect(self) -> None:
        current, self._active = self._active, None
        if current is not None:
            await current.close()

    def online_status(self, conversation: Conversation) -> OnlineStatus:
        return projection.online_status(
            conversation, self.principal.user_id, self.presence.online,
        )

    def summaries(self, query: str = "") -> list[projection.ConversationSummary]:
        active_id = self._active.conversation.id if self._active else None
        return projection.summarize(
            self.directory.filter_by_participant_name(query),
            self.principal.user_id,
            self.presence.online,
            active_id=active_id,
        )

    async def teardown(self) -> list[PresenceCleanupError]:
        """Sign-out hook. Never raises; idempotent."""
        if self._torn_down:
            return []
        self._torn_down = True
        try:
            await self.deselect()
        except Exception:
            logger.warning("Error closing active conversation", exc_info=True)
        errors = await self.presence.stop()
        logger.info("Session for %s torn down", self.principal.user_id)
        return errors

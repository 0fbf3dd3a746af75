from __future__ import annotations

import asyncio
import logging
from uuid import UUID

from chattr_sync.application.backend import Backend
from chattr_sync.application.dto.principal import Principal
from chattr_sync.application.exceptions import FetchError, ValidationError
from chattr_sync.domain.entities.conversation import Conversation
from chattr_sync.domain.entities.user import User

logger = logging.getLogger(__name__)


def _matches_prefix(name: str | None, query: str) -> bool:
    return bool(name) and name.lower().startswith(query.lower())


class ConversationDirectory:
    """Resident cache of the current user's conversations."""

    def __init__(self, principal: Principal, backend: Backend) -> None:
        self._principal = principal
        self._backend = backend
        self._conversations: list[Conversation] = []
        self._users: list[User] = []
        self._loaded = False
        self._create_lock = asyncio.Lock()

    @property
    def conversations(self) -> tuple[Conversation, ...]:
        return tuple(self._conversations)

    @property
    def users(self) -> tuple[User, ...]:
        return tuple(self._users)

    @property
    def loaded(self) -> bool:
        return self._loaded

    def get(self, conversation_id: UUID) -> Conversation | None:
        for conv in self._conversations:
            if conv.id == conversation_id:
                return conv
        return None

    async def load(self) -> list[Conversation]:
        """Replace the resident set with the backend's view. Raises FetchError."""
        user_id = self._principal.user_id
        try:
            rows = await self._backend.conversations.list_for_user(user_id)
        except Exception as exc:
            logger.warning("Failed to load conversations for %s: %s", user_id, exc)
            raise FetchError("Could not load conversations") from exc

        self._conversations = sorted(
            (c for c in rows if c.involves(user_id)),
            key=lambda c: (c.created_at, str(c.id)),
        )
        self._loaded = True
        logger.debug("Loaded %d conversations for %s", len(self._conversations), user_id)
        return list(self._conversations)

    async def find_or_create(self, other_user_id: UUID) -> Conversation:
        """Return the resident conversation with other_user_id, creating it on a miss."""
        user_id = self._principal.user_id
        if other_user_id == user_id:
            raise ValidationError("Cannot start a conversation with yourself")

        async with self._create_lock:
            existing = self._find_pair(user_id, other_user_id)
            if existing is not None:
                return existing

            try:
                conversation = await self._backend.conversations_w.create(user_id, other_user_id)
            except Exception as exc:
                logger.warning(
                    "Failed to create conversation %s <-> %s: %s",
                    user_id, other_user_id, exc,
                )
                raise FetchError("Could not create conversation") from exc

            # the backend may hand back a row another session created first
            existing = self.get(conversation.id)
            if existing is not None:
                return existing
            self._conversations.append(conversation)
            logger.info("Created conversation %s with %s", conversation.id, other_user_id)
            return conversation

    def filter_by_participant_name(self, query: str) -> list[Conversation]:
        """Case-insensitive prefix match on the other participant's display name."""
        query = query.strip()
        if not query:
            return list(self._conversations)
        user_id = self._principal.user_id
        result = []
        for conv in self._conversations:
            other = conv.other_participant(user_id)
            if other is not None and _matches_prefix(other.display_name, query):
                result.append(conv)
        return result

    async def load_users(self) -> list[User]:
        """Load candidate peers for a new conversation. Raises FetchError."""
        user_id = self._principal.user_id
        try:
            users = await self._backend.profiles.list_except(user_id)
        except Exception as exc:
            logger.warning("Failed to load profiles: %s", exc)
            raise FetchError("Could not load users") from exc
        self._users = [u for u in users if u.id != user_id]
        return list(self._users)

    def filter_users(self, query: str) -> list[User]:
        query = query.strip()
        if not query:
            return []
        return [u for u in self._users if _matches_prefix(u.display_name, query)]

    def _find_pair(self, first: UUID, second: UUID) -> Conversation | None:
        for conv in self._conversations:
            if conv.pairs_with(first, second):
                return conv
        return None

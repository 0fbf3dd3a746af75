"""Per-conversation message list reconciled from fetch, sends and realtime events."""
from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import replace
from typing import Callable
from uuid import UUID

from chattr_sync.application.backend import Backend
from chattr_sync.application.dto.events import MessageEvent, MessageInserted, MessageUpdated
from chattr_sync.application.dto.principal import Principal
from chattr_sync.application.exceptions import (
    AppError,
    FetchError,
    ReadReceiptError,
    SendError,
    SyncClosedError,
)
from chattr_sync.application.ports.clock import Clock, SystemClock
from chattr_sync.application.ports.realtime import ChangeFilter, Subscription
from chattr_sync.domain.entities.conversation import Conversation
from chattr_sync.domain.entities.message import Message
from chattr_sync.domain.value_objects.enums import SyncState
from chattr_sync.services import reconcile
from chattr_sync.services.projection import unread_from_others

logger = logging.getLogger(__name__)

MESSAGES_TABLE = "messages"


class MessageStoreSync:
    """Owns the resident message list of one open conversation.

    Realtime events are pushed into a single-consumer queue through
    :meth:`feed` and applied by one consumer task once the initial fetch has
    been installed. Every mutation path checks the closed flag first, so
    nothing changes after :meth:`close` returns.
    """

    def __init__(
        self,
        principal: Principal,
        conversation: Conversation,
        backend: Backend,
        *,
        clock: Clock | None = None,
        id_factory: Callable[[], UUID] = uuid.uuid4,
        auto_mark_read: bool = True,
    ) -> None:
        self._principal = principal
        self._conversation = conversation
        self._backend = backend
        self._clock = clock or SystemClock()
        self._id_factory = id_factory
        self._auto_mark_read = auto_mark_read

        self._state = SyncState.LOADING
        self._messages: list[Message] = []
        self._events: asyncio.Queue[MessageEvent] = asyncio.Queue()
        self._subscription: Subscription | None = None
        self._consumer: asyncio.Task[None] | None = None
        self._open_lock = asyncio.Lock()
        self._closed = False
        self._dirty = False
        self.last_error: AppError | None = None

    @property
    def conversation(self) -> Conversation:
        return self._conversation

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def pending_events(self) -> int:
        return self._events.qsize()

    @property
    def unread_count(self) -> int:
        return len(unread_from_others(self._messages, self._principal.user_id))

    # -- lifecycle ---------------------------------------------------------

    async def open(self) -> None:
        """Subscribe to changes, fetch the history and become READY.

        Raises FetchError (state FAILED) when the history cannot be loaded;
        calling open() again refetches without a second subscription.
        """
        if self._closed:
            raise SyncClosedError(f"Conversation {self._conversation.id} is closed")

        async with self._open_lock:
            if self._state is SyncState.READY:
                return

            if self._subscription is None:
                subscription = await self._backend.realtime.subscribe(
                    MESSAGES_TABLE,
                    ChangeFilter("conversation_id", self._conversation.id),
                    self.feed,
                )
                if self._closed:
                    await self._release(subscription)
                    return
                self._subscription = subscription

            self._state = SyncState.LOADING
            try:
                fetched = await self._backend.messages.list_messages(self._conversation.id)
            except Exception as exc:
                if self._closed:
                    return
                self._state = SyncState.FAILED
                # the refetch on retry supersedes anything queued so far
                self._drain_events()
                logger.warning(
                    "Failed to load messages for conversation %s: %s",
                    self._conversation.id, exc,
                )
                raise FetchError(
                    f"Could not load messages for conversation {self._conversation.id}"
                ) from exc

            if self._closed:
                return

            # sorted() is stable: equal timestamps keep the backend's order
            self._messages = sorted(fetched, key=lambda m: m.created_at)
            self._state = SyncState.READY
            logger.debug(
                "Conversation %s ready with %d messages",
                self._conversation.id, len(self._messages),
            )

            if self._consumer is None:
                self._consumer = asyncio.create_task(
                    self._consume(), name=f"message-sync-{self._conversation.id}",
                )

        if self._auto_mark_read:
            await self.mark_visible_as_read()

    async def close(self) -> None:
        """Stop receiving events. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._state = SyncState.CLOSED

        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass

        self._drain_events()

        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await self._release(subscription)
        logger.debug("Closed message sync for conversation %s", self._conversation.id)

    async def flush(self) -> None:
        """Wait until every queued event has been applied."""
        if self._consumer is None:
            return
        await self._events.join()

    # -- outbound ------------------------------------------------------------

    async def send(self, text: str) -> Message | None:
        """Optimistically append a message and persist it.

        Returns the confirmed message, or None for blank text. On failure the
        placeholder is removed again and SendError is raised.
        """
        content = text.strip()
        if not content:
            return None
        if self._closed:
            raise SyncClosedError(f"Conversation {self._conversation.id} is closed")
        if self._state is not SyncState.READY:
            raise SendError(f"Conversation {self._conversation.id} is not ready")

        placeholder = Message(
            id=None,
            conversation_id=self._conversation.id,
            sender_id=self._principal.user_id,
            content=content,
            created_at=self._clock.now(),
            read=False,
            client_msg_id=self._id_factory(),
        )
        correlation = placeholder.client_msg_id
        self._messages.append(placeholder)

        try:
            stored = await self._backend.messages_w.insert(placeholder)
        except Exception as exc:
            if not self._closed:
                reconcile.remove_by_correlation(self._messages, correlation)
            logger.warning(
                "Failed to send message in conversation %s: %s",
                self._conversation.id, exc,
            )
            raise SendError("Failed to send message") from exc

        confirmed = replace(stored, client_msg_id=correlation)
        if not self._closed:
            reconcile.confirm(self._messages, correlation, confirmed)
        return confirmed

    async def mark_visible_as_read(self) -> list[UUID]:
        """Request one batched read flip for unread messages from the other side.

        Local flags are left alone; the flip arrives as an update event.
        """
        if self._closed:
            return []
        self._dirty = False
        ids = [
            m.id for m in unread_from_others(self._messages, self._principal.user_id)
            if m.id is not None
        ]
        if not ids:
            return []

        try:
            await self._backend.messages_w.mark_read(ids)
        except Exception as exc:
            self.last_error = ReadReceiptError(
                f"Failed to mark {len(ids)} message(s) read in conversation "
                f"{self._conversation.id}"
            )
            logger.warning("%s: %s", self.last_error.detail, exc)
            return []
        return ids

    # -- inbound ---------------------------------------------------------------

    def feed(self, event: MessageEvent) -> None:
        """Realtime sink: enqueue without blocking the delivering side."""
        if self._closed or self._state is SyncState.FAILED:
            return
        self._events.put_nowait(event)

    def apply(self, event: MessageEvent) -> bool:
        """Apply one event to the resident list. Returns True if it changed."""
        if self._closed:
            return False
        if isinstance(event, MessageInserted):
            return self._on_insert(event.message)
        if isinstance(event, MessageUpdated):
            return self._on_update(event.message)
        logger.debug("Ignoring unknown event %r", event)
        return False

    def _on_insert(self, message: Message) -> bool:
        if message.conversation_id != self._conversation.id or message.id is None:
            return False
        if message.sender_id == self._principal.user_id:
            # own sends are reconciled by send()
            return False
        if reconcile.contains_id(self._messages, message.id):
            return False
        reconcile.insert_ordered(self._messages, message)
        self._dirty = True
        return True

    def _on_update(self, message: Message) -> bool:
        if message.conversation_id != self._conversation.id:
            return False
        return reconcile.apply_update(self._messages, message)

    async def _consume(self) -> None:
        while True:
            event = await self._events.get()
            try:
                changed = self.apply(event)
                if changed and self._dirty and self._auto_mark_read:
                    await self.mark_visible_as_read()
            except Exception:
                logger.exception(
                    "Error applying %s to conversation %s",
                    type(event).__name__, self._conversation.id,
                )
            finally:
                self._events.task_done()

    def _drain_events(self) -> None:
        while not self._events.empty():
            self._events.get_nowait()
            self._events.task_done()

    async def _release(self, subscription: Subscription) -> None:
        try:
            await subscription.unsubscribe()
        except Exception:
            logger.warning(
                "Failed to unsubscribe from conversation %s",
                self._conversation.id, exc_info=True,
            )

"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Sequence
from uuid import UUID

import pytest

from chattr_sync.application.dto.events import (
    MessageEvent,
    MessageInserted,
    PresenceEvent,
    PresenceMeta,
)
from chattr_sync.application.dto.principal import Principal
from chattr_sync.application.ports.realtime import ChangeFilter, MessageEventSink, PresenceEventSink
from chattr_sync.domain.entities.conversation import Conversation
from chattr_sync.domain.entities.message import Message
from chattr_sync.domain.entities.user import User

ALICE_ID = uuid.UUID("00000000-0000-4000-8000-00000000000a")
BOB_ID = uuid.UUID("00000000-0000-4000-8000-00000000000b")
CAROL_ID = uuid.UUID("00000000-0000-4000-8000-00000000000c")

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0, step: timedelta = timedelta(seconds=1)) -> None:
        self._now = start
        self._step = step

    def now(self) -> datetime:
        current = self._now
        self._now += self._step
        return current

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)


@pytest.fixture
def alice() -> Principal:
    return Principal(user_id=ALICE_ID)


@pytest.fixture
def bob() -> Principal:
    return Principal(user_id=BOB_ID)


def make_user(user_id: UUID, display_name: str, avatar_url: str | None = None) -> User:
    return User(id=user_id, display_name=display_name, avatar_url=avatar_url)


USERS = {
    ALICE_ID: make_user(ALICE_ID, "Alice"),
    BOB_ID: make_user(BOB_ID, "bob"),
    CAROL_ID: make_user(CAROL_ID, "Carol", avatar_url="https://cdn.example/carol.png"),
}


def make_conversation(
    first: UUID = ALICE_ID,
    second: UUID = BOB_ID,
    *,
    conversation_id: UUID | None = None,
    created_at: datetime = T0,
    resolve: bool = True,
) -> Conversation:
    return Conversation(
        id=conversation_id or uuid.uuid4(),
        participant_a_id=first,
        participant_b_id=second,
        created_at=created_at,
        participant_a=USERS.get(first) if resolve else None,
        participant_b=USERS.get(second) if resolve else None,
    )


def make_message(
    conversation_id: UUID,
    *,
    sender_id: UUID = BOB_ID,
    content: str = "hello",
    created_at: datetime = T0,
    read: bool = False,
    message_id: UUID | None = None,
) -> Message:
    return Message(
        id=message_id or uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        created_at=created_at,
        read=read,
    )


@dataclass
class FakeProfileReader:
    _profiles: dict[UUID, User] = field(default_factory=lambda: dict(USERS))
    fail: Exception | None = None

    async def get_by_id(self, user_id: UUID) -> User | None:
        return self._profiles.get(user_id)

    async def list_except(self, user_id: UUID) -> list[User]:
        if self.fail:
            raise self.fail
        return sorted(
            (u for u in self._profiles.values() if u.id != user_id),
            key=lambda u: u.display_name,
        )


@dataclass
class FakeConversationReader:
    _store: dict[UUID, Conversation] = field(default_factory=dict)
    fail: Exception | None = None

    async def get_by_id(self, conversation_id: UUID) -> Conversation | None:
        return self._store.get(conversation_id)

    async def list_for_user(self, user_id: UUID) -> list[Conversation]:
        if self.fail:
            raise self.fail
        return [c for c in self._store.values() if c.involves(user_id)]


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader
    created: list[Conversation] = field(default_factory=list)
    fail: Exception | None = None

    async def create(self, participant_a_id: UUID, participant_b_id: UUID) -> Conversation:
        await asyncio.sleep(0)
        if self.fail:
            raise self.fail
        conv = make_conversation(participant_a_id, participant_b_id)
        self._reader._store[conv.id] = conv
        self.created.append(conv)
        return conv


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)
    fail: Exception | None = None
    gate: asyncio.Event | None = None
    calls: int = 0

    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise self.fail
        return sorted(
            (m for m in self._messages if m.conversation_id == conversation_id),
            key=lambda m: m.created_at,
        )


@dataclass
class FakeSubscription:
    table: str
    change_filter: ChangeFilter
    sink: MessageEventSink
    unsubscribe_calls: int = 0

    @property
    def active(self) -> bool:
        return self.unsubscribe_calls == 0

    async def unsubscribe(self) -> None:
        self.unsubscribe_calls += 1


@dataclass
class FakeRealtimeChannel:
    subscriptions: list[FakeSubscription] = field(default_factory=list)

    async def subscribe(
        self, table: str, change_filter: ChangeFilter, sink: MessageEventSink,
    ) -> FakeSubscription:
        sub = FakeSubscription(table, change_filter, sink)
        self.subscriptions.append(sub)
        return sub

    def emit(self, event: MessageEvent) -> None:
        for sub in self.subscriptions:
            if sub.active and sub.change_filter.value == event.message.conversation_id:
                sub.sink(event)


@dataclass
class FakeMessageWriter:
    """Assigns server ids and timestamps; optionally echoes inserts to the realtime channel."""

    _reader: FakeMessageReader
    realtime: FakeRealtimeChannel | None = None
    clock: FakeClock = field(default_factory=lambda: FakeClock(T0 + timedelta(minutes=5)))
    fail_insert: Exception | None = None
    fail_mark_read: Exception | None = None
    gate: asyncio.Event | None = None
    echo_before_return: bool = False
    inserted: list[Message] = field(default_factory=list)
    read_calls: list[list[UUID]] = field(default_factory=list)

    async def insert(self, message: Message) -> Message:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_insert:
            raise self.fail_insert
        stored = replace(message, id=uuid.uuid4(), created_at=self.clock.now(), client_msg_id=None)
        self._reader._messages.append(stored)
        self.inserted.append(stored)
        if self.echo_before_return and self.realtime is not None:
            self.realtime.emit(MessageInserted(stored))
        return stored

    async def mark_read(self, message_ids: Sequence[UUID]) -> list[Message]:
        self.read_calls.append(list(message_ids))
        if self.fail_mark_read:
            raise self.fail_mark_read
        updated = []
        for i, m in enumerate(self._reader._messages):
            if m.id in message_ids and not m.read:
                self._reader._messages[i] = replace(m, read=True)
                updated.append(self._reader._messages[i])
        return updated


@dataclass
class FakePresenceChannel:
    name: str
    sink: PresenceEventSink | None = None
    tracked: list[PresenceMeta] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    fail_subscribe: Exception | None = None
    fail_untrack: Exception | None = None
    fail_unsubscribe: Exception | None = None

    async def subscribe(self, sink: PresenceEventSink) -> None:
        self.calls.append("subscribe")
        if self.fail_subscribe:
            raise self.fail_subscribe
        self.sink = sink

    async def track(self, meta: PresenceMeta) -> None:
        self.calls.append("track")
        self.tracked.append(meta)

    async def untrack(self) -> None:
        self.calls.append("untrack")
        if self.fail_untrack:
            raise self.fail_untrack
        self.tracked.clear()

    async def unsubscribe(self) -> None:
        self.calls.append("unsubscribe")
        if self.fail_unsubscribe:
            raise self.fail_unsubscribe
        self.sink = None

    def emit(self, event: PresenceEvent) -> None:
        if self.sink is not None:
            self.sink(event)


@dataclass
class FakeBackend:
    """In-memory backing service for unit tests."""
    profiles: FakeProfileReader = field(default_factory=FakeProfileReader)
    conversations: FakeConversationReader = field(default_factory=FakeConversationReader)
    conversations_w: FakeConversationWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    realtime: FakeRealtimeChannel = field(default_factory=FakeRealtimeChannel)
    presence_channels: dict[str, FakePresenceChannel] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.conversations_w is None:
            self.conversations_w = FakeConversationWriter(self.conversations)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages, realtime=self.realtime)

    def presence_channel(self, name: str) -> FakePresenceChannel:
        return self.presence_channels.setdefault(name, FakePresenceChannel(name))


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()

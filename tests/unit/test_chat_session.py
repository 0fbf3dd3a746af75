from __future__ import annotations

import pytest

from chattr_sync.application.dto.events import PresenceJoin, PresenceMeta
from chattr_sync.application.exceptions import FetchError, PresenceCleanupError
from chattr_sync.domain.value_objects.enums import OnlineStatus, SyncState
from chattr_sync.services.chat_session import ChatSession
from tests.conftest import (
    ALICE_ID,
    BOB_ID,
    CAROL_ID,
    T0,
    FakeClock,
    make_conversation,
    make_message,
)


@pytest.fixture
def session(alice, backend) -> ChatSession:
    return ChatSession(alice, backend, clock=FakeClock())


@pytest.mark.asyncio
async def test_init_starts_presence_and_loads_directory(session, backend):
    conv = make_conversation(ALICE_ID, BOB_ID)
    backend.conversations._store[conv.id] = conv

    await session.init()

    channel = backend.presence_channels["online_users"]
    assert channel.calls == ["subscribe", "track"]
    assert session.directory.conversations == (conv,)
    await session.teardown()


@pytest.mark.asyncio
async def test_init_tolerates_presence_failure(session, backend):
    backend.presence_channel("online_users").fail_subscribe = RuntimeError("offline")

    await session.init()

    assert session.directory.loaded
    await session.teardown()


@pytest.mark.asyncio
async def test_init_propagates_directory_failure(session, backend):
    backend.conversations.fail = RuntimeError("network")

    with pytest.raises(FetchError):
        await session.init()
    await session.teardown()


@pytest.mark.asyncio
async def test_select_switches_and_closes_previous(session, backend):
    with_bob = make_conversation(ALICE_ID, BOB_ID)
    with_carol = make_conversation(ALICE_ID, CAROL_ID)
    backend.messages._messages.append(make_message(with_bob.id))

    first = await session.select(with_bob)
    second = await session.select(with_carol)

    assert first.is_closed
    assert second.state == SyncState.READY
    assert session.active is second
    assert [s.active for s in backend.realtime.subscriptions] == [False, True]
    await session.teardown()


@pytest.mark.asyncio
async def test_reselecting_active_conversation_reuses_sync(session, backend):
    conv = make_conversation(ALICE_ID, BOB_ID)

    first = await session.select(conv)
    again = await session.select(conv)

    assert first is again
    assert len(backend.realtime.subscriptions) == 1
    await session.teardown()


@pytest.mark.asyncio
async def test_start_conversation_creates_and_selects(session, backend):
    await session.init()

    sync = await session.start_conversation(CAROL_ID)

    assert sync.conversation.pairs_with(ALICE_ID, CAROL_ID)
    assert session.summaries()[0].is_active
    await session.teardown()


@pytest.mark.asyncio
async def test_summaries_reflect_presence(session, backend):
    conv = make_conversation(ALICE_ID, BOB_ID)
    backend.conversations._store[conv.id] = conv
    await session.init()

    session.presence.apply(PresenceJoin(key="k", presences=(PresenceMeta(BOB_ID, T0),)))

    assert session.online_status(conv) == OnlineStatus.ONLINE
    assert session.summaries("b")[0].status == OnlineStatus.ONLINE
    assert session.summaries("x") == []
    await session.teardown()


@pytest.mark.asyncio
async def test_teardown_is_idempotent_and_reports_errors(session, backend):
    await session.init()
    await session.select(make_conversation(ALICE_ID, BOB_ID))
    channel = backend.presence_channels["online_users"]
    channel.fail_untrack = RuntimeError("gone")

    errors = await session.teardown()
    again = await session.teardown()

    assert len(errors) == 1
    assert isinstance(errors[0], PresenceCleanupError)
    assert again == []
    assert session.active is None
    assert channel.calls.count("unsubscribe") == 1

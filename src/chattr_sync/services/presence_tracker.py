"""Session-wide online set fed by a shared presence channel."""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Mapping
from uuid import UUID

from chattr_sync.application.dto.events import (
    PresenceEvent,
    PresenceJoin,
    PresenceLeave,
    PresenceMeta,
    PresenceSync,
)
from chattr_sync.application.dto.principal import Principal
from chattr_sync.application.exceptions import PresenceCleanupError
from chattr_sync.application.ports.clock import Clock, SystemClock
from chattr_sync.application.ports.realtime import PresenceChannel

logger = logging.getLogger(__name__)


def flatten_presence_state(state: Mapping[str, Iterable[PresenceMeta]]) -> frozenset[UUID]:
    return frozenset(meta.user_id for metas in state.values() for meta in metas)


class PresenceTracker:
    """Maintains the set of online user ids for the session.

    Only this tracker's own event handlers write the set; everything else
    reads the frozen snapshot exposed by :attr:`online`.
    """

    def __init__(
        self,
        principal: Principal,
        channel: PresenceChannel,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._principal = principal
        self._channel = channel
        self._clock = clock or SystemClock()
        self._online: frozenset[UUID] = frozenset()
        self._events: asyncio.Queue[PresenceEvent] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._started = False
        self._stopped = False

    @property
    def online(self) -> frozenset[UUID]:
        return self._online

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopped

    def is_online(self, user_id: UUID) -> bool:
        return user_id in self._online

    async def start(self) -> None:
        """Subscribe to the channel, then announce this session as online."""
        if self._started:
            return
        self._started = True
        self._consumer = asyncio.create_task(
            self._consume(), name=f"presence-{self._principal.user_id}",
        )
        await self._channel.subscribe(self.feed)
        if self._stopped:
            return
        await self._channel.track(
            PresenceMeta(user_id=self._principal.user_id, online_at=self._clock.now())
        )
        logger.info("Presence tracked for user %s", self._principal.user_id)

    async def stop(self) -> list[PresenceCleanupError]:
        """Retract own presence and unsubscribe. Never raises; idempotent.

        Returns the cleanup failures, which are also logged.
        """
        if self._stopped:
            return []
        self._stopped = True

        consumer, self._consumer = self._consumer, None
        if consumer is not None:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
        while not self._events.empty():
            self._events.get_nowait()
            self._events.task_done()

        if not self._started:
            return []

        errors: list[PresenceCleanupError] = []
        for step, action in (("untrack", self._channel.untrack), ("unsubscribe", self._channel.unsubscribe)):
            try:
                await action()
            except Exception as exc:
                err = PresenceCleanupError(f"Presence {step} failed: {exc}")
                logger.warning(
                    "Presence %s failed for user %s: %s",
                    step, self._principal.user_id, exc,
                )
                errors.append(err)
        logger.info("Presence stopped for user %s", self._principal.user_id)
        return errors

    async def flush(self) -> None:
        if self._consumer is None:
            return
        await self._events.join()

    def feed(self, event: PresenceEvent) -> None:
        if self._stopped:
            return
        self._events.put_nowait(event)

    def apply(self, event: PresenceEvent) -> None:
        if self._stopped:
            return
        if isinstance(event, PresenceSync):
            # snapshots are authoritative
            self._online = flatten_presence_state(event.state)
        elif isinstance(event, PresenceJoin):
            self._online = self._online | {p.user_id for p in event.presences}
        elif isinstance(event, PresenceLeave):
            self._online = self._online - {p.user_id for p in event.presences}
        else:
            logger.debug("Ignoring unknown presence event %r", event)

    async def _consume(self) -> None:
        while True:
            event = await self._events.get()
            try:
                self.apply(event)
            except Exception:
                logger.exception("Error applying presence event %s", type(event).__name__)
            finally:
                self._events.task_done()

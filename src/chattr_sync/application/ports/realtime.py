from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Protocol

from chattr_sync.application.dto.events import (
    MessageEvent,
    PresenceEvent,
    PresenceMeta,
)

MessageEventSink = Callable[[MessageEvent], None]
PresenceEventSink = Callable[[PresenceEvent], None]


@dataclass(frozen=True, slots=True)
class ChangeFilter:
    """Equality filter scoping a change subscription, e.g. ``conversation_id=eq.<id>``."""

    column: str
    value: Any

    def __str__(self) -> str:
        return f"{self.column}=eq.{self.value}"


class Subscription(Protocol):
    async def unsubscribe(self) -> None:
        """Stop delivery. Safe to call more than once."""
        ...


class RealtimeChannel(Protocol):
    async def subscribe(
        self,
        table: str,
        change_filter: ChangeFilter,
        sink: MessageEventSink,
    ) -> Subscription:
        """Return once the subscription is live; events are delivered to sink afterwards."""
        ...


class PresenceChannel(Protocol):
    async def subscribe(self, sink: PresenceEventSink) -> None: ...

    async def track(self, meta: PresenceMeta) -> None: ...

    async def untrack(self) -> None: ...

    async def unsubscribe(self) -> None: ...

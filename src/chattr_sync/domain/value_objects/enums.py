from __future__ import annotations

from enum import StrEnum


class DeliveryState(StrEnum):
    UNCONFIRMED = "unconfirmed"
    CONFIRMED = "confirmed"


class SyncState(StrEnum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    CLOSED = "closed"


class ChangeType(StrEnum):
    INSERT = "insert"
    UPDATE = "update"


class OnlineStatus(StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"


class ReceiptStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    READ = "read"

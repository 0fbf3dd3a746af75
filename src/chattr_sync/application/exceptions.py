from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class FetchError(AppError):
    """Loading conversations, profiles or messages from the backend failed."""


class SendError(AppError):
    """A message could not be persisted; its optimistic entry was rolled back."""


class ReadReceiptError(AppError):
    pass


class PresenceCleanupError(AppError):
    pass


class ValidationError(AppError):
    pass


class SyncClosedError(AppError):
    pass

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated user identity, read-only for the session lifetime."""

    user_id: UUID
    email: str | None = None

    @property
    def principal_key(self) -> str:
        return f"user:{self.user_id}"

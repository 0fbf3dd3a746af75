from __future__ import annotations

from uuid import UUID

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    POSTGRES_USER: str
    POSTGRES_PASSWORD: str
    POSTGRES_DB: str
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432

    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_RECYCLE: int = 300

    REDIS_URL: str = "redis://localhost:6379/0"

    REALTIME_CHANNEL_PREFIX: str = "realtime"
    PRESENCE_CHANNEL: str = "online_users"
    PRESENCE_SYNC_INTERVAL: float = 30.0
    PRESENCE_TTL: float = 60.0

    AUTO_MARK_READ: bool = True

    LOG_LEVEL: str = "INFO"
    SESSION_USER_ID: UUID | None = None
    SUMMARY_INTERVAL: float = 15.0

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.POSTGRES_DB}"
        )

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()  # type: ignore[call-arg]

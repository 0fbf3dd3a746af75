"""Entrypoint: python -m chattr_sync

Runs a headless session for SESSION_USER_ID and logs the conversation list
with presence until interrupted.
"""
from __future__ import annotations

import asyncio
import logging
from uuid import UUID

from chattr_sync.application.dto.principal import Principal
from chattr_sync.application.exceptions import FetchError
from chattr_sync.config import settings
from chattr_sync.infrastructure.backend import open_backend
from chattr_sync.services.chat_session import ChatSession

logger = logging.getLogger(__name__)


async def run_session(user_id: UUID) -> None:
    async with open_backend(settings) as backend:
        session = ChatSession(
            Principal(user_id=user_id),
            backend,
            presence_channel=settings.PRESENCE_CHANNEL,
            auto_mark_read=settings.AUTO_MARK_READ,
        )
        try:
            try:
                await session.init()
            except FetchError as exc:
                logger.error("Could not load conversations: %s", exc.detail)
            while True:
                for summary in session.summaries():
                    logger.info(
                        "%s  %-24s %s",
                        summary.conversation.id,
                        summary.display_name or "?",
                        summary.status,
                    )
                await asyncio.sleep(settings.SUMMARY_INTERVAL)
        except asyncio.CancelledError:
            pass
        finally:
            await session.teardown()


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if settings.SESSION_USER_ID is None:
        raise SystemExit("SESSION_USER_ID must be set")
    try:
        asyncio.run(run_session(settings.SESSION_USER_ID))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

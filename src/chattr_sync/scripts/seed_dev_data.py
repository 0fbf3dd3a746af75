"""Seed development data: creates the schema, two profiles, a conversation and messages."""
from __future__ import annotations

import asyncio
import logging
import uuid

from chattr_sync.config import settings
from chattr_sync.infrastructure.db.base import Base
from chattr_sync.infrastructure.db.models import MessageModel, ProfileModel
from chattr_sync.infrastructure.db.repositories.conversation import ConversationWriterRepo
from chattr_sync.infrastructure.db.session import create_engine, create_sessionmaker

logger = logging.getLogger(__name__)

ALICE_ID = uuid.UUID("00000000-0000-4000-8000-00000000000a")
BOB_ID = uuid.UUID("00000000-0000-4000-8000-00000000000b")


async def seed() -> None:
    engine = create_engine(settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sessions = create_sessionmaker(engine)
    async with sessions() as session:
        for user_id, username in ((ALICE_ID, "alice"), (BOB_ID, "bob")):
            if await session.get(ProfileModel, user_id) is None:
                session.add(ProfileModel(id=user_id, username=username))
        await session.commit()

    conv = await ConversationWriterRepo(sessions).create(ALICE_ID, BOB_ID)

    messages_data = [
        (ALICE_ID, "hi"),
        (BOB_ID, "hey! how are you?"),
        (ALICE_ID, "good, you?"),
    ]
    for sender_id, content in messages_data:
        # one transaction each so now() differs per row
        async with sessions() as session:
            session.add(
                MessageModel(conversation_id=conv.id, sender_id=sender_id, content=content)
            )
            await session.commit()

    await engine.dispose()
    logger.info("Seeded conversation %s with %d messages", conv.id, len(messages_data))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, func, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chattr_sync.infrastructure.db.base import Base
from chattr_sync.infrastructure.db.models.profile import ProfileModel


class ConversationModel(Base):
    __tablename__ = "conversations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    user1_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    user2_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("now()"),
    )

    user1: Mapped[ProfileModel] = relationship(foreign_keys=[user1_id], lazy="selectin")
    user2: Mapped[ProfileModel] = relationship(foreign_keys=[user2_id], lazy="selectin")
    messages = relationship("MessageModel", back_populates="conversation")

    __table_args__ = (
        CheckConstraint("user1_id <> user2_id", name="ck_conversations_distinct_users"),
        Index("ix_conversations_user1", "user1_id"),
        Index("ix_conversations_user2", "user2_id"),
    )


# one row per unordered pair
Index(
    "uq_conversations_pair",
    func.least(ConversationModel.user1_id, ConversationModel.user2_id),
    func.greatest(ConversationModel.user1_id, ConversationModel.user2_id),
    unique=True,
)

"""Import all models so Base.metadata sees every table."""
from chattr_sync.infrastructure.db.models.conversation import ConversationModel
from chattr_sync.infrastructure.db.models.message import MessageModel
from chattr_sync.infrastructure.db.models.profile import ProfileModel

__all__ = [
    "ConversationModel",
    "MessageModel",
    "ProfileModel",
]

from __future__ import annotations

from chattr_sync.domain.entities.user import User
from chattr_sync.infrastructure.db.models.profile import ProfileModel


def model_to_entity(model: ProfileModel) -> User:
    return User(
        id=model.id,
        display_name=model.username,
        avatar_url=model.avatar_url,
        bio=model.bio,
    )

from __future__ import annotations

import logging
from typing import Any, Dict

from models.user import User
from services.auth_service import revoke_user_tokens
from services.errors import NotFoundError

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "phone")


class UserService:
    """Profile reads/updates and self-service account deactivation."""

    def __init__(self, storage):
        self.storage = storage

    def _live_user(self, session, user_id: str) -> User:
        user = session.get(User, user_id, populate_existing=True)
        if not user or user.is_deleted:
            raise NotFoundError("user not found")
        return user

    def get_profile(self, user_id: str) -> User:
        with self.storage.transaction() as session:
            return self._live_user(session, user_id)

    def update_profile(self, user_id: str, data: Dict[str, Any]) -> User:
        with self.storage.transaction() as session:
            user = self._live_user(session, user_id)
            for field in PROFILE_FIELDS:
                if field in data:
                    setattr(user, field, data[field])
            session.flush()
            return user

    def deactivate(self, user_id: str) -> None:
        """Soft-delete the account and revoke every refresh token it holds."""
        with self.storage.transaction() as session:
            user = self._live_user(session, user_id)
            user.is_active = False
            user.mark_deleted()
            revoked = revoke_user_tokens(session, user.id)
        logger.info("Deactivated user %s (%s refresh tokens revoked)", user_id, revoked)

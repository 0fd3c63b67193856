"""User administration — list users, change roles, delete accounts."""

import logging
import uuid

from streamvault.entities import ROLES, User
from streamvault.errors import ConflictError, NotFoundError, ValidationError
from streamvault.stores.base import DataStore

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, store: DataStore):
        self.store = store

    async def list_users(self) -> list[User]:
        return await self.store.get_all_users()

    async def update_role(self, user_id: uuid.UUID, role: str, acting_user: User) -> None:
        if role not in ROLES:
            raise ValidationError(f"Invalid role. Must be one of: {', '.join(ROLES)}")
        if user_id == acting_user.id and role != acting_user.role:
            raise ValidationError("Admins cannot change their own role")
        if not await self.store.update_user_role(user_id, role):
            raise NotFoundError("User not found")
        logger.info("User %s role set to %s by %s", user_id, role, acting_user.id)

    async def delete_user(self, user_id: uuid.UUID, acting_user: User) -> None:
        if user_id == acting_user.id:
            raise ValidationError("Admins cannot delete their own account")
        if await self.store.get_all_videos(owner_id=user_id):
            raise ConflictError("User still owns videos; delete them first")
        if not await self.store.delete_user(user_id):
            raise NotFoundError("User not found")
        logger.info("User %s deleted by %s", user_id, acting_user.id)

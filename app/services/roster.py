"""Group creation and admin/student membership."""
from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Iterable, Optional

from beanie import PydanticObjectId

from app.errors import AuthorizationError, NotFoundError, ValidationError
from app.models.group import Group, GroupCreate
from app.models.user import User

if TYPE_CHECKING:
    from app.services.notifier import NotificationDispatcher

logger = logging.getLogger(__name__)

PLACEHOLDER_EMAIL_DOMAIN = "placeholder.com"
# bcrypt never produces this, so placeholder accounts cannot log in
UNUSABLE_PASSWORD = "!"


def safe_object_id(value: str | None) -> PydanticObjectId | None:
    if not value:
        return None
    try:
        return PydanticObjectId(value)
    except Exception:
        return None


class RosterService:
    def __init__(self, dispatcher: Optional["NotificationDispatcher"] = None):
        self.dispatcher = dispatcher

    def _changed(self, group_id: str) -> None:
        if self.dispatcher is not None:
            self.dispatcher.notify_group_changed(group_id)

    async def create_group(self, data: GroupCreate, owner_id: str) -> Group:
        group = Group(
            name=data.name.strip(),
            description=data.description,
            admins=[owner_id],
            students=[],
        )
        await group.insert()
        logger.info("Group %s created by %s", group.id, owner_id)
        return group

    async def list_groups(self, user_id: str) -> list[Group]:
        return (
            await Group.find({"$or": [{"admins": user_id}, {"students": user_id}]})
            .sort("-created_at")
            .to_list()
        )

    async def get_group(self, group_id: str) -> Group:
        oid = safe_object_id(group_id)
        if not oid:
            raise NotFoundError("Invalid Group ID")
        group = await Group.get(oid)
        if not group:
            raise NotFoundError("Group not found")
        return group

    async def require_member(self, group_id: str, user_id: str) -> Group:
        group = await self.get_group(group_id)
        if not group.is_member(user_id):
            raise AuthorizationError("Not a member of this group")
        return group

    async def require_admin(self, group_id: str, user_id: str) -> Group:
        group = await self.get_group(group_id)
        if not group.is_admin(user_id):
            raise AuthorizationError("Not authorized to manage this group")
        return group

    async def get_users(self, user_ids: Iterable[str]) -> list[User]:
        object_ids = [oid for oid in (safe_object_id(u) for u in user_ids) if oid]
        if not object_ids:
            return []
        return await User.find({"_id": {"$in": object_ids}}).to_list()

    async def add_student(self, group_id: str, name: str) -> User:
        name = (name or "").strip()
        if not name:
            raise ValidationError("Name is required")
        group = await self.get_group(group_id)
        student = User(
            name=name,
            email=f"student_{uuid.uuid4().hex}@{PLACEHOLDER_EMAIL_DOMAIN}",
            hashed_password=UNUSABLE_PASSWORD,
            is_placeholder=True,
        )
        await student.insert()
        await group.update(
            {"$addToSet": {"students": str(student.id)}, "$set": {"updated_at": datetime.utcnow()}}
        )
        self._changed(group_id)
        return student

    async def remove_student(self, group_id: str, student_id: str) -> None:
        # attendance history for the student is kept
        group = await self.get_group(group_id)
        await group.update({"$pull": {"students": student_id}, "$set": {"updated_at": datetime.utcnow()}})
        self._changed(group_id)

    async def add_admin(self, group_id: str, email: str) -> User:
        group = await self.get_group(group_id)
        user = await User.find_one(User.email == email)
        if not user or user.is_placeholder:
            raise NotFoundError("User not found")
        await group.update({"$addToSet": {"admins": str(user.id)}, "$set": {"updated_at": datetime.utcnow()}})
        self._changed(group_id)
        return user

    async def remove_admin(self, group_id: str, user_id: str) -> None:
        group = await self.get_group(group_id)
        if user_id not in group.admins:
            raise NotFoundError("User is not an admin of this group")
        if len(group.admins) <= 1:
            raise ValidationError("Cannot remove the last admin")
        await group.update({"$pull": {"admins": user_id}, "$set": {"updated_at": datetime.utcnow()}})
        self._changed(group_id)

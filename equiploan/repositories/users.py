# equiploan/repositories/users.py
from typing import List, Optional, Sequence

from beanie import PydanticObjectId
from pymongo import DESCENDING

from equiploan.models.activity_log import ActivityLog
from equiploan.models.enum import UserRole
from equiploan.models.user import User
from equiploan.repositories.base import ActivityLogRepository, UserRepository


class MongoUserRepository(UserRepository):
    async def find_by_id(self, user_id: PydanticObjectId, session=None) -> Optional[User]:
        return await User.find_one({"_id": user_id}, session=session)

    async def find_by_roles(self, roles: Sequence[UserRole], session=None) -> List[User]:
        query = {"role": {"$in": [r.value for r in roles]}, "disabled": False}
        return await User.find(query, session=session).to_list()

    async def count(self, role: Optional[UserRole] = None, session=None) -> int:
        query = {"role": role.value} if role else {}
        return await User.find(query, session=session).count()

    async def delete(self, user_id: PydanticObjectId, session=None) -> None:
        await User.get_motor_collection().delete_one({"_id": user_id}, session=session)


class MongoActivityLogRepository(ActivityLogRepository):
    async def insert(self, entry: ActivityLog) -> ActivityLog:
        await entry.insert()
        return entry

    async def list(self, skip: int = 0, limit: int = 50) -> List[ActivityLog]:
        return await ActivityLog.find_all().sort([("created_at", DESCENDING)]).skip(skip).limit(limit).to_list()

    async def count(self) -> int:
        return await ActivityLog.find_all().count()

# equiploan/repositories/notifications.py
from typing import List, Optional

from beanie import PydanticObjectId
from pymongo import DESCENDING

from equiploan.models.notification import Notification
from equiploan.repositories.base import NotificationRepository


class MongoNotificationRepository(NotificationRepository):
    async def insert_many(self, notifications: List[Notification], session=None) -> List[Notification]:
        if not notifications:
            return []
        result = await Notification.insert_many(notifications, session=session)
        for notification, inserted_id in zip(notifications, result.inserted_ids):
            notification.id = PydanticObjectId(inserted_id)
        return notifications

    async def list_for_user(self, user_id: PydanticObjectId, limit: int = 50) -> List[Notification]:
        return await Notification.find({"user_id": user_id}).sort([("created_at", DESCENDING)]).limit(limit).to_list()

    async def mark_read(self, notification_id: PydanticObjectId, user_id: PydanticObjectId) -> Optional[Notification]:
        notification = await Notification.find_one({"_id": notification_id, "user_id": user_id})
        if notification is None:
            return None
        if not notification.is_read:
            notification.is_read = True
            await notification.save()
        return notification

    async def mark_all_read(self, user_id: PydanticObjectId) -> int:
        result = await Notification.get_motor_collection().update_many(
            {"user_id": user_id, "is_read": False}, {"$set": {"is_read": True}}
        )
        return result.modified_count

    async def unread_count(self, user_id: PydanticObjectId) -> int:
        return await Notification.find({"user_id": user_id, "is_read": False}).count()

    async def delete(self, notification_id: PydanticObjectId, user_id: PydanticObjectId) -> bool:
        result = await Notification.get_motor_collection().delete_one({"_id": notification_id, "user_id": user_id})
        return result.deleted_count > 0

    async def delete_for_borrowings(self, borrowing_ids: List[PydanticObjectId], session=None) -> int:
        if not borrowing_ids:
            return 0
        result = await Notification.get_motor_collection().delete_many(
            {"related_borrowing_id": {"$in": list(borrowing_ids)}}, session=session
        )
        return result.deleted_count

    async def exists(self, user_id: PydanticObjectId, related_borrowing_id: PydanticObjectId, title: str) -> bool:
        found = await Notification.find_one(
            {"user_id": user_id, "related_borrowing_id": related_borrowing_id, "title": title}
        )
        return found is not None

    async def delete_for_user(self, user_id: PydanticObjectId, session=None) -> int:
        result = await Notification.get_motor_collection().delete_many({"user_id": user_id}, session=session)
        return result.deleted_count

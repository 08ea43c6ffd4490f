# equiploan/models/notification.py
from typing import Optional
from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING, DESCENDING

from .enum import NotificationType
from .user import utc_now


class Notification(Document):
    user_id: PydanticObjectId
    title: str
    message: str
    type: NotificationType = Field(default=NotificationType.SYSTEM)
    path: Optional[str] = None
    related_borrowing_id: Optional[PydanticObjectId] = None
    is_read: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "notifications"
        indexes = [
            IndexModel([("user_id", ASCENDING), ("created_at", DESCENDING)], name="notification_user_created_index"),
            IndexModel([("related_borrowing_id", ASCENDING)], name="notification_borrowing_index", sparse=True),
        ]

    class Response(BaseModel):
        id: str = Field(..., alias="_id")
        user_id: str
        title: str
        message: str
        type: NotificationType
        path: Optional[str] = None
        related_borrowing_id: Optional[str] = None
        is_read: bool
        created_at: datetime

        class Config:
            from_attributes = True
            populate_by_name = True
            use_enum_values = True


class NotificationPayload(BaseModel):
    """What a caller hands to the notification sink; recipient is given separately."""
    title: str
    message: str
    type: NotificationType = NotificationType.SYSTEM
    path: Optional[str] = None
    related_borrowing_id: Optional[PydanticObjectId] = None

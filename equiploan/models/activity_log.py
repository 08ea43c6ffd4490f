# equiploan/models/activity_log.py
from typing import Optional, Dict, Any, List
from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, DESCENDING

from .enum import EntityType
from .user import utc_now


class ActivityLog(Document):
    user_id: Optional[PydanticObjectId] = None
    action: str
    entity_type: EntityType = Field(default=EntityType.SYSTEM)
    entity_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "activity_logs"
        indexes = [
            IndexModel([("created_at", DESCENDING)], name="activity_created_at_index"),
        ]

    class Response(BaseModel):
        id: str = Field(..., alias="_id")
        user_id: Optional[str] = None
        action: str
        entity_type: EntityType
        entity_id: Optional[str] = None
        details: Optional[Dict[str, Any]] = None
        ip_address: Optional[str] = None
        created_at: datetime

        class Config:
            from_attributes = True
            populate_by_name = True
            use_enum_values = True


class ActivityLogPage(BaseModel):
    logs: List[ActivityLog.Response]
    page: int
    limit: int
    total: int
    pages: int

# equiploan/services/activity.py
from typing import Any, Dict, Optional

from beanie import PydanticObjectId
from loguru import logger

from equiploan.models.activity_log import ActivityLog
from equiploan.models.enum import EntityType
from equiploan.repositories.base import ActivityLogRepository


class ActivityRecorder:
    """Audit trail writer. A failed write is logged and never fails the caller."""

    def __init__(self, logs: ActivityLogRepository):
        self.logs = logs

    async def record(
        self,
        user_id: Optional[PydanticObjectId],
        action: str,
        entity_type: EntityType = EntityType.SYSTEM,
        entity_id: Optional[Any] = None,
        details: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[ActivityLog]:
        entry = ActivityLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        try:
            return await self.logs.insert(entry)
        except Exception as e:
            logger.error(f"Failed to record activity '{action}' for {entity_type.value} {entity_id}: {e}")
            return None

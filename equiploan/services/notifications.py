# equiploan/services/notifications.py
"""
Notification fan-out for the lending workflow.

A transition collects what it wants to tell people in an ``Outbox``. The
notification records are written inside the transaction (``persist``);
websocket pushes only happen once it has committed (``flush``), so a
rolled back transition never reaches anyone.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from beanie import PydanticObjectId
from loguru import logger

from equiploan.core.websocket_manager import ConnectionRegistry
from equiploan.models.enum import UserRole
from equiploan.models.notification import Notification, NotificationPayload
from equiploan.repositories.base import NotificationRepository, UserRepository


class Outbox:
    def __init__(self):
        self.notifications: List[Notification] = []
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def notify_user(self, user_id: PydanticObjectId, payload: NotificationPayload) -> Notification:
        notification = Notification(user_id=user_id, **payload.model_dump())
        self.notifications.append(notification)
        return notification

    def broadcast(self, event: str, data: Dict[str, Any]) -> None:
        self.events.append((event, data))

    def recipients(self) -> List[PydanticObjectId]:
        return [n.user_id for n in self.notifications]

    def __len__(self) -> int:
        return len(self.notifications) + len(self.events)


def notification_message(notification: Notification) -> Dict[str, Any]:
    """What a connected client receives for one notification."""
    return {
        "id": str(notification.id) if notification.id else None,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type.value,
        "path": notification.path,
        "related_borrowing_id": str(notification.related_borrowing_id) if notification.related_borrowing_id else None,
        "created_at": notification.created_at.isoformat(),
    }


class NotificationDispatcher:
    def __init__(self, notifications: NotificationRepository, users: UserRepository, registry: ConnectionRegistry):
        self.notifications = notifications
        self.users = users
        self.registry = registry

    def notify_user(self, outbox: Outbox, user_id: PydanticObjectId, payload: NotificationPayload) -> Notification:
        return outbox.notify_user(user_id, payload)

    async def notify_roles(
        self, outbox: Outbox, roles: Sequence[UserRole], payload: NotificationPayload, session=None
    ) -> List[Notification]:
        recipients = await self.users.find_by_roles(roles, session=session)
        return [outbox.notify_user(user.id, payload) for user in recipients]

    def broadcast(self, outbox: Outbox, event: str, data: Dict[str, Any]) -> None:
        outbox.broadcast(event, data)

    async def persist(self, outbox: Outbox, session=None) -> None:
        if outbox.notifications:
            await self.notifications.insert_many(outbox.notifications, session=session)

    async def flush(self, outbox: Outbox) -> None:
        """Best-effort delivery after commit. Failures are logged, never raised."""
        for notification in outbox.notifications:
            try:
                await self.registry.send_to_user(
                    str(notification.user_id), "notification", notification_message(notification)
                )
            except Exception as e:
                logger.error(f"Failed to push notification to user {notification.user_id}: {e}")
        for event, data in outbox.events:
            try:
                await self.registry.broadcast(event, data)
            except Exception as e:
                logger.error(f"Failed to broadcast '{event}': {e}")

    async def send(self, outbox: Outbox, session=None) -> None:
        """Persist and deliver in one go, for callers outside a transaction."""
        await self.persist(outbox, session=session)
        await self.flush(outbox)


def borrowing_event(borrowing, item_name: Optional[str] = None) -> Dict[str, Any]:
    data = {
        "borrowing_id": str(borrowing.id),
        "user_id": str(borrowing.user_id),
        "item_id": str(borrowing.item_id),
        "quantity": borrowing.quantity,
        "status": borrowing.status.value,
    }
    if item_name is not None:
        data["item_name"] = item_name
    return data

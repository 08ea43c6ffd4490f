# equiploan/services/accounts.py
from typing import Any, Dict, Optional

from beanie import PydanticObjectId
from loguru import logger

from equiploan.core.availability import release
from equiploan.core.errors import NotFoundError, UnauthorizedRoleError
from equiploan.models.enum import BorrowingStatus, EntityType, UserRole
from equiploan.models.user import User, utc_now
from equiploan.repositories.base import (
    BorrowingRepository,
    ItemRepository,
    NotificationRepository,
    TransactionManager,
    UserRepository,
)
from equiploan.services.activity import ActivityRecorder
from equiploan.services.inventory import item_event
from equiploan.services.notifications import NotificationDispatcher, Outbox

# Units of these borrowings are out of stock until the return is approved
HOLDING_STATUSES = (BorrowingStatus.APPROVED, BorrowingStatus.BORROWED, BorrowingStatus.RETURNING)


class AccountService:
    def __init__(
        self,
        users: UserRepository,
        items: ItemRepository,
        borrowings: BorrowingRepository,
        notifications: NotificationRepository,
        transactions: TransactionManager,
        notifier: NotificationDispatcher,
        activity: ActivityRecorder,
    ):
        self.users = users
        self.items = items
        self.borrowings = borrowings
        self.notifications = notifications
        self.transactions = transactions
        self.notifier = notifier
        self.activity = activity

    async def delete(
        self, user_id: PydanticObjectId, actor: User, audit: Optional[Dict[str, Any]] = None
    ) -> User:
        """
        Remove a user together with everything that only makes sense with them around:
        their notifications, their borrowings (and notifications about those), with units
        still out on those borrowings going back into stock. Borrowings they approved for
        other people stay, with the approver reference cleared.
        """
        if actor.role != UserRole.ADMIN:
            raise UnauthorizedRoleError("Only admins can delete users")
        if user_id == actor.id:
            raise UnauthorizedRoleError("Admins cannot delete themselves.")

        outbox = Outbox()
        async with self.transactions.transaction() as session:
            user = await self.users.find_by_id(user_id, session=session)
            if user is None:
                raise NotFoundError(f"User with ID '{user_id}' not found")
            if user.role == UserRole.ADMIN and await self.users.count(role=UserRole.ADMIN, session=session) <= 1:
                raise UnauthorizedRoleError("Cannot delete the last admin.")

            owned = await self.borrowings.find_for_user(user.id, session=session)
            for borrowing in owned:
                if borrowing.status not in HOLDING_STATUSES:
                    continue
                item = await self.items.find_by_id(borrowing.item_id, session=session, for_update=True)
                if item is None:
                    continue
                item.available_quantity = release(item.available_quantity, item.quantity, borrowing.quantity)
                item.updated_at = utc_now()
                await self.items.update(item, session=session)
                self.notifier.broadcast(outbox, "item:updated", item_event(item))

            removed_notifications = await self.notifications.delete_for_borrowings(
                [b.id for b in owned], session=session
            )
            removed_notifications += await self.notifications.delete_for_user(user.id, session=session)
            removed_borrowings = await self.borrowings.delete_for_user(user.id, session=session)
            cleared = await self.borrowings.clear_user_references(user.id, session=session)
            await self.users.delete(user.id, session=session)

        logger.info(
            f"User '{user.username}' ({user.id}) deleted by '{actor.username}': {removed_borrowings} borrowing(s), "
            f"{removed_notifications} notification(s) removed, {cleared} approver reference(s) cleared"
        )
        await self.notifier.flush(outbox)
        await self.activity.record(
            actor.id, f"Deleted user {user.username}", EntityType.USER, user.id,
            {"borrowings_removed": removed_borrowings, "notifications_removed": removed_notifications},
            **(audit or {}),
        )
        return user

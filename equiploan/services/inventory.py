# equiploan/services/inventory.py
from typing import Any, Dict, List, Optional

from beanie import PydanticObjectId
from loguru import logger

from equiploan.core.availability import adjusted_available
from equiploan.core.errors import DuplicateError, InvalidRequestError, NotFoundError, UnauthorizedRoleError
from equiploan.core.utils import parse_object_id
from equiploan.models.enum import EntityType, UserRole
from equiploan.models.item import Item
from equiploan.models.user import User, utc_now
from equiploan.repositories.base import (
    BorrowingRepository,
    CategoryRepository,
    ItemRepository,
    NotificationRepository,
    TransactionManager,
)
from equiploan.services.activity import ActivityRecorder
from equiploan.services.notifications import NotificationDispatcher, Outbox

STAFF_ROLES = (UserRole.ADMIN, UserRole.OFFICER)


def item_event(item: Item) -> Dict[str, Any]:
    return {
        "item_id": str(item.id),
        "name": item.name,
        "quantity": item.quantity,
        "available_quantity": item.available_quantity,
        "is_available": item.is_available,
    }


class InventoryLedger:
    """Owns item records and the total/available stock counters outside the borrowing workflow."""

    def __init__(
        self,
        items: ItemRepository,
        categories: CategoryRepository,
        borrowings: BorrowingRepository,
        notifications: NotificationRepository,
        transactions: TransactionManager,
        notifier: NotificationDispatcher,
        activity: ActivityRecorder,
    ):
        self.items = items
        self.categories = categories
        self.borrowings = borrowings
        self.notifications = notifications
        self.transactions = transactions
        self.notifier = notifier
        self.activity = activity

    @staticmethod
    def _require_roles(actor: User, roles, action: str) -> None:
        if actor.role not in roles:
            logger.warning(f"User '{actor.username}' ({actor.role.value}) refused: cannot {action}.")
            raise UnauthorizedRoleError(f"Not authorized to {action}")

    async def _ensure_category(self, category_id: PydanticObjectId, session=None) -> None:
        if await self.categories.find_by_id(category_id, session=session) is None:
            raise NotFoundError("Category not found")

    async def _ensure_unique_serial(self, serial_number: Optional[str], item_id=None, session=None) -> None:
        if not serial_number:
            return
        existing = await self.items.find_by_serial(serial_number, session=session)
        if existing is not None and existing.id != item_id:
            raise DuplicateError("Serial number already exists")

    async def get(self, item_id: PydanticObjectId, session=None) -> Item:
        item = await self.items.find_by_id(item_id, session=session)
        if item is None:
            raise NotFoundError("Item not found")
        return item

    async def list(
        self,
        name: Optional[str] = None,
        category_id: Optional[PydanticObjectId] = None,
        available_only: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Item]:
        return await self.items.list(
            name=name, category_id=category_id, available_only=available_only, skip=skip, limit=limit
        )

    async def create(self, data: Item.Create, actor: User, audit: Optional[Dict[str, Any]] = None) -> Item:
        self._require_roles(actor, STAFF_ROLES, "create items")
        category_id = parse_object_id(data.category_id, "category ID")

        outbox = Outbox()
        async with self.transactions.transaction() as session:
            await self._ensure_category(category_id, session=session)
            await self._ensure_unique_serial(data.serial_number, session=session)

            item = Item(
                **data.model_dump(exclude={"category_id"}),
                category_id=category_id,
                available_quantity=data.quantity,
                created_by=actor.id,
            )
            await self.items.insert(item, session=session)
            self.notifier.broadcast(outbox, "item:created", item_event(item))

        logger.info(f"Item '{item.name}' ({item.id}) created by '{actor.username}' with {item.quantity} unit(s)")
        await self.notifier.flush(outbox)
        await self.activity.record(actor.id, f"Created item {item.name}", EntityType.ITEM, item.id,
                                   {"quantity": item.quantity}, **(audit or {}))
        return item

    async def update(
        self, item_id: PydanticObjectId, data: Item.Update, actor: User, audit: Optional[Dict[str, Any]] = None
    ) -> Item:
        """Metadata edit; a new ``quantity`` goes through the same clamped adjustment as ``adjust_total_quantity``."""
        self._require_roles(actor, STAFF_ROLES, "update items")
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        new_quantity = changes.pop("quantity", None)
        if "category_id" in changes:
            changes["category_id"] = parse_object_id(changes["category_id"], "category ID")

        outbox = Outbox()
        async with self.transactions.transaction() as session:
            item = await self.items.find_by_id(item_id, session=session, for_update=new_quantity is not None)
            if item is None:
                raise NotFoundError("Item not found")
            if changes.get("category_id"):
                await self._ensure_category(changes["category_id"], session=session)
            if changes.get("serial_number"):
                await self._ensure_unique_serial(changes["serial_number"], item_id=item.id, session=session)

            for field, value in changes.items():
                setattr(item, field, value)
            if new_quantity is not None:
                self._apply_total(item, new_quantity)
            item.updated_at = utc_now()
            await self.items.update(item, session=session)
            self.notifier.broadcast(outbox, "item:updated", item_event(item))

        logger.info(f"Item '{item.name}' ({item.id}) updated by '{actor.username}': {sorted(data.model_fields_set)}")
        await self.notifier.flush(outbox)
        await self.activity.record(actor.id, f"Updated item {item.name}", EntityType.ITEM, item.id,
                                   {"fields": sorted(data.model_fields_set)}, **(audit or {}))
        return item

    async def adjust_total_quantity(
        self, item_id: PydanticObjectId, new_quantity: int, actor: User, audit: Optional[Dict[str, Any]] = None
    ) -> Item:
        self._require_roles(actor, STAFF_ROLES, "adjust item stock")

        outbox = Outbox()
        async with self.transactions.transaction() as session:
            item = await self.items.find_by_id(item_id, session=session, for_update=True)
            if item is None:
                raise NotFoundError("Item not found")
            old_quantity, old_available = item.quantity, item.available_quantity
            self._apply_total(item, new_quantity)
            item.updated_at = utc_now()
            await self.items.update(item, session=session)
            self.notifier.broadcast(outbox, "item:updated", item_event(item))

        logger.info(
            f"Stock of '{item.name}' adjusted by '{actor.username}': "
            f"total {old_quantity} -> {item.quantity}, available {old_available} -> {item.available_quantity}"
        )
        await self.notifier.flush(outbox)
        await self.activity.record(actor.id, f"Adjusted stock of {item.name}", EntityType.ITEM, item.id,
                                   {"old_quantity": old_quantity, "new_quantity": item.quantity},
                                   **(audit or {}))
        return item

    @staticmethod
    def _apply_total(item: Item, new_quantity: int) -> None:
        if new_quantity < 0:
            raise InvalidRequestError("Total quantity cannot be negative")
        item.available_quantity = adjusted_available(item.available_quantity, item.quantity, new_quantity)
        item.quantity = new_quantity

    async def delete(self, item_id: PydanticObjectId, actor: User, audit: Optional[Dict[str, Any]] = None) -> None:
        """Hard delete: notifications about the item's borrowings, the borrowings, then the item."""
        self._require_roles(actor, (UserRole.ADMIN,), "delete items")

        outbox = Outbox()
        async with self.transactions.transaction() as session:
            item = await self.items.find_by_id(item_id, session=session, for_update=True)
            if item is None:
                raise NotFoundError("Item not found")
            borrowing_ids = await self.borrowings.ids_for_item(item.id, session=session)
            removed_notifications = await self.notifications.delete_for_borrowings(borrowing_ids, session=session)
            removed_borrowings = await self.borrowings.delete_for_item(item.id, session=session)
            await self.items.delete(item.id, session=session)
            self.notifier.broadcast(outbox, "item:deleted", {"item_id": str(item.id), "name": item.name})

        logger.info(
            f"Item '{item.name}' ({item.id}) deleted by '{actor.username}' with "
            f"{removed_borrowings} borrowing(s) and {removed_notifications} notification(s)"
        )
        await self.notifier.flush(outbox)
        await self.activity.record(actor.id, f"Deleted item {item.name}", EntityType.ITEM, item.id,
                                   {"borrowings_removed": removed_borrowings}, **(audit or {}))

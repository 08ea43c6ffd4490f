# equiploan/repositories/base.py
"""
Storage ports used by the lending services.

Every method takes an optional ``session``; pass the handle yielded by
``TransactionManager.transaction()`` to take part in that transaction.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, AsyncContextManager, Dict, List, Optional, Sequence

from beanie import PydanticObjectId

from equiploan.models.activity_log import ActivityLog
from equiploan.models.borrowing import Borrowing
from equiploan.models.category import Category
from equiploan.models.enum import BorrowingStatus, UserRole
from equiploan.models.item import Item
from equiploan.models.notification import Notification
from equiploan.models.user import User


class TransactionManager(ABC):
    @abstractmethod
    def transaction(self) -> AsyncContextManager[Any]:
        """Open a transaction; everything written with the yielded session commits or aborts together."""


class ItemRepository(ABC):
    @abstractmethod
    async def find_by_id(self, item_id: PydanticObjectId, session=None, for_update: bool = False) -> Optional[Item]:
        """With ``for_update`` the item is write-locked for the rest of the transaction."""

    @abstractmethod
    async def find_by_serial(self, serial_number: str, session=None) -> Optional[Item]: ...

    @abstractmethod
    async def list(
        self,
        name: Optional[str] = None,
        category_id: Optional[PydanticObjectId] = None,
        available_only: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Item]: ...

    @abstractmethod
    async def count(self) -> int: ...

    @abstractmethod
    async def exists_in_category(self, category_id: PydanticObjectId) -> bool: ...

    @abstractmethod
    async def insert(self, item: Item, session=None) -> Item: ...

    @abstractmethod
    async def update(self, item: Item, session=None) -> Item: ...

    @abstractmethod
    async def delete(self, item_id: PydanticObjectId, session=None) -> None: ...


class CategoryRepository(ABC):
    @abstractmethod
    async def find_by_id(self, category_id: PydanticObjectId, session=None) -> Optional[Category]: ...


class BorrowingRepository(ABC):
    @abstractmethod
    async def find_by_id(self, borrowing_id: PydanticObjectId, session=None) -> Optional[Borrowing]: ...

    @abstractmethod
    async def find_pending(
        self,
        item_id: PydanticObjectId,
        excluding_id: Optional[PydanticObjectId] = None,
        quantity_above: Optional[int] = None,
        session=None,
    ) -> List[Borrowing]:
        """Pending requests for an item, optionally only those asking for more than ``quantity_above``."""

    @abstractmethod
    async def list(
        self,
        user_id: Optional[PydanticObjectId] = None,
        item_id: Optional[PydanticObjectId] = None,
        statuses: Optional[Sequence[BorrowingStatus]] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Borrowing]:
        """Newest first."""

    @abstractmethod
    async def find_overdue(self, now: datetime, skip: int = 0, limit: int = 0) -> List[Borrowing]:
        """Borrowed and past the expected return date, most overdue first. ``limit=0`` means no limit."""

    @abstractmethod
    async def count(self, statuses: Optional[Sequence[BorrowingStatus]] = None) -> int: ...

    @abstractmethod
    async def count_overdue(self, now: datetime) -> int: ...

    @abstractmethod
    async def count_by_status(self) -> Dict[BorrowingStatus, int]: ...

    @abstractmethod
    async def count_by_month(self) -> List[Dict[str, int]]:
        """``[{"year": 2024, "month": 5, "count": 3}, ...]`` in chronological order."""

    @abstractmethod
    async def ids_for_item(self, item_id: PydanticObjectId, session=None) -> List[PydanticObjectId]: ...

    @abstractmethod
    async def insert(self, borrowing: Borrowing, session=None) -> Borrowing: ...

    @abstractmethod
    async def update(self, borrowing: Borrowing, session=None) -> Borrowing: ...

    @abstractmethod
    async def delete_for_item(self, item_id: PydanticObjectId, session=None) -> int: ...

    @abstractmethod
    async def find_for_user(self, user_id: PydanticObjectId, session=None) -> List[Borrowing]:
        """Every borrowing filed by the user, regardless of status."""

    @abstractmethod
    async def delete_for_user(self, user_id: PydanticObjectId, session=None) -> int: ...

    @abstractmethod
    async def clear_user_references(self, user_id: PydanticObjectId, session=None) -> int:
        """Unset ``approved_by``/``return_approved_by`` pointing at the user; returns borrowings touched."""


class NotificationRepository(ABC):
    @abstractmethod
    async def insert_many(self, notifications: List[Notification], session=None) -> List[Notification]: ...

    @abstractmethod
    async def list_for_user(self, user_id: PydanticObjectId, limit: int = 50) -> List[Notification]: ...

    @abstractmethod
    async def mark_read(self, notification_id: PydanticObjectId, user_id: PydanticObjectId) -> Optional[Notification]: ...

    @abstractmethod
    async def mark_all_read(self, user_id: PydanticObjectId) -> int: ...

    @abstractmethod
    async def unread_count(self, user_id: PydanticObjectId) -> int: ...

    @abstractmethod
    async def delete(self, notification_id: PydanticObjectId, user_id: PydanticObjectId) -> bool: ...

    @abstractmethod
    async def delete_for_borrowings(self, borrowing_ids: List[PydanticObjectId], session=None) -> int: ...

    @abstractmethod
    async def exists(self, user_id: PydanticObjectId, related_borrowing_id: PydanticObjectId, title: str) -> bool: ...

    @abstractmethod
    async def delete_for_user(self, user_id: PydanticObjectId, session=None) -> int: ...


class UserRepository(ABC):
    @abstractmethod
    async def find_by_id(self, user_id: PydanticObjectId, session=None) -> Optional[User]: ...

    @abstractmethod
    async def find_by_roles(self, roles: Sequence[UserRole], session=None) -> List[User]:
        """Active (not disabled) users holding any of ``roles``."""

    @abstractmethod
    async def count(self, role: Optional[UserRole] = None, session=None) -> int: ...

    @abstractmethod
    async def delete(self, user_id: PydanticObjectId, session=None) -> None: ...


class ActivityLogRepository(ABC):
    @abstractmethod
    async def insert(self, entry: ActivityLog) -> ActivityLog: ...

    @abstractmethod
    async def list(self, skip: int = 0, limit: int = 50) -> List[ActivityLog]: ...

    @abstractmethod
    async def count(self) -> int: ...

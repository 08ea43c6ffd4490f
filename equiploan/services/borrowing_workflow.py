# equiploan/services/borrowing_workflow.py
"""
Borrowing lifecycle.

    pending -> approved -> borrowed -> returning -> returned
    pending -> rejected

Every transition runs in one transaction. ``approve`` and ``approve_return``
lock the item before touching its stock; ``approve`` also rejects the pending
requests for the same item that the remaining stock can no longer cover.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from beanie import PydanticObjectId
from loguru import logger

from equiploan.core.availability import can_request, can_reserve, release, reserve
from equiploan.core.errors import (
    AlreadyApprovedError,
    InsufficientStockError,
    InvalidRequestError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedRoleError,
)
from equiploan.core.utils import display_name
from equiploan.models.borrowing import Borrowing
from equiploan.models.enum import (
    BorrowingStatus,
    EntityType,
    HandoverCondition,
    ItemCondition,
    NotificationType,
    UserRole,
)
from equiploan.models.item import Item
from equiploan.models.notification import NotificationPayload
from equiploan.models.user import User, utc_now
from equiploan.repositories.base import (
    BorrowingRepository,
    ItemRepository,
    TransactionManager,
)
from equiploan.services.activity import ActivityRecorder
from equiploan.services.notifications import NotificationDispatcher, Outbox, borrowing_event

AUTO_REJECT_NOTE = "Automatically rejected due to insufficient stock."
DEFAULT_REJECT_REASON = "No reason provided"


class BorrowingWorkflow:
    def __init__(
        self,
        items: ItemRepository,
        borrowings: BorrowingRepository,
        transactions: TransactionManager,
        notifier: NotificationDispatcher,
        activity: ActivityRecorder,
    ):
        self.items = items
        self.borrowings = borrowings
        self.transactions = transactions
        self.notifier = notifier
        self.activity = activity

    # --- Helpers ---
    @staticmethod
    def _require_officer(actor: User, action: str) -> None:
        if actor.role != UserRole.OFFICER:
            logger.warning(f"User '{actor.username}' ({actor.role.value}) refused: only officers may {action}.")
            raise UnauthorizedRoleError(f"Only officers are allowed to {action}")

    async def _get_or_404(self, borrowing_id: PydanticObjectId, session=None) -> Borrowing:
        borrowing = await self.borrowings.find_by_id(borrowing_id, session=session)
        if borrowing is None:
            raise NotFoundError("Borrowing request not found")
        return borrowing

    async def _item_name(self, item_id: PydanticObjectId, session=None) -> str:
        item = await self.items.find_by_id(item_id, session=session)
        return item.name if item else "the item"

    async def _finish(self, outbox: Outbox, actor: User, action: str, borrowing: Borrowing, details=None,
                      audit: Optional[Dict[str, Any]] = None) -> None:
        await self.notifier.flush(outbox)
        await self.activity.record(actor.id, action, EntityType.BORROWING, borrowing.id, details, **(audit or {}))

    # --- Queries ---
    async def get(self, borrowing_id: PydanticObjectId, actor: User) -> Borrowing:
        """Regular users may only read their own borrowings."""
        borrowing = await self._get_or_404(borrowing_id)
        if actor.role == UserRole.USER and borrowing.user_id != actor.id:
            raise UnauthorizedRoleError("Not authorized")
        return borrowing

    async def list(
        self,
        actor: User,
        statuses: Optional[Sequence[BorrowingStatus]] = None,
        item_id: Optional[PydanticObjectId] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Borrowing]:
        user_id = actor.id if actor.role == UserRole.USER else None
        return await self.borrowings.list(user_id=user_id, item_id=item_id, statuses=statuses, skip=skip, limit=limit)

    async def history_for(self, actor: User, skip: int = 0, limit: int = 50) -> List[Borrowing]:
        return await self.borrowings.list(user_id=actor.id, skip=skip, limit=limit)

    # --- Transitions ---
    async def create(
        self,
        actor: User,
        item_id: PydanticObjectId,
        quantity: int,
        expected_return_date: datetime,
        purpose: Optional[str] = None,
        audit: Optional[Dict[str, Any]] = None,
    ) -> Borrowing:
        if quantity < 1:
            raise InvalidRequestError("Quantity must be at least 1")

        outbox = Outbox()
        async with self.transactions.transaction() as session:
            item = await self.items.find_by_id(item_id, session=session)
            if item is None:
                raise NotFoundError("Item not found")
            if not can_request(item, quantity):
                raise InsufficientStockError(f"Only {item.available_quantity} items available for borrowing")

            borrowing = Borrowing(
                user_id=actor.id,
                item_id=item.id,
                quantity=quantity,
                expected_return_date=expected_return_date,
                purpose=purpose,
                status=BorrowingStatus.PENDING,
            )
            await self.borrowings.insert(borrowing, session=session)

            await self.notifier.notify_roles(outbox, [UserRole.OFFICER], NotificationPayload(
                title="New Borrowing Request",
                message=f"{display_name(actor)} requested to borrow {quantity}x {item.name}",
                type=NotificationType.BORROW_REQUEST,
                path="/borrowings",
                related_borrowing_id=borrowing.id,
            ), session=session)
            self.notifier.broadcast(outbox, "borrowing:created", borrowing_event(borrowing, item.name))
            await self.notifier.persist(outbox, session=session)

        logger.info(f"Borrowing {borrowing.id} created by '{actor.username}': {quantity}x '{item.name}'")
        await self._finish(
            outbox, actor, f"Requested to borrow {item.name}", borrowing,
            {"quantity": quantity, "expected_return_date": borrowing.expected_return_date.isoformat()},
            audit=audit,
        )
        return borrowing

    async def approve(
        self, borrowing_id: PydanticObjectId, actor: User, notes: Optional[str] = None,
        audit: Optional[Dict[str, Any]] = None,
    ) -> Borrowing:
        self._require_officer(actor, "approve borrowing requests")

        outbox = Outbox()
        async with self.transactions.transaction() as session:
            borrowing = await self._get_or_404(borrowing_id, session=session)
            if borrowing.status != BorrowingStatus.PENDING:
                raise InvalidStateError(f"Cannot approve request with status: {borrowing.status.value}")

            item = await self.items.find_by_id(borrowing.item_id, session=session, for_update=True)
            if item is None:
                raise NotFoundError("Item not found")
            if not can_reserve(item, borrowing.quantity):
                raise InsufficientStockError("Item is no longer available in the requested quantity")

            now = utc_now()
            borrowing.status = BorrowingStatus.APPROVED
            borrowing.approved_by = actor.id
            borrowing.approved_at = now
            borrowing.notes = notes or borrowing.notes
            borrowing.updated_at = now
            await self.borrowings.update(borrowing, session=session)

            item.available_quantity = reserve(item.available_quantity, borrowing.quantity)
            item.updated_at = now
            await self.items.update(item, session=session)

            self.notifier.notify_user(outbox, borrowing.user_id, NotificationPayload(
                title="Borrowing Approved",
                message=f"Your request to borrow {item.name} has been approved.",
                type=NotificationType.BORROW_APPROVED,
                path="/my-borrowings",
                related_borrowing_id=borrowing.id,
            ))
            rejected = await self._reject_competing(item, borrowing, actor, now, outbox, session)
            self.notifier.broadcast(outbox, "borrowing:approved", borrowing_event(borrowing, item.name))
            await self.notifier.persist(outbox, session=session)

        logger.info(
            f"Borrowing {borrowing.id} approved by '{actor.username}'; "
            f"'{item.name}' now has {item.available_quantity} available, {len(rejected)} competing request(s) rejected"
        )
        await self._finish(
            outbox, actor, f"Approved borrowing request for {item.name}", borrowing,
            {"requester_id": str(borrowing.user_id), "auto_rejected": [str(b.id) for b in rejected]},
            audit=audit,
        )
        return borrowing

    async def _reject_competing(
        self, item: Item, approved: Borrowing, actor: User, now: datetime, outbox: Outbox, session
    ) -> List[Borrowing]:
        """Reject pending requests that can no longer be met. Requests that still fit stay pending."""
        competing = await self.borrowings.find_pending(
            item.id, excluding_id=approved.id, quantity_above=item.available_quantity, session=session
        )
        for other in competing:
            other.status = BorrowingStatus.REJECTED
            other.approved_by = actor.id
            other.approved_at = now
            other.notes = AUTO_REJECT_NOTE
            other.updated_at = now
            await self.borrowings.update(other, session=session)

            self.notifier.notify_user(outbox, other.user_id, NotificationPayload(
                title="Borrowing Auto-Rejected",
                message=f"Your request for {item.name} was automatically rejected due to insufficient stock.",
                type=NotificationType.BORROW_REJECTED,
                path="/my-borrowings",
                related_borrowing_id=other.id,
            ))
            self.notifier.broadcast(outbox, "borrowing:rejected", borrowing_event(other, item.name))
        return competing

    async def reject(
        self, borrowing_id: PydanticObjectId, actor: User, reason: Optional[str] = None,
        audit: Optional[Dict[str, Any]] = None,
    ) -> Borrowing:
        self._require_officer(actor, "reject borrowing requests")

        outbox = Outbox()
        async with self.transactions.transaction() as session:
            borrowing = await self._get_or_404(borrowing_id, session=session)
            if borrowing.status != BorrowingStatus.PENDING:
                raise InvalidStateError("Can only reject pending requests")

            reason = reason or DEFAULT_REJECT_REASON
            item_name = await self._item_name(borrowing.item_id, session=session)
            now = utc_now()
            borrowing.status = BorrowingStatus.REJECTED
            borrowing.approved_by = actor.id
            borrowing.approved_at = now
            borrowing.notes = reason
            borrowing.updated_at = now
            await self.borrowings.update(borrowing, session=session)

            self.notifier.notify_user(outbox, borrowing.user_id, NotificationPayload(
                title="Borrowing Rejected",
                message=f"Your request to borrow {item_name} was rejected. Reason: {reason}",
                type=NotificationType.BORROW_REJECTED,
                path="/my-borrowings",
                related_borrowing_id=borrowing.id,
            ))
            self.notifier.broadcast(outbox, "borrowing:rejected", borrowing_event(borrowing, item_name))
            await self.notifier.persist(outbox, session=session)

        logger.info(f"Borrowing {borrowing.id} rejected by '{actor.username}': {reason}")
        await self._finish(outbox, actor, f"Rejected borrowing request for {item_name}", borrowing, {"reason": reason},
                           audit=audit)
        return borrowing

    async def mark_borrowed(
        self,
        borrowing_id: PydanticObjectId,
        actor: User,
        condition_before: Optional[HandoverCondition] = None,
        notes: Optional[str] = None,
        audit: Optional[Dict[str, Any]] = None,
    ) -> Borrowing:
        self._require_officer(actor, "mark items as borrowed")

        outbox = Outbox()
        async with self.transactions.transaction() as session:
            borrowing = await self._get_or_404(borrowing_id, session=session)
            if borrowing.status != BorrowingStatus.APPROVED:
                raise InvalidStateError("Request must be approved before marking as borrowed")

            now = utc_now()
            borrowing.status = BorrowingStatus.BORROWED
            borrowing.borrow_date = now
            borrowing.condition_before = condition_before or HandoverCondition.GOOD
            borrowing.notes = notes or borrowing.notes
            borrowing.updated_at = now
            await self.borrowings.update(borrowing, session=session)
            self.notifier.broadcast(outbox, "borrowing:borrowed", borrowing_event(borrowing))

        logger.info(f"Borrowing {borrowing.id} handed over by '{actor.username}'")
        await self._finish(outbox, actor, "Handed over borrowed item", borrowing,
                           {"condition_before": borrowing.condition_before.value}, audit=audit)
        return borrowing

    async def request_return(
        self,
        borrowing_id: PydanticObjectId,
        actor: User,
        condition_after: Optional[ItemCondition] = None,
        notes: Optional[str] = None,
        audit: Optional[Dict[str, Any]] = None,
    ) -> Borrowing:
        outbox = Outbox()
        async with self.transactions.transaction() as session:
            borrowing = await self._get_or_404(borrowing_id, session=session)
            if borrowing.user_id != actor.id:
                logger.warning(f"User '{actor.username}' tried to return borrowing {borrowing.id} they do not own.")
                raise UnauthorizedRoleError("Not authorized")
            if borrowing.status != BorrowingStatus.BORROWED:
                raise InvalidStateError("Can only request return for borrowed items")

            item_name = await self._item_name(borrowing.item_id, session=session)
            now = utc_now()
            borrowing.status = BorrowingStatus.RETURNING
            borrowing.condition_after = condition_after or ItemCondition.GOOD
            borrowing.notes = notes or borrowing.notes
            borrowing.updated_at = now
            await self.borrowings.update(borrowing, session=session)

            await self.notifier.notify_roles(outbox, [UserRole.ADMIN, UserRole.OFFICER], NotificationPayload(
                title="Return Request",
                message=f"{display_name(actor)} is returning {borrowing.quantity}x {item_name}.",
                type=NotificationType.RETURN_REQUEST,
                path="/borrowings",
                related_borrowing_id=borrowing.id,
            ), session=session)
            self.notifier.broadcast(outbox, "borrowing:returned", borrowing_event(borrowing, item_name))
            await self.notifier.persist(outbox, session=session)

        logger.info(f"Return requested for borrowing {borrowing.id} by '{actor.username}'")
        await self._finish(outbox, actor, f"Requested return of {item_name}", borrowing,
                           {"condition_after": borrowing.condition_after.value}, audit=audit)
        return borrowing

    async def approve_return(
        self, borrowing_id: PydanticObjectId, actor: User, notes: Optional[str] = None,
        audit: Optional[Dict[str, Any]] = None,
    ) -> Borrowing:
        self._require_officer(actor, "approve returns")

        outbox = Outbox()
        async with self.transactions.transaction() as session:
            borrowing = await self._get_or_404(borrowing_id, session=session)
            if borrowing.return_approved_at is not None:
                raise AlreadyApprovedError("Return has already been approved")
            if borrowing.status != BorrowingStatus.RETURNING:
                raise InvalidStateError("Item must be in returning state to approve return")

            item = await self.items.find_by_id(borrowing.item_id, session=session, for_update=True)
            if item is None:
                raise NotFoundError("Item not found")

            now = utc_now()
            borrowing.status = BorrowingStatus.RETURNED
            borrowing.actual_return_date = now
            borrowing.return_approved_by = actor.id
            borrowing.return_approved_at = now
            borrowing.notes = notes or borrowing.notes
            borrowing.updated_at = now
            await self.borrowings.update(borrowing, session=session)

            item.available_quantity = release(item.available_quantity, item.quantity, borrowing.quantity)
            item.updated_at = now
            await self.items.update(item, session=session)

            self.notifier.notify_user(outbox, borrowing.user_id, NotificationPayload(
                title="Return Approved",
                message=f"Your return of {item.name} has been approved.",
                type=NotificationType.RETURN_APPROVED,
                path="/my-borrowings",
                related_borrowing_id=borrowing.id,
            ))
            self.notifier.broadcast(outbox, "borrowing:return_approved", borrowing_event(borrowing, item.name))
            await self.notifier.persist(outbox, session=session)

        logger.info(
            f"Return of borrowing {borrowing.id} approved by '{actor.username}'; "
            f"'{item.name}' now has {item.available_quantity} available"
        )
        await self._finish(outbox, actor, f"Approved return for {item.name}", borrowing, audit=audit)
        return borrowing

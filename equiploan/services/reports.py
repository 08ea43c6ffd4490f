# equiploan/services/reports.py
from typing import List, Optional

from equiploan.models.borrowing import Borrowing
from equiploan.models.enum import BorrowingStatus
from equiploan.models.report import DashboardStats, MonthlyCount, StatusCount
from equiploan.models.user import utc_now
from equiploan.repositories.base import BorrowingRepository, ItemRepository, UserRepository


class ReportService:
    def __init__(self, borrowings: BorrowingRepository, items: ItemRepository, users: UserRepository):
        self.borrowings = borrowings
        self.items = items
        self.users = users

    async def dashboard(self) -> DashboardStats:
        by_status = await self.borrowings.count_by_status()
        monthly = await self.borrowings.count_by_month()
        return DashboardStats(
            total_borrowings=sum(by_status.values()),
            pending_borrowings=by_status.get(BorrowingStatus.PENDING, 0),
            borrowed_borrowings=by_status.get(BorrowingStatus.BORROWED, 0),
            returned_borrowings=by_status.get(BorrowingStatus.RETURNED, 0),
            overdue_borrowings=await self.borrowings.count_overdue(utc_now()),
            total_items=await self.items.count(),
            total_users=await self.users.count(),
            status_stats=[StatusCount(status=s, count=c) for s, c in by_status.items()],
            monthly_trends=[MonthlyCount(**row) for row in monthly],
        )

    async def active(self, skip: int = 0, limit: int = 50) -> List[Borrowing]:
        return await self.borrowings.list(
            statuses=[BorrowingStatus.BORROWED, BorrowingStatus.RETURNING], skip=skip, limit=limit
        )

    async def overdue(self, skip: int = 0, limit: int = 50) -> List[Borrowing]:
        return await self.borrowings.find_overdue(utc_now(), skip=skip, limit=limit)

    async def item_history(self, item_id=None, skip: int = 0, limit: int = 50,
                           statuses: Optional[List[BorrowingStatus]] = None) -> List[Borrowing]:
        return await self.borrowings.list(item_id=item_id, statuses=statuses, skip=skip, limit=limit)

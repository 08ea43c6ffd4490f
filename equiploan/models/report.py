# equiploan/models/report.py
from pydantic import BaseModel, Field
from typing import List

from .enum import BorrowingStatus


class StatusCount(BaseModel):
    """Number of borrowings currently in one status."""
    status: BorrowingStatus
    count: int = Field(default=0)


class MonthlyCount(BaseModel):
    """Number of borrowing requests created in a calendar month."""
    year: int
    month: int
    count: int = Field(default=0)


class DashboardStats(BaseModel):
    total_borrowings: int = 0
    pending_borrowings: int = 0
    borrowed_borrowings: int = 0
    returned_borrowings: int = 0
    overdue_borrowings: int = 0  # derived: borrowed and past expected return date
    total_items: int = 0
    total_users: int = 0
    status_stats: List[StatusCount] = Field(default_factory=list)
    monthly_trends: List[MonthlyCount] = Field(default_factory=list)

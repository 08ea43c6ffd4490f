# equiploan/models/borrowing.py
from typing import Optional
from decimal import Decimal
from datetime import datetime, timezone

from beanie import DecimalAnnotation, Document, PydanticObjectId
from pydantic import BaseModel, Field, field_validator
from pymongo import IndexModel, ASCENDING

from .enum import BorrowingStatus, HandoverCondition, ItemCondition
from .user import utc_now


def as_utc(value: datetime) -> datetime:
    """Mongo hands back naive datetimes; treat them as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Borrowing(Document):
    user_id: PydanticObjectId
    item_id: PydanticObjectId
    quantity: int = Field(..., gt=0, description="Number of units requested")
    borrow_date: datetime = Field(default_factory=utc_now)
    expected_return_date: datetime
    actual_return_date: Optional[datetime] = None
    purpose: Optional[str] = None
    status: BorrowingStatus = Field(default=BorrowingStatus.PENDING)
    approved_by: Optional[PydanticObjectId] = None
    approved_at: Optional[datetime] = None
    return_approved_by: Optional[PydanticObjectId] = None
    return_approved_at: Optional[datetime] = None
    notes: Optional[str] = None
    penalty: DecimalAnnotation = Field(default=Decimal("0.00"))
    condition_before: Optional[HandoverCondition] = None
    condition_after: Optional[ItemCondition] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "borrowings"
        indexes = [
            IndexModel([("user_id", ASCENDING), ("status", ASCENDING)], name="borrowing_user_status_index"),
            IndexModel([("item_id", ASCENDING), ("status", ASCENDING)], name="borrowing_item_status_index"),
            IndexModel([("expected_return_date", ASCENDING)], name="borrowing_expected_return_index"),
        ]

    def is_overdue(self, now: Optional[datetime] = None) -> bool:
        """Overdue is derived, never stored: handed over and past the expected return date."""
        if self.status != BorrowingStatus.BORROWED:
            return False
        now = now or utc_now()
        return as_utc(now) > as_utc(self.expected_return_date)

    # --- Pydantic Schemas ---
    class Create(BaseModel):
        item_id: str = Field(...)
        quantity: int = Field(..., gt=0, description="Number of units to borrow (must be > 0)")
        expected_return_date: datetime = Field(...)
        purpose: Optional[str] = Field(None, max_length=500)

        @field_validator("expected_return_date")
        @classmethod
        def return_date_in_future(cls, value: datetime) -> datetime:
            value = as_utc(value)
            if value <= utc_now():
                raise ValueError("Expected return date must be in the future.")
            return value

    class Approve(BaseModel):
        notes: Optional[str] = None

    class Reject(BaseModel):
        reason: Optional[str] = None
        notes: Optional[str] = None

    class Handover(BaseModel):
        condition_before: Optional[HandoverCondition] = None
        notes: Optional[str] = None

    class ReturnRequest(BaseModel):
        condition_after: Optional[ItemCondition] = None
        notes: Optional[str] = None

    class Response(BaseModel):
        id: str = Field(..., alias="_id")
        user_id: str
        item_id: str
        quantity: int
        borrow_date: datetime
        expected_return_date: datetime
        actual_return_date: Optional[datetime] = None
        purpose: Optional[str] = None
        status: BorrowingStatus
        is_overdue: bool = False
        approved_by: Optional[str] = None
        approved_at: Optional[datetime] = None
        return_approved_by: Optional[str] = None
        return_approved_at: Optional[datetime] = None
        notes: Optional[str] = None
        penalty: Decimal
        condition_before: Optional[HandoverCondition] = None
        condition_after: Optional[ItemCondition] = None
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            populate_by_name = True
            use_enum_values = True

# equiploan/models/enum.py
from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    OFFICER = "officer"
    USER = "user"


class BorrowingStatus(str, Enum):
    PENDING = "pending"        # Submitted by a user, no stock reserved
    APPROVED = "approved"      # Stock reserved by an officer
    REJECTED = "rejected"      # Terminal
    BORROWED = "borrowed"      # Handed over
    RETURNING = "returning"    # Borrower asked to return
    RETURNED = "returned"      # Terminal, stock restored


class ItemCondition(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"
    BROKEN = "broken"


class HandoverCondition(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class NotificationType(str, Enum):
    BORROW_REQUEST = "borrow_request"
    BORROW_APPROVED = "borrow_approved"
    BORROW_REJECTED = "borrow_rejected"
    RETURN_REQUEST = "return_request"
    RETURN_APPROVED = "return_approved"
    SYSTEM = "system"


class EntityType(str, Enum):
    USER = "user"
    ITEM = "item"
    CATEGORY = "category"
    BORROWING = "borrowing"
    SYSTEM = "system"

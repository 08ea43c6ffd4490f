# equiploan/models/user.py
from typing import Optional
from datetime import datetime, timezone

from beanie import Document
from pydantic import BaseModel, Field, EmailStr
from pymongo import IndexModel, ASCENDING, DESCENDING

from .enum import UserRole


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(Document):
    username: str
    email: Optional[EmailStr] = None
    full_name: Optional[str] = None
    hashed_password: str
    role: UserRole = Field(default=UserRole.USER)
    department: Optional[str] = None
    position: Optional[str] = None
    phone: Optional[str] = None
    disabled: bool = Field(default=False)  # False = active
    last_login: Optional[datetime] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "users"
        indexes = [
            IndexModel([("username", ASCENDING)], name="username_unique_index", unique=True),
            IndexModel([("email", ASCENDING)], name="email_unique_index", unique=True,
                       partialFilterExpression={"email": {"$type": "string"}}),
            IndexModel([("role", ASCENDING)], name="role_index"),
            IndexModel([("updated_at", DESCENDING)], name="user_updated_at_index"),
        ]

    # --- Pydantic Schemas ---
    class Response(BaseModel):
        id: str = Field(..., alias="_id")
        username: str
        email: Optional[EmailStr] = None
        full_name: Optional[str] = None
        role: UserRole
        department: Optional[str] = None
        position: Optional[str] = None
        phone: Optional[str] = None
        disabled: bool
        last_login: Optional[datetime] = None
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            populate_by_name = True
            use_enum_values = True

    class Create(BaseModel):
        username: str = Field(..., min_length=3, max_length=50)
        email: Optional[EmailStr] = None
        full_name: Optional[str] = None
        department: Optional[str] = None
        position: Optional[str] = None
        phone: Optional[str] = None
        password: str = Field(..., min_length=6)

    class AdminCreate(Create):
        role: UserRole = UserRole.USER
        disabled: bool = False

    class AdminUpdate(BaseModel):
        email: Optional[EmailStr] = None
        full_name: Optional[str] = None
        department: Optional[str] = None
        position: Optional[str] = None
        phone: Optional[str] = None
        password: Optional[str] = Field(None, min_length=6)
        role: Optional[UserRole] = None
        disabled: Optional[bool] = None

# equiploan/models/category.py
from typing import Optional
from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING

from .user import utc_now


class Category(Document):
    name: str
    description: Optional[str] = None
    created_by: Optional[PydanticObjectId] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "categories"
        indexes = [
            IndexModel([("name", ASCENDING)], name="category_name_unique_index", unique=True),
        ]

    # --- Pydantic Schemas ---
    class Create(BaseModel):
        name: str = Field(..., min_length=1, max_length=100)
        description: Optional[str] = None

    class Update(BaseModel):
        name: Optional[str] = Field(None, min_length=1, max_length=100)
        description: Optional[str] = None

    class Response(BaseModel):
        id: str = Field(..., alias="_id")
        name: str
        description: Optional[str] = None
        created_by: Optional[str] = None
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            populate_by_name = True

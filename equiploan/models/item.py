# equiploan/models/item.py
from typing import Optional, Dict, Any
from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import BaseModel, Field
from pymongo import IndexModel, ASCENDING

from .enum import ItemCondition
from .user import utc_now


class Item(Document):
    """Borrowable equipment. `available_quantity` is owned by the lending workflow."""
    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    category_id: PydanticObjectId
    serial_number: Optional[str] = None
    quantity: int = Field(default=0, ge=0)
    available_quantity: int = Field(default=0, ge=0)
    condition: ItemCondition = Field(default=ItemCondition.GOOD)
    location: Optional[str] = Field(None, max_length=200)
    image_url: Optional[str] = None
    specifications: Optional[Dict[str, Any]] = None
    is_available: bool = Field(default=True, description="Whether the item can be requested at all")
    created_by: Optional[PydanticObjectId] = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    class Settings:
        name = "items"
        indexes = [
            IndexModel([("name", ASCENDING)], name="item_name_index"),
            IndexModel([("serial_number", ASCENDING)], name="item_serial_unique_index", unique=True,
                       partialFilterExpression={"serial_number": {"$type": "string"}}),
            IndexModel([("category_id", ASCENDING)], name="item_category_index"),
            IndexModel([("is_available", ASCENDING)], name="item_is_available_index"),
        ]

    # --- Pydantic Schemas for API ---
    class Create(BaseModel):
        name: str = Field(..., min_length=1, max_length=200)
        description: Optional[str] = None
        category_id: str = Field(..., description="String ObjectId of the category")
        serial_number: Optional[str] = None
        quantity: int = Field(..., ge=0)
        condition: ItemCondition = ItemCondition.GOOD
        location: Optional[str] = Field(None, max_length=200)
        image_url: Optional[str] = None
        specifications: Optional[Dict[str, Any]] = None

    class Update(BaseModel):
        """Metadata edit. `quantity` is routed through the stock adjustment."""
        name: Optional[str] = Field(None, min_length=1, max_length=200)
        description: Optional[str] = None
        category_id: Optional[str] = Field(None, description="String ObjectId of the new category")
        serial_number: Optional[str] = None
        quantity: Optional[int] = Field(None, ge=0)
        condition: Optional[ItemCondition] = None
        location: Optional[str] = Field(None, max_length=200)
        image_url: Optional[str] = None
        specifications: Optional[Dict[str, Any]] = None
        is_available: Optional[bool] = None

    class QuantityAdjust(BaseModel):
        quantity: int = Field(..., ge=0, description="New total quantity")

    class Response(BaseModel):
        id: str = Field(..., alias="_id")
        name: str
        description: Optional[str] = None
        category_id: str
        serial_number: Optional[str] = None
        quantity: int
        available_quantity: int
        condition: ItemCondition
        location: Optional[str] = None
        image_url: Optional[str] = None
        specifications: Optional[Dict[str, Any]] = None
        is_available: bool
        created_by: Optional[str] = None
        created_at: datetime
        updated_at: datetime

        class Config:
            from_attributes = True
            populate_by_name = True
            use_enum_values = True

# equiploan/core/utils.py
from typing import Optional

from beanie import PydanticObjectId
from bson import ObjectId

from equiploan.core.errors import InvalidRequestError


def parse_object_id(value: str, label: str = "ID") -> PydanticObjectId:
    """Convert a path/body id string, rejecting malformed ids with a 400."""
    if isinstance(value, ObjectId):
        return PydanticObjectId(value)
    if not value or not ObjectId.is_valid(value):
        raise InvalidRequestError(f"Invalid {label} format.")
    return PydanticObjectId(value)


def parse_optional_object_id(value: Optional[str], label: str = "ID") -> Optional[PydanticObjectId]:
    return parse_object_id(value, label) if value else None


def display_name(user) -> str:
    return user.full_name or user.username

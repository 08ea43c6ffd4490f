# equiploan/repositories/items.py
import re
from typing import List, Optional

from beanie import PydanticObjectId
from pymongo import ASCENDING, ReturnDocument

from equiploan.models.category import Category
from equiploan.models.item import Item
from equiploan.models.user import utc_now
from equiploan.repositories.base import CategoryRepository, ItemRepository


class MongoItemRepository(ItemRepository):
    async def find_by_id(self, item_id: PydanticObjectId, session=None, for_update: bool = False) -> Optional[Item]:
        if not for_update:
            return await Item.find_one({"_id": item_id}, session=session)
        # Touching the document makes it part of our write set: any other
        # transaction writing this item now hits a WriteConflict.
        raw = await Item.get_motor_collection().find_one_and_update(
            {"_id": item_id},
            {"$set": {"updated_at": utc_now()}},
            session=session,
            return_document=ReturnDocument.AFTER,
        )
        return Item.model_validate(raw) if raw else None

    async def find_by_serial(self, serial_number: str, session=None) -> Optional[Item]:
        return await Item.find_one({"serial_number": serial_number}, session=session)

    async def list(
        self,
        name: Optional[str] = None,
        category_id: Optional[PydanticObjectId] = None,
        available_only: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Item]:
        query = {}
        if name:
            query["name"] = {"$regex": re.escape(name), "$options": "i"}
        if category_id:
            query["category_id"] = category_id
        if available_only:
            query["is_available"] = True
            query["available_quantity"] = {"$gt": 0}
        return await Item.find(query).sort([("name", ASCENDING)]).skip(skip).limit(limit).to_list()

    async def count(self) -> int:
        return await Item.find_all().count()

    async def exists_in_category(self, category_id: PydanticObjectId) -> bool:
        return await Item.find_one({"category_id": category_id}) is not None

    async def insert(self, item: Item, session=None) -> Item:
        await item.insert(session=session)
        return item

    async def update(self, item: Item, session=None) -> Item:
        await item.save(session=session)
        return item

    async def delete(self, item_id: PydanticObjectId, session=None) -> None:
        await Item.get_motor_collection().delete_one({"_id": item_id}, session=session)


class MongoCategoryRepository(CategoryRepository):
    async def find_by_id(self, category_id: PydanticObjectId, session=None) -> Optional[Category]:
        return await Category.find_one({"_id": category_id}, session=session)

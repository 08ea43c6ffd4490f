# equiploan/repositories/borrowings.py
from datetime import datetime
from typing import Dict, List, Optional, Sequence

from beanie import PydanticObjectId
from pymongo import ASCENDING, DESCENDING

from equiploan.models.borrowing import Borrowing
from equiploan.models.enum import BorrowingStatus
from equiploan.repositories.base import BorrowingRepository


def _overdue_query(now: datetime) -> dict:
    return {"status": BorrowingStatus.BORROWED.value, "expected_return_date": {"$lt": now}}


class MongoBorrowingRepository(BorrowingRepository):
    async def find_by_id(self, borrowing_id: PydanticObjectId, session=None) -> Optional[Borrowing]:
        return await Borrowing.find_one({"_id": borrowing_id}, session=session)

    async def find_pending(
        self,
        item_id: PydanticObjectId,
        excluding_id: Optional[PydanticObjectId] = None,
        quantity_above: Optional[int] = None,
        session=None,
    ) -> List[Borrowing]:
        query = {"item_id": item_id, "status": BorrowingStatus.PENDING.value}
        if excluding_id is not None:
            query["_id"] = {"$ne": excluding_id}
        if quantity_above is not None:
            query["quantity"] = {"$gt": quantity_above}
        return await Borrowing.find(query, session=session).sort([("created_at", ASCENDING)]).to_list()

    async def list(
        self,
        user_id: Optional[PydanticObjectId] = None,
        item_id: Optional[PydanticObjectId] = None,
        statuses: Optional[Sequence[BorrowingStatus]] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> List[Borrowing]:
        query = {}
        if user_id is not None:
            query["user_id"] = user_id
        if item_id is not None:
            query["item_id"] = item_id
        if statuses:
            query["status"] = {"$in": [s.value for s in statuses]}
        return await Borrowing.find(query).sort([("created_at", DESCENDING)]).skip(skip).limit(limit).to_list()

    async def find_overdue(self, now: datetime, skip: int = 0, limit: int = 0) -> List[Borrowing]:
        cursor = Borrowing.find(_overdue_query(now)).sort([("expected_return_date", ASCENDING)]).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list()

    async def count(self, statuses: Optional[Sequence[BorrowingStatus]] = None) -> int:
        query = {"status": {"$in": [s.value for s in statuses]}} if statuses else {}
        return await Borrowing.find(query).count()

    async def count_overdue(self, now: datetime) -> int:
        return await Borrowing.find(_overdue_query(now)).count()

    async def count_by_status(self) -> Dict[BorrowingStatus, int]:
        pipeline = [{"$group": {"_id": "$status", "count": {"$sum": 1}}}]
        rows = await Borrowing.get_motor_collection().aggregate(pipeline).to_list(length=None)
        counts = {status: 0 for status in BorrowingStatus}
        for row in rows:
            counts[BorrowingStatus(row["_id"])] = row["count"]
        return counts

    async def count_by_month(self) -> List[Dict[str, int]]:
        pipeline = [
            {"$group": {
                "_id": {"year": {"$year": "$created_at"}, "month": {"$month": "$created_at"}},
                "count": {"$sum": 1},
            }},
            {"$sort": {"_id.year": 1, "_id.month": 1}},
        ]
        rows = await Borrowing.get_motor_collection().aggregate(pipeline).to_list(length=None)
        return [{"year": r["_id"]["year"], "month": r["_id"]["month"], "count": r["count"]} for r in rows]

    async def ids_for_item(self, item_id: PydanticObjectId, session=None) -> List[PydanticObjectId]:
        cursor = Borrowing.get_motor_collection().find({"item_id": item_id}, {"_id": 1}, session=session)
        return [PydanticObjectId(doc["_id"]) async for doc in cursor]

    async def insert(self, borrowing: Borrowing, session=None) -> Borrowing:
        await borrowing.insert(session=session)
        return borrowing

    async def update(self, borrowing: Borrowing, session=None) -> Borrowing:
        await borrowing.save(session=session)
        return borrowing

    async def delete_for_item(self, item_id: PydanticObjectId, session=None) -> int:
        result = await Borrowing.get_motor_collection().delete_many({"item_id": item_id}, session=session)
        return result.deleted_count

    async def find_for_user(self, user_id: PydanticObjectId, session=None) -> List[Borrowing]:
        return await Borrowing.find({"user_id": user_id}, session=session).to_list()

    async def delete_for_user(self, user_id: PydanticObjectId, session=None) -> int:
        result = await Borrowing.get_motor_collection().delete_many({"user_id": user_id}, session=session)
        return result.deleted_count

    async def clear_user_references(self, user_id: PydanticObjectId, session=None) -> int:
        collection = Borrowing.get_motor_collection()
        touched = 0
        for field in ("approved_by", "return_approved_by"):
            result = await collection.update_many({field: user_id}, {"$set": {field: None}}, session=session)
            touched += result.modified_count
        return touched

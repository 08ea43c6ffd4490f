"""Mongo repositories against an in-process mongomock database (sessions stay ``None``)."""
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from beanie import PydanticObjectId
from bson import Decimal128

from equiploan.core.websocket_manager import ConnectionRegistry
from equiploan.models.activity_log import ActivityLog
from equiploan.models.borrowing import Borrowing
from equiploan.models.category import Category
from equiploan.models.enum import BorrowingStatus, UserRole
from equiploan.models.item import Item
from equiploan.models.notification import Notification
from equiploan.models.user import User
from equiploan.repositories.base import TransactionManager
from equiploan.repositories.borrowings import MongoBorrowingRepository
from equiploan.repositories.items import MongoCategoryRepository, MongoItemRepository
from equiploan.repositories.notifications import MongoNotificationRepository
from equiploan.repositories.users import MongoActivityLogRepository, MongoUserRepository
from equiploan.services.container import build_services

DUE = datetime(2030, 1, 10, tzinfo=timezone.utc)


class SessionlessTransactions(TransactionManager):
    """mongomock has no sessions; run the body with ``session=None``."""

    @asynccontextmanager
    async def transaction(self):
        yield None


@pytest.fixture
def mongo_services():
    return build_services(
        items=MongoItemRepository(),
        categories=MongoCategoryRepository(),
        borrowings=MongoBorrowingRepository(),
        notifications=MongoNotificationRepository(),
        users=MongoUserRepository(),
        activity_logs=MongoActivityLogRepository(),
        transactions=SessionlessTransactions(),
        registry=ConnectionRegistry(),
    )


async def add_user(username, role=UserRole.USER) -> User:
    return await User(username=username, hashed_password="not-a-real-hash", role=role).insert()


async def add_item(quantity=5, available=None, name="Projector") -> Item:
    category = await Category(name=f"{name} category").insert()
    return await Item(
        name=name,
        category_id=category.id,
        quantity=quantity,
        available_quantity=quantity if available is None else available,
    ).insert()


async def add_borrowing(user, item, quantity=1, status=BorrowingStatus.PENDING, **extra) -> Borrowing:
    return await Borrowing(
        user_id=user.id,
        item_id=item.id,
        quantity=quantity,
        expected_return_date=DUE,
        status=status,
        **extra,
    ).insert()


async def add_notification(user, borrowing=None, title="Request update") -> Notification:
    return await Notification(
        user_id=user.id,
        title=title,
        message="Something changed",
        related_borrowing_id=borrowing.id if borrowing else None,
    ).insert()


async def test_penalty_survives_a_database_round_trip():
    user = await add_user("alice")
    item = await add_item()
    fined = await add_borrowing(user, item, penalty=Decimal("12.50"))
    plain = await add_borrowing(user, item)
    repo = MongoBorrowingRepository()

    raw = await Borrowing.get_motor_collection().find_one({"_id": fined.id})
    assert isinstance(raw["penalty"], Decimal128)

    loaded = await repo.find_by_id(fined.id)
    assert loaded.penalty == Decimal("12.50")
    assert (await repo.find_by_id(plain.id)).penalty == Decimal("0.00")
    assert [b.penalty for b in await repo.find_for_user(user.id)] == [Decimal("12.50"), Decimal("0.00")]


async def test_find_by_id_for_update_returns_a_document():
    item = await add_item(quantity=3, available=2)
    repo = MongoItemRepository()

    locked = await repo.find_by_id(item.id, for_update=True)
    assert isinstance(locked, Item)
    assert locked.id == item.id
    assert (locked.quantity, locked.available_quantity) == (3, 2)

    locked.available_quantity = 1
    await repo.update(locked)
    assert (await repo.find_by_id(item.id)).available_quantity == 1

    assert await repo.find_by_id(PydanticObjectId(), for_update=True) is None


async def test_items_without_serial_numbers_do_not_collide():
    first = await add_item(name="Camera")
    second = await add_item(name="Tripod")
    assert first.serial_number is None and second.serial_number is None
    assert await MongoItemRepository().count() == 2


async def test_find_pending_filters_on_quantity_and_excluded_id():
    user = await add_user("alice")
    item = await add_item()
    other_item = await add_item(name="Laptop")
    base = datetime(2026, 3, 1, tzinfo=timezone.utc)
    small = await add_borrowing(user, item, quantity=1, created_at=base)
    large = await add_borrowing(user, item, quantity=4, created_at=base + timedelta(minutes=1))
    larger = await add_borrowing(user, item, quantity=5, created_at=base + timedelta(minutes=2))
    await add_borrowing(user, item, quantity=5, status=BorrowingStatus.APPROVED)
    await add_borrowing(user, other_item, quantity=5)
    repo = MongoBorrowingRepository()

    assert [b.id for b in await repo.find_pending(item.id)] == [small.id, large.id, larger.id]
    assert [b.id for b in await repo.find_pending(item.id, quantity_above=3)] == [large.id, larger.id]
    assert [b.id for b in await repo.find_pending(item.id, excluding_id=large.id, quantity_above=3)] == [larger.id]
    assert await repo.find_pending(item.id, quantity_above=5) == []


async def test_ids_and_delete_for_item():
    user = await add_user("alice")
    item = await add_item()
    kept_item = await add_item(name="Laptop")
    doomed = [await add_borrowing(user, item), await add_borrowing(user, item, status=BorrowingStatus.RETURNED)]
    kept = await add_borrowing(user, kept_item)
    repo = MongoBorrowingRepository()

    assert sorted(await repo.ids_for_item(item.id)) == sorted(b.id for b in doomed)
    assert await repo.delete_for_item(item.id) == 2
    assert await repo.ids_for_item(item.id) == []
    assert await repo.find_by_id(kept.id) is not None


async def test_counts_by_status_and_month():
    user = await add_user("alice")
    item = await add_item()
    await add_borrowing(user, item, created_at=datetime(2026, 1, 5, tzinfo=timezone.utc))
    await add_borrowing(user, item, status=BorrowingStatus.BORROWED,
                        created_at=datetime(2026, 1, 20, tzinfo=timezone.utc))
    await add_borrowing(user, item, status=BorrowingStatus.BORROWED,
                        created_at=datetime(2026, 2, 3, tzinfo=timezone.utc))
    repo = MongoBorrowingRepository()

    by_status = await repo.count_by_status()
    assert by_status[BorrowingStatus.PENDING] == 1
    assert by_status[BorrowingStatus.BORROWED] == 2
    assert by_status[BorrowingStatus.RETURNED] == 0
    assert set(by_status) == set(BorrowingStatus)

    assert await repo.count_by_month() == [
        {"year": 2026, "month": 1, "count": 2},
        {"year": 2026, "month": 2, "count": 1},
    ]
    assert await repo.count(statuses=[BorrowingStatus.BORROWED]) == 2


async def test_notification_exists_and_delete_for_borrowings():
    alice = await add_user("alice")
    officer = await add_user("officer", UserRole.OFFICER)
    item = await add_item()
    first = await add_borrowing(alice, item)
    second = await add_borrowing(alice, item)
    await add_notification(officer, first, title="New request")
    await add_notification(alice, first)
    await add_notification(alice, second)
    unrelated = await add_notification(alice)
    repo = MongoNotificationRepository()

    assert await repo.exists(officer.id, first.id, "New request")
    assert not await repo.exists(officer.id, second.id, "New request")
    assert not await repo.exists(alice.id, first.id, "New request")

    assert await repo.delete_for_borrowings([]) == 0
    assert await repo.delete_for_borrowings([first.id]) == 2
    assert not await repo.exists(officer.id, first.id, "New request")
    assert await repo.delete_for_user(alice.id) == 2
    assert await repo.list_for_user(alice.id) == []
    assert await Notification.find_one({"_id": unrelated.id}) is None


async def test_user_counts_references_and_deletes():
    admin = await add_user("admin", UserRole.ADMIN)
    officer = await add_user("officer", UserRole.OFFICER)
    alice = await add_user("alice")
    item = await add_item()
    closed = await add_borrowing(alice, item, status=BorrowingStatus.RETURNED,
                                 approved_by=officer.id, return_approved_by=officer.id)
    approved = await add_borrowing(alice, item, status=BorrowingStatus.APPROVED, approved_by=officer.id)
    users = MongoUserRepository()
    borrowings = MongoBorrowingRepository()

    assert await users.count() == 3
    assert await users.count(role=UserRole.ADMIN) == 1
    assert [u.id for u in await users.find_by_roles([UserRole.OFFICER])] == [officer.id]

    assert await borrowings.clear_user_references(officer.id) == 3
    for borrowing_id in (closed.id, approved.id):
        loaded = await borrowings.find_by_id(borrowing_id)
        assert loaded.approved_by is None
        assert loaded.return_approved_by is None

    assert await borrowings.delete_for_user(alice.id) == 2
    assert await borrowings.find_for_user(alice.id) == []

    await users.delete(admin.id)
    assert await users.find_by_id(admin.id) is None
    assert await users.count(role=UserRole.ADMIN) == 0


async def test_item_delete_cascades_in_the_database(mongo_services):
    admin = await add_user("admin", UserRole.ADMIN)
    alice = await add_user("alice")
    item = await add_item()
    other = await add_item(name="Laptop")
    doomed = await add_borrowing(alice, item)
    kept = await add_borrowing(alice, other)
    await add_notification(alice, doomed)
    kept_note = await add_notification(alice, kept)

    await mongo_services.inventory.delete(item.id, admin, audit={"ip_address": "10.0.0.5"})

    assert await Item.find_one({"_id": item.id}) is None
    assert await Borrowing.find_one({"_id": doomed.id}) is None
    assert await Borrowing.find_one({"_id": kept.id}) is not None
    assert [n.id for n in await Notification.find({"user_id": alice.id}).to_list()] == [kept_note.id]
    log = await ActivityLog.find_one({"action": "Deleted item Projector"})
    assert log.ip_address == "10.0.0.5"


async def test_user_delete_cascades_in_the_database(mongo_services):
    admin = await add_user("admin", UserRole.ADMIN)
    officer = await add_user("officer", UserRole.OFFICER)
    alice = await add_user("alice")
    bob = await add_user("bob")
    item = await add_item(quantity=5, available=2)
    held = await add_borrowing(alice, item, quantity=3, status=BorrowingStatus.BORROWED, approved_by=officer.id)
    bobs = await add_borrowing(bob, item, status=BorrowingStatus.RETURNED,
                               approved_by=alice.id, return_approved_by=officer.id)
    await add_notification(officer, held, title="New request")
    await add_notification(alice)
    bobs_note = await add_notification(bob, bobs)

    await mongo_services.accounts.delete(alice.id, admin)

    assert await User.find_one({"_id": alice.id}) is None
    assert await Borrowing.find_one({"_id": held.id}) is None
    assert (await Item.find_one({"_id": item.id})).available_quantity == 5
    remaining = await Notification.find_all().to_list()
    assert [n.id for n in remaining] == [bobs_note.id]
    kept = await Borrowing.find_one({"_id": bobs.id})
    assert kept.approved_by is None
    assert kept.return_approved_by == officer.id

import pytest
from beanie import PydanticObjectId

from equiploan.core.errors import NotFoundError, UnauthorizedRoleError
from equiploan.models.enum import BorrowingStatus, UserRole
from equiploan.models.notification import Notification
from equiploan.models.user import User

from tests.fakes import FakeWebSocket


async def lend_to_alice_and_bob(services, officer, alice, bob, item, due_date):
    held = await services.workflow.create(alice, item.id, 2, due_date)
    await services.workflow.approve(held.id, officer)
    pending = await services.workflow.create(alice, item.id, 1, due_date)
    bobs = await services.workflow.create(bob, item.id, 1, due_date)
    await services.workflow.approve(bobs.id, officer)
    return held, pending, bobs


async def test_delete_user_removes_their_borrowings_and_releases_stock(
    services, store, admin, officer, alice, bob, make_item, due_date
):
    item = make_item(quantity=5)
    held, pending, bobs = await lend_to_alice_and_bob(services, officer, alice, bob, item, due_date)
    store.put("notifications", Notification(user_id=alice.id, title="Welcome", message="hi"))
    assert store.items[item.id].available_quantity == 2

    deleted = await services.accounts.delete(alice.id, admin, audit={"ip_address": "10.0.0.5", "user_agent": "pytest"})

    assert deleted.username == "alice"
    assert alice.id not in store.users
    assert held.id not in store.borrowings
    assert pending.id not in store.borrowings
    assert store.borrowings[bobs.id].status == BorrowingStatus.APPROVED
    # only bob's approval still holds a unit
    assert store.items[item.id].available_quantity == 4
    assert not [n for n in store.notifications.values() if n.user_id == alice.id]
    related = {n.related_borrowing_id for n in store.notifications.values()}
    assert held.id not in related and pending.id not in related
    assert bobs.id in related

    [entry] = [e for e in store.activity_logs.values() if e.action == "Deleted user alice"]
    assert entry.user_id == admin.id
    assert entry.details == {"borrowings_removed": 2, "notifications_removed": 4}
    assert (entry.ip_address, entry.user_agent) == ("10.0.0.5", "pytest")


async def test_deleting_an_approver_clears_references(services, store, admin, officer, bob, make_item, due_date):
    item = make_item(quantity=3)
    borrowing = await services.workflow.create(bob, item.id, 1, due_date)
    await services.workflow.approve(borrowing.id, officer)
    await services.workflow.mark_borrowed(borrowing.id, officer)
    await services.workflow.request_return(borrowing.id, bob)
    await services.workflow.approve_return(borrowing.id, officer)

    await services.accounts.delete(officer.id, admin)

    kept = store.borrowings[borrowing.id]
    assert kept.status == BorrowingStatus.RETURNED
    assert kept.approved_by is None
    assert kept.return_approved_by is None
    assert not [n for n in store.notifications.values() if n.user_id == officer.id]
    assert store.items[item.id].available_quantity == 3


async def test_released_stock_is_broadcast(services, registry, store, admin, officer, alice, make_item, due_date):
    item = make_item(quantity=2)
    borrowing = await services.workflow.create(alice, item.id, 2, due_date)
    await services.workflow.approve(borrowing.id, officer)
    socket = FakeWebSocket()
    await registry.connect(socket, str(officer.id))

    await services.accounts.delete(alice.id, admin)

    [event] = socket.of_type("item:updated")
    assert event["data"]["available_quantity"] == 2


async def test_delete_user_guards(services, store, admin, officer, alice):
    with pytest.raises(UnauthorizedRoleError):
        await services.accounts.delete(alice.id, officer)
    with pytest.raises(UnauthorizedRoleError, match="themselves"):
        await services.accounts.delete(admin.id, admin)
    with pytest.raises(NotFoundError):
        await services.accounts.delete(PydanticObjectId(), admin)
    assert alice.id in store.users


async def test_last_admin_cannot_be_deleted(services, store, admin):
    # an admin whose own record is already gone
    stale = User(id=PydanticObjectId(), username="stale", hashed_password="not-a-real-hash", role=UserRole.ADMIN)

    with pytest.raises(UnauthorizedRoleError, match="last admin"):
        await services.accounts.delete(admin.id, stale)
    assert admin.id in store.users


async def test_failed_delete_rolls_back(monkeypatch, services, store, admin, officer, alice, make_item, due_date):
    item = make_item(quantity=5)
    borrowing = await services.workflow.create(alice, item.id, 2, due_date)
    await services.workflow.approve(borrowing.id, officer)
    rollbacks = services.transactions.rollbacks

    async def broken_delete(user_id, session=None):
        raise RuntimeError("write failed")

    monkeypatch.setattr(services.accounts.users, "delete", broken_delete)

    with pytest.raises(RuntimeError):
        await services.accounts.delete(alice.id, admin)

    assert services.transactions.rollbacks == rollbacks + 1
    assert alice.id in store.users
    assert store.borrowings[borrowing.id].status == BorrowingStatus.APPROVED
    assert store.items[item.id].available_quantity == 3

import asyncio

import pytest

from equiploan.core.errors import InsufficientStockError, InvalidStateError
from equiploan.models.borrowing import Borrowing
from equiploan.models.enum import BorrowingStatus
from equiploan.services.borrowing_workflow import AUTO_REJECT_NOTE


async def test_approval_rejects_only_requests_that_no_longer_fit(
    services, store, officer, alice, bob, carol, make_item, due_date
):
    item = make_item(quantity=5)
    workflow = services.workflow
    a = await workflow.create(alice, item.id, 4, due_date)
    b = await workflow.create(bob, item.id, 3, due_date)
    c = await workflow.create(carol, item.id, 1, due_date)

    await workflow.approve(a.id, officer)

    assert store.items[item.id].available_quantity == 1
    assert store.borrowings[b.id].status == BorrowingStatus.REJECTED
    assert store.borrowings[b.id].notes == AUTO_REJECT_NOTE
    assert store.borrowings[b.id].approved_by == officer.id
    assert store.borrowings[c.id].status == BorrowingStatus.PENDING

    bob_titles = [n.title for n in store.notifications.values() if n.user_id == bob.id]
    assert bob_titles == ["Borrowing Auto-Rejected"]
    assert not [n for n in store.notifications.values() if n.user_id == carol.id]

    await workflow.approve(c.id, officer)
    assert store.items[item.id].available_quantity == 0


async def test_auto_rejection_leaves_other_items_alone(services, store, officer, alice, bob, make_item, due_date):
    projector = make_item(quantity=2)
    laptop = make_item(quantity=2, name="Laptop")
    first = await services.workflow.create(alice, projector.id, 2, due_date)
    other = await services.workflow.create(bob, laptop.id, 2, due_date)

    await services.workflow.approve(first.id, officer)

    assert store.borrowings[other.id].status == BorrowingStatus.PENDING
    assert store.items[laptop.id].available_quantity == 2


async def test_concurrent_approvals_never_oversell(services, store, officer, alice, bob, make_item, due_date):
    item = make_item(quantity=5)
    a = await services.workflow.create(alice, item.id, 3, due_date)
    b = await services.workflow.create(bob, item.id, 3, due_date)

    results = await asyncio.gather(
        services.workflow.approve(a.id, officer),
        services.workflow.approve(b.id, officer),
        return_exceptions=True,
    )

    approved = [r for r in results if isinstance(r, Borrowing)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(approved) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], (InvalidStateError, InsufficientStockError))
    assert store.items[item.id].available_quantity == 2
    statuses = sorted(store.borrowings[x.id].status.value for x in (a, b))
    assert statuses == ["approved", "rejected"]


async def test_concurrent_approvals_that_both_fit(services, store, officer, alice, bob, make_item, due_date):
    item = make_item(quantity=5)
    a = await services.workflow.create(alice, item.id, 2, due_date)
    b = await services.workflow.create(bob, item.id, 2, due_date)

    await asyncio.gather(
        services.workflow.approve(a.id, officer),
        services.workflow.approve(b.id, officer),
    )

    assert store.items[item.id].available_quantity == 1
    assert {store.borrowings[x.id].status for x in (a, b)} == {BorrowingStatus.APPROVED}


async def test_approve_fails_when_stock_shrank_since_request(services, store, officer, alice, make_item, due_date):
    item = make_item(quantity=5)
    borrowing = await services.workflow.create(alice, item.id, 4, due_date)
    store.items[item.id].available_quantity = 2

    with pytest.raises(InsufficientStockError, match="no longer available"):
        await services.workflow.approve(borrowing.id, officer)
    assert store.borrowings[borrowing.id].status == BorrowingStatus.PENDING
    assert store.items[item.id].available_quantity == 2

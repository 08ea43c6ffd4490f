from datetime import timedelta

from equiploan.models.borrowing import Borrowing
from equiploan.models.enum import BorrowingStatus
from equiploan.models.user import utc_now
from equiploan.scheduler.jobs import OVERDUE_REPORT, OVERDUE_WARNING, notify_overdue_borrowings


def lend(store, user, item, status=BorrowingStatus.BORROWED, days_late=2):
    borrowing = Borrowing(
        user_id=user.id,
        item_id=item.id,
        quantity=1,
        status=status,
        expected_return_date=utc_now() - timedelta(days=days_late),
    )
    return store.put("borrowings", borrowing)


async def test_overdue_notifications_are_created_once(services, store, officer, alice, make_item):
    item = make_item()
    late = lend(store, alice, item)

    assert await notify_overdue_borrowings(services) == 2
    assert await notify_overdue_borrowings(services) == 0

    titles = sorted((n.user_id, n.title) for n in store.notifications.values())
    assert titles == sorted([(alice.id, OVERDUE_WARNING), (officer.id, OVERDUE_REPORT)])
    assert all(n.related_borrowing_id == late.id for n in store.notifications.values())
    # overdue is never written back as a status
    assert store.borrowings[late.id].status == BorrowingStatus.BORROWED


async def test_only_handed_over_and_late_borrowings_count(services, store, officer, alice, make_item):
    item = make_item()
    lend(store, alice, item, status=BorrowingStatus.RETURNING)
    lend(store, alice, item, status=BorrowingStatus.APPROVED)
    on_time = lend(store, alice, item, days_late=-3)

    assert await notify_overdue_borrowings(services) == 0
    assert store.notifications == {}
    assert not store.borrowings[on_time.id].is_overdue()


async def test_overdue_flag_is_derived(store, alice, make_item):
    item = make_item()
    late = lend(store, alice, item)
    assert late.is_overdue()

    late.status = BorrowingStatus.RETURNED
    assert not late.is_overdue()


async def test_job_swallows_repository_errors(services, store, alice, make_item):
    lend(store, alice, make_item())

    async def broken(now, skip=0, limit=0):
        raise RuntimeError("database unavailable")

    services.borrowings.find_overdue = broken
    assert await notify_overdue_borrowings(services) == 0


async def test_reports_see_overdue(services, store, officer, alice, make_item):
    item = make_item()
    late = lend(store, alice, item)
    lend(store, alice, item, status=BorrowingStatus.PENDING)

    stats = await services.reports.dashboard()

    assert stats.total_borrowings == 2
    assert stats.overdue_borrowings == 1
    assert stats.borrowed_borrowings == 1
    assert stats.pending_borrowings == 1
    assert [b.id for b in await services.reports.overdue()] == [late.id]
    assert [b.id for b in await services.reports.active()] == [late.id]

import pytest

from equiploan.models.enum import BorrowingStatus, NotificationType
from equiploan.models.notification import NotificationPayload
from equiploan.services.notifications import Outbox

from tests.fakes import FakeWebSocket


async def connect(registry, user, fail=False):
    socket = FakeWebSocket(fail=fail)
    await registry.connect(socket, str(user.id))
    return socket


async def test_records_are_written_and_pushed_after_commit(
    services, store, registry, officer, alice, make_item, due_date
):
    officer_socket = await connect(registry, officer)
    alice_socket = await connect(registry, alice)
    item = make_item()

    borrowing = await services.workflow.create(alice, item.id, 1, due_date)

    [record] = [n for n in store.notifications.values() if n.user_id == officer.id]
    assert record.type == NotificationType.BORROW_REQUEST
    assert record.related_borrowing_id == borrowing.id
    assert record.is_read is False

    [pushed] = officer_socket.of_type("notification")
    assert pushed["data"]["id"] == str(record.id)
    assert pushed["data"]["title"] == "New Borrowing Request"
    assert alice_socket.of_type("notification") == []
    # everyone connected sees the list change
    assert alice_socket.of_type("borrowing:created")
    assert officer_socket.of_type("borrowing:created")


async def test_failed_push_keeps_transition_and_drops_socket(
    services, store, registry, officer, alice, make_item, due_date
):
    await connect(registry, officer, fail=True)
    item = make_item()

    borrowing = await services.workflow.create(alice, item.id, 1, due_date)

    assert store.borrowings[borrowing.id].status == BorrowingStatus.PENDING
    assert len(store.notifications) == 1
    assert not registry.is_connected(str(officer.id))


async def test_failed_transition_sends_nothing(services, store, registry, officer, alice, make_item, due_date):
    socket = await connect(registry, alice)
    item = make_item()
    borrowing = await services.workflow.create(alice, item.id, 1, due_date)
    sent_before = len(socket.sent)
    notifications_before = len(store.notifications)

    async def broken_update(item, session=None):
        raise RuntimeError("write failed")

    services.items.update = broken_update
    with pytest.raises(RuntimeError):
        await services.workflow.approve(borrowing.id, officer)

    assert len(socket.sent) == sent_before
    assert len(store.notifications) == notifications_before


async def test_user_with_several_sockets_gets_every_copy(registry, alice):
    first = await connect(registry, alice)
    second = await connect(registry, alice)

    delivered = await registry.send_to_user(str(alice.id), "notification", {"title": "hello"})

    assert delivered == 2
    assert first.sent == second.sent == [{"type": "notification", "data": {"title": "hello"}}]


async def test_disconnect_forgets_user(registry, alice):
    socket = await connect(registry, alice)
    registry.disconnect(socket, str(alice.id))

    assert not registry.is_connected(str(alice.id))
    assert await registry.send_to_user(str(alice.id), "notification", {}) == 0


async def test_send_outside_transaction(services, store, registry, alice):
    socket = await connect(registry, alice)
    outbox = Outbox()
    services.notifier.notify_user(outbox, alice.id, NotificationPayload(title="Heads up", message="Audit tomorrow"))

    await services.notifier.send(outbox)

    [record] = store.notifications.values()
    assert record.title == "Heads up"
    assert socket.of_type("notification")[0]["data"]["message"] == "Audit tomorrow"


async def test_read_state_is_per_user(services, store, alice, bob):
    outbox = Outbox()
    mine = services.notifier.notify_user(outbox, alice.id, NotificationPayload(title="One", message="m"))
    services.notifier.notify_user(outbox, alice.id, NotificationPayload(title="Two", message="m"))
    services.notifier.notify_user(outbox, bob.id, NotificationPayload(title="Bob's", message="m"))
    await services.notifier.send(outbox)

    assert await services.notifications.unread_count(alice.id) == 2
    assert await services.notifications.mark_read(mine.id, bob.id) is None
    assert (await services.notifications.mark_read(mine.id, alice.id)).is_read
    assert await services.notifications.mark_all_read(alice.id) == 1
    assert await services.notifications.unread_count(alice.id) == 0
    assert await services.notifications.unread_count(bob.id) == 1
    assert await services.notifications.delete(mine.id, bob.id) is False
    assert await services.notifications.delete(mine.id, alice.id) is True

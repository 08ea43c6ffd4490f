# equiploan/services/container.py
from dataclasses import dataclass

from equiploan.core.websocket_manager import ConnectionRegistry
from equiploan.repositories.base import (
    ActivityLogRepository,
    BorrowingRepository,
    CategoryRepository,
    ItemRepository,
    NotificationRepository,
    TransactionManager,
    UserRepository,
)
from equiploan.repositories.borrowings import MongoBorrowingRepository
from equiploan.repositories.items import MongoCategoryRepository, MongoItemRepository
from equiploan.repositories.notifications import MongoNotificationRepository
from equiploan.repositories.session import MongoTransactionManager
from equiploan.repositories.users import MongoActivityLogRepository, MongoUserRepository
from equiploan.services.accounts import AccountService
from equiploan.services.activity import ActivityRecorder
from equiploan.services.borrowing_workflow import BorrowingWorkflow
from equiploan.services.inventory import InventoryLedger
from equiploan.services.notifications import NotificationDispatcher
from equiploan.services.reports import ReportService


@dataclass
class LendingServices:
    """Everything the routers and scheduler need, wired once at startup."""
    items: ItemRepository
    categories: CategoryRepository
    borrowings: BorrowingRepository
    notifications: NotificationRepository
    users: UserRepository
    activity_logs: ActivityLogRepository
    transactions: TransactionManager
    registry: ConnectionRegistry
    notifier: NotificationDispatcher
    activity: ActivityRecorder
    workflow: BorrowingWorkflow
    inventory: InventoryLedger
    reports: ReportService
    accounts: AccountService


def build_services(
    items: ItemRepository,
    categories: CategoryRepository,
    borrowings: BorrowingRepository,
    notifications: NotificationRepository,
    users: UserRepository,
    activity_logs: ActivityLogRepository,
    transactions: TransactionManager,
    registry: ConnectionRegistry,
) -> LendingServices:
    notifier = NotificationDispatcher(notifications, users, registry)
    activity = ActivityRecorder(activity_logs)
    return LendingServices(
        items=items,
        categories=categories,
        borrowings=borrowings,
        notifications=notifications,
        users=users,
        activity_logs=activity_logs,
        transactions=transactions,
        registry=registry,
        notifier=notifier,
        activity=activity,
        workflow=BorrowingWorkflow(items, borrowings, transactions, notifier, activity),
        inventory=InventoryLedger(items, categories, borrowings, notifications, transactions, notifier, activity),
        reports=ReportService(borrowings, items, users),
        accounts=AccountService(users, items, borrowings, notifications, transactions, notifier, activity),
    )


def build_mongo_services(client, registry: ConnectionRegistry) -> LendingServices:
    return build_services(
        items=MongoItemRepository(),
        categories=MongoCategoryRepository(),
        borrowings=MongoBorrowingRepository(),
        notifications=MongoNotificationRepository(),
        users=MongoUserRepository(),
        activity_logs=MongoActivityLogRepository(),
        transactions=MongoTransactionManager(client),
        registry=registry,
    )

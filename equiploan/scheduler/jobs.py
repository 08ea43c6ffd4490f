# equiploan/scheduler/jobs.py
import logging

from equiploan.models.enum import NotificationType, UserRole
from equiploan.models.notification import NotificationPayload
from equiploan.models.user import utc_now
from equiploan.services.container import LendingServices
from equiploan.services.notifications import Outbox

logger = logging.getLogger("scheduler_jobs")

OVERDUE_WARNING = "Overdue Warning"
OVERDUE_REPORT = "Overdue Report"


async def notify_overdue_borrowings(services: LendingServices) -> int:
    """
    Warn borrowers and officers about overdue borrowings.
    Each (recipient, borrowing, title) notification is created at most once; no status is written.
    """
    now_utc = utc_now()
    logger.info(f"Running notify_overdue_borrowings job at {now_utc}")
    try:
        overdue = await services.borrowings.find_overdue(now_utc)
        if not overdue:
            logger.info("No overdue borrowings found.")
            return 0
        officers = await services.users.find_by_roles([UserRole.OFFICER])

        outbox = Outbox()
        for borrowing in overdue:
            item = await services.items.find_by_id(borrowing.item_id)
            item_name = item.name if item else str(borrowing.item_id)

            if not await services.notifications.exists(borrowing.user_id, borrowing.id, OVERDUE_WARNING):
                outbox.notify_user(borrowing.user_id, NotificationPayload(
                    title=OVERDUE_WARNING,
                    message=f"Your borrowing for {item_name} is overdue! Please return it immediately.",
                    type=NotificationType.SYSTEM,
                    path="/my-borrowings",
                    related_borrowing_id=borrowing.id,
                ))
            for officer in officers:
                if not await services.notifications.exists(officer.id, borrowing.id, OVERDUE_REPORT):
                    outbox.notify_user(officer.id, NotificationPayload(
                        title=OVERDUE_REPORT,
                        message=f"User {borrowing.user_id} has an overdue item: {item_name}",
                        type=NotificationType.SYSTEM,
                        path="/borrowings",
                        related_borrowing_id=borrowing.id,
                    ))

        await services.notifier.send(outbox)
        created = len(outbox.notifications)
        logger.info(f"Overdue check finished. Overdue: {len(overdue)}, notifications created: {created}")
        return created
    except Exception as e:
        logger.error(f"Error during notify_overdue_borrowings job: {e}", exc_info=True)
        return 0

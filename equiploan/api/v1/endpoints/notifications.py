# equiploan/api/v1/endpoints/notifications.py
from typing import List

from fastapi import APIRouter, Depends, Path, Query, Request, status

from equiploan.api.deps import get_services, to_response
from equiploan.core.errors import NotFoundError
from equiploan.core.rate_limiter import limiter
from equiploan.core.security import get_current_active_user
from equiploan.core.utils import parse_object_id
from equiploan.models.notification import Notification
from equiploan.models.user import User
from equiploan.services.container import LendingServices

router = APIRouter(tags=["Notifications"])


@router.get("/", response_model=List[Notification.Response])
@limiter.limit("120/minute")
async def read_notifications(
    request: Request,
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    notifications = await services.notifications.list_for_user(current_user.id, limit=limit)
    return [to_response(Notification.Response, n) for n in notifications]


@router.get("/unread-count")
@limiter.limit("120/minute")
async def read_unread_count(
    request: Request,
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    return {"count": await services.notifications.unread_count(current_user.id)}


@router.put("/read-all")
@limiter.limit("30/minute")
async def mark_all_notifications_read(
    request: Request,
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    updated = await services.notifications.mark_all_read(current_user.id)
    return {"message": "All notifications marked as read", "updated": updated}


@router.put("/{notification_id}/read", response_model=Notification.Response)
@limiter.limit("120/minute")
async def mark_notification_read(
    request: Request,
    notification_id: str = Path(...),
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    notification = await services.notifications.mark_read(
        parse_object_id(notification_id, "notification ID"), current_user.id
    )
    if notification is None:
        raise NotFoundError("Notification not found")
    return to_response(Notification.Response, notification)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("60/minute")
async def delete_notification(
    request: Request,
    notification_id: str = Path(...),
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    deleted = await services.notifications.delete(parse_object_id(notification_id, "notification ID"), current_user.id)
    if not deleted:
        raise NotFoundError("Notification not found")
    return None

# equiploan/api/v1/api.py
from fastapi import APIRouter

from equiploan.api.v1.endpoints import (
    activity_logs,
    auth,
    borrowings,
    categories,
    items,
    notifications,
    reports,
    users,
    websocket,
)

api_router_v1 = APIRouter(prefix="/api/v1")

api_router_v1.include_router(auth.router, prefix="/auth")
api_router_v1.include_router(users.router, prefix="/users")
api_router_v1.include_router(categories.router, prefix="/categories")
api_router_v1.include_router(items.router, prefix="/items")
api_router_v1.include_router(borrowings.router, prefix="/borrowings")
api_router_v1.include_router(notifications.router, prefix="/notifications")
api_router_v1.include_router(reports.router)
api_router_v1.include_router(activity_logs.router, prefix="/activity-logs")

# Mounted at the root: /ws/notifications
ws_router = websocket.router

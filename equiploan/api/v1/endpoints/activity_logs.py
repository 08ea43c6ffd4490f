# equiploan/api/v1/endpoints/activity_logs.py
import math

from fastapi import APIRouter, Depends, Query

from equiploan.api.deps import get_services, to_response
from equiploan.core.security import require_admin
from equiploan.models.activity_log import ActivityLog, ActivityLogPage
from equiploan.services.container import LendingServices

router = APIRouter(
    tags=["Activity Logs"],
    dependencies=[Depends(require_admin)]
)


@router.get("/", response_model=ActivityLogPage, summary="List Activity Logs (Admin Only)")
async def read_activity_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    services: LendingServices = Depends(get_services),
):
    total = await services.activity_logs.count()
    logs = await services.activity_logs.list(skip=(page - 1) * limit, limit=limit)
    return ActivityLogPage(
        logs=[to_response(ActivityLog.Response, log) for log in logs],
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit) if total else 0,
    )

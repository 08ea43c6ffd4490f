# equiploan/api/v1/endpoints/reports.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from equiploan.api.deps import borrowing_response, get_services
from equiploan.core.security import require_admin_or_officer
from equiploan.core.utils import parse_optional_object_id
from equiploan.models.borrowing import Borrowing
from equiploan.models.enum import BorrowingStatus
from equiploan.models.report import DashboardStats
from equiploan.services.container import LendingServices

router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
    dependencies=[Depends(require_admin_or_officer)]
)


@router.get("/dashboard", response_model=DashboardStats, summary="Dashboard Statistics")
async def get_dashboard_stats(services: LendingServices = Depends(get_services)):
    return await services.reports.dashboard()


# --- Items currently out (borrowed or being returned) ---
@router.get("/active-borrowings", response_model=List[Borrowing.Response], summary="Get Active Borrowings")
async def get_active_borrowings(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    services: LendingServices = Depends(get_services),
):
    return [borrowing_response(b) for b in await services.reports.active(skip=skip, limit=limit)]


@router.get("/overdue-borrowings", response_model=List[Borrowing.Response], summary="Get Overdue Borrowings")
async def get_overdue_borrowings(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    services: LendingServices = Depends(get_services),
):
    """Borrowed and past the expected return date, most overdue first."""
    return [borrowing_response(b) for b in await services.reports.overdue(skip=skip, limit=limit)]


@router.get("/item-borrowing-history", response_model=List[Borrowing.Response],
            summary="Get Item Borrowing History")
async def get_item_borrowing_history(
    item_id: Optional[str] = Query(None, description="Filter by item ID"),
    status_filter: Optional[List[BorrowingStatus]] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    services: LendingServices = Depends(get_services),
):
    borrowings = await services.reports.item_history(
        item_id=parse_optional_object_id(item_id, "item ID"), statuses=status_filter, skip=skip, limit=limit
    )
    return [borrowing_response(b) for b in borrowings]

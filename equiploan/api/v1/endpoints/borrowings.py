# equiploan/api/v1/endpoints/borrowings.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Request, status

from equiploan.api.deps import borrowing_response, client_info, get_services
from equiploan.core.rate_limiter import limiter
from equiploan.core.security import get_current_active_user, require_officer
from equiploan.core.utils import parse_object_id, parse_optional_object_id
from equiploan.models.borrowing import Borrowing
from equiploan.models.enum import BorrowingStatus
from equiploan.models.user import User
from equiploan.services.container import LendingServices

router = APIRouter(tags=["Borrowings"])


# --- POST / ---
@router.post("/", response_model=Borrowing.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/hour")
async def create_borrowing(
    request: Request,
    borrowing_in: Borrowing.Create = Body(...),
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    """Submit a borrowing request. No stock is reserved until an officer approves it."""
    borrowing = await services.workflow.create(
        current_user,
        parse_object_id(borrowing_in.item_id, "item ID"),
        borrowing_in.quantity,
        borrowing_in.expected_return_date,
        borrowing_in.purpose,
        audit=client_info(request),
    )
    return borrowing_response(borrowing)


# --- GET / ---
@router.get("/", response_model=List[Borrowing.Response], summary="List Borrowings")
@limiter.limit("120/minute")
async def read_borrowings(
    request: Request,
    status_filter: Optional[List[BorrowingStatus]] = Query(None, alias="status"),
    item_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    """Admins and officers see every borrowing; regular users only their own."""
    borrowings = await services.workflow.list(
        current_user,
        statuses=status_filter,
        item_id=parse_optional_object_id(item_id, "item ID"),
        skip=skip,
        limit=limit,
    )
    return [borrowing_response(b) for b in borrowings]


# --- GET /my-history ---
@router.get("/my-history", response_model=List[Borrowing.Response], summary="My Borrowing History")
@limiter.limit("60/minute")
async def read_my_borrowings(
    request: Request,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    borrowings = await services.workflow.history_for(current_user, skip=skip, limit=limit)
    return [borrowing_response(b) for b in borrowings]


# --- GET /{borrowing_id} ---
@router.get("/{borrowing_id}", response_model=Borrowing.Response, summary="Get Borrowing Details")
@limiter.limit("120/minute")
async def read_borrowing(
    request: Request,
    borrowing_id: str = Path(...),
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    borrowing = await services.workflow.get(parse_object_id(borrowing_id, "borrowing ID"), current_user)
    return borrowing_response(borrowing)


# --- PUT /{borrowing_id}/approve ---
@router.put("/{borrowing_id}/approve", response_model=Borrowing.Response, summary="Approve Request (Officer)")
@limiter.limit("60/minute")
async def approve_borrowing(
    request: Request,
    borrowing_id: str = Path(...),
    approve_in: Optional[Borrowing.Approve] = Body(None),
    current_user: User = Depends(require_officer),
    services: LendingServices = Depends(get_services),
):
    """Reserve stock for the request and reject pending requests the remaining stock can no longer cover."""
    borrowing = await services.workflow.approve(
        parse_object_id(borrowing_id, "borrowing ID"), current_user, approve_in.notes if approve_in else None,
        audit=client_info(request),
    )
    return borrowing_response(borrowing)


# --- PUT /{borrowing_id}/reject ---
@router.put("/{borrowing_id}/reject", response_model=Borrowing.Response, summary="Reject Request (Officer)")
@limiter.limit("60/minute")
async def reject_borrowing(
    request: Request,
    borrowing_id: str = Path(...),
    reject_in: Optional[Borrowing.Reject] = Body(None),
    current_user: User = Depends(require_officer),
    services: LendingServices = Depends(get_services),
):
    borrowing = await services.workflow.reject(
        parse_object_id(borrowing_id, "borrowing ID"), current_user,
        (reject_in.reason or reject_in.notes) if reject_in else None,
        audit=client_info(request),
    )
    return borrowing_response(borrowing)


# --- PUT /{borrowing_id}/borrow ---
@router.put("/{borrowing_id}/borrow", response_model=Borrowing.Response, summary="Hand Over Item (Officer)")
@limiter.limit("60/minute")
async def mark_borrowed(
    request: Request,
    borrowing_id: str = Path(...),
    handover_in: Optional[Borrowing.Handover] = Body(None),
    current_user: User = Depends(require_officer),
    services: LendingServices = Depends(get_services),
):
    handover_in = handover_in or Borrowing.Handover()
    borrowing = await services.workflow.mark_borrowed(
        parse_object_id(borrowing_id, "borrowing ID"), current_user,
        handover_in.condition_before, handover_in.notes,
        audit=client_info(request),
    )
    return borrowing_response(borrowing)


# --- PUT /{borrowing_id}/return-request ---
@router.put("/{borrowing_id}/return-request", response_model=Borrowing.Response, summary="Request Return")
@limiter.limit("30/minute")
async def request_return(
    request: Request,
    borrowing_id: str = Path(...),
    return_in: Optional[Borrowing.ReturnRequest] = Body(None),
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    return_in = return_in or Borrowing.ReturnRequest()
    borrowing = await services.workflow.request_return(
        parse_object_id(borrowing_id, "borrowing ID"), current_user,
        return_in.condition_after, return_in.notes,
        audit=client_info(request),
    )
    return borrowing_response(borrowing)


# --- PUT /{borrowing_id}/approve-return ---
@router.put("/{borrowing_id}/approve-return", response_model=Borrowing.Response,
            summary="Approve Return (Officer)")
@limiter.limit("60/minute")
async def approve_return(
    request: Request,
    borrowing_id: str = Path(...),
    approve_in: Optional[Borrowing.Approve] = Body(None),
    current_user: User = Depends(require_officer),
    services: LendingServices = Depends(get_services),
):
    """Close the borrowing and put its units back into available stock."""
    borrowing = await services.workflow.approve_return(
        parse_object_id(borrowing_id, "borrowing ID"), current_user, approve_in.notes if approve_in else None,
        audit=client_info(request),
    )
    return borrowing_response(borrowing)

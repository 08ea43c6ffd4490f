# equiploan/api/v1/endpoints/items.py
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Request, status
from loguru import logger

from equiploan.api.deps import client_info, get_services, to_response
from equiploan.core.rate_limiter import limiter
from equiploan.core.security import get_current_active_user, require_admin, require_admin_or_officer
from equiploan.core.utils import parse_object_id, parse_optional_object_id
from equiploan.models.item import Item
from equiploan.models.user import User
from equiploan.services.container import LendingServices

router = APIRouter(tags=["Items"])


# --- POST / ---
@router.post("/", response_model=Item.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/hour")
async def create_item(
    request: Request,
    item_in: Item.Create = Body(...),
    current_user: User = Depends(require_admin_or_officer),
    services: LendingServices = Depends(get_services),
):
    item = await services.inventory.create(item_in, current_user, audit=client_info(request))
    return to_response(Item.Response, item)


# --- GET / ---
@router.get("/", response_model=List[Item.Response], summary="List Items")
@limiter.limit("120/minute")
async def read_items(
    request: Request,
    name: Optional[str] = Query(None, description="Case-insensitive name filter"),
    category_id: Optional[str] = Query(None),
    available_only: bool = Query(False, description="Only items that can be requested right now"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    items = await services.inventory.list(
        name=name,
        category_id=parse_optional_object_id(category_id, "category ID"),
        available_only=available_only,
        skip=skip,
        limit=limit,
    )
    return [to_response(Item.Response, item) for item in items]


# --- GET /{item_id} ---
@router.get("/{item_id}", response_model=Item.Response, summary="Get Item Details")
@limiter.limit("120/minute")
async def read_item(
    request: Request,
    item_id: str = Path(...),
    current_user: User = Depends(get_current_active_user),
    services: LendingServices = Depends(get_services),
):
    item = await services.inventory.get(parse_object_id(item_id, "item ID"))
    return to_response(Item.Response, item)


# --- PUT /{item_id} ---
@router.put("/{item_id}", response_model=Item.Response, summary="Update Item (Admin/Officer)")
@limiter.limit("60/hour")
async def update_item(
    request: Request,
    item_id: str = Path(...),
    item_in: Item.Update = Body(...),
    current_user: User = Depends(require_admin_or_officer),
    services: LendingServices = Depends(get_services),
):
    item = await services.inventory.update(parse_object_id(item_id, "item ID"), item_in, current_user,
                                             audit=client_info(request))
    return to_response(Item.Response, item)


# --- PATCH /{item_id}/quantity ---
@router.patch("/{item_id}/quantity", response_model=Item.Response, summary="Set Total Stock (Admin/Officer)")
@limiter.limit("60/hour")
async def adjust_item_quantity(
    request: Request,
    item_id: str = Path(...),
    adjust_in: Item.QuantityAdjust = Body(...),
    current_user: User = Depends(require_admin_or_officer),
    services: LendingServices = Depends(get_services),
):
    """Change the total quantity; available units shift by the same delta, clamped to [0, total]."""
    item = await services.inventory.adjust_total_quantity(
        parse_object_id(item_id, "item ID"), adjust_in.quantity, current_user, audit=client_info(request)
    )
    return to_response(Item.Response, item)


# --- DELETE /{item_id} ---
@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Item (Admin Only)")
@limiter.limit("10/hour")
async def delete_item(
    request: Request,
    item_id: str = Path(...),
    current_user: User = Depends(require_admin),
    services: LendingServices = Depends(get_services),
):
    """Permanently delete an item together with its borrowings and their notifications."""
    logger.warning(f"User '{current_user.username}' attempting to delete item: {item_id}")
    await services.inventory.delete(parse_object_id(item_id, "item ID"), current_user, audit=client_info(request))
    return None

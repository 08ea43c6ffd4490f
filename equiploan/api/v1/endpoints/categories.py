# equiploan/api/v1/endpoints/categories.py
from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Request, status
from loguru import logger

from equiploan.api.deps import client_info, get_services, to_response
from equiploan.core.errors import DuplicateError, InvalidStateError, NotFoundError
from equiploan.core.rate_limiter import limiter
from equiploan.core.security import get_current_active_user, require_admin_or_officer
from equiploan.core.utils import parse_object_id
from equiploan.models.category import Category
from equiploan.models.enum import EntityType
from equiploan.models.user import User, utc_now
from equiploan.services.container import LendingServices

router = APIRouter(tags=["Categories"])


async def get_category_or_404(category_id: str) -> Category:
    category = await Category.find_one({"_id": parse_object_id(category_id, "category ID")})
    if not category:
        raise NotFoundError(f"Category with ID '{category_id}' not found")
    return category


@router.post("/", response_model=Category.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/hour")
async def create_category(
    request: Request,
    category_in: Category.Create = Body(...),
    current_user: User = Depends(require_admin_or_officer),
    services: LendingServices = Depends(get_services),
):
    logger.info(f"User '{current_user.username}' creating category: {category_in.name}")
    if await Category.find_one(Category.name == category_in.name):
        raise DuplicateError("Category name already exists")

    category = Category(**category_in.model_dump(), created_by=current_user.id)
    await category.insert()
    await services.activity.record(current_user.id, f"Created category {category.name}", EntityType.CATEGORY,
                                   category.id, **client_info(request))
    return to_response(Category.Response, category)


# --- GET / ---
@router.get("/", response_model=List[Category.Response], summary="List All Categories")
@limiter.limit("60/minute")
async def read_categories(
    request: Request,
    skip: int = 0,
    limit: int = 100,
    current_user: User = Depends(get_current_active_user),
):
    categories = await Category.find_all(skip=skip, limit=limit).sort("+name").to_list()
    return [to_response(Category.Response, c) for c in categories]


# --- GET /{category_id} ---
@router.get("/{category_id}", response_model=Category.Response, summary="Get Category Details")
@limiter.limit("120/minute")
async def read_category(
    request: Request,
    category_id: str = Path(..., description="The ID of the category to retrieve"),
    current_user: User = Depends(get_current_active_user),
):
    return to_response(Category.Response, await get_category_or_404(category_id))


# --- PUT /{category_id} ---
@router.put("/{category_id}", response_model=Category.Response, summary="Update Category (Admin/Officer)")
@limiter.limit("30/hour")
async def update_category(
    request: Request,
    category_id: str = Path(...),
    category_in: Category.Update = Body(...),
    current_user: User = Depends(require_admin_or_officer),
    services: LendingServices = Depends(get_services),
):
    category = await get_category_or_404(category_id)
    update_data = category_in.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=400, detail="No update data provided.")

    if "name" in update_data and update_data["name"] != category.name:
        if await Category.find_one(Category.name == update_data["name"], Category.id != category.id):
            raise DuplicateError(f"Category name '{update_data['name']}' already exists.")

    update_data["updated_at"] = utc_now()
    await category.update({"$set": update_data})
    updated = await get_category_or_404(category_id)
    await services.activity.record(current_user.id, f"Updated category {updated.name}", EntityType.CATEGORY,
                                   updated.id, **client_info(request))
    return to_response(Category.Response, updated)


# --- DELETE /{category_id} ---
@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete Category (Admin/Officer)")
@limiter.limit("10/hour")
async def delete_category(
    request: Request,
    category_id: str = Path(...),
    current_user: User = Depends(require_admin_or_officer),
    services: LendingServices = Depends(get_services),
):
    """Delete a category only if no item belongs to it."""
    logger.warning(f"User '{current_user.username}' attempting to delete category: {category_id}")
    category = await get_category_or_404(category_id)
    if await services.items.exists_in_category(category.id):
        raise InvalidStateError(f"Cannot delete category '{category.name}' while items still belong to it.")
    await category.delete()
    await services.activity.record(current_user.id, f"Deleted category {category.name}", EntityType.CATEGORY,
                                   category.id, **client_info(request))
    return None

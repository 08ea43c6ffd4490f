# equiploan/api/v1/endpoints/users.py
from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Request, status
from loguru import logger

from equiploan.api.deps import client_info, get_services, to_response
from equiploan.core.errors import DuplicateError, NotFoundError
from equiploan.core.rate_limiter import limiter
from equiploan.core.security import get_password_hash, require_admin
from equiploan.core.utils import parse_object_id
from equiploan.models.enum import EntityType
from equiploan.models.user import User, utc_now
from equiploan.services.container import LendingServices

router = APIRouter(
    tags=["Users - Admin"],
    dependencies=[Depends(require_admin)]
)


async def get_user_or_404(user_id: str) -> User:
    user = await User.find_one({"_id": parse_object_id(user_id, "user ID")})
    if not user:
        raise NotFoundError(f"User with ID '{user_id}' not found")
    return user


# --- GET / ---
@router.get("/", response_model=List[User.Response], summary="List All Users (Admin Only)")
@limiter.limit("30/minute")
async def read_users(request: Request, skip: int = 0, limit: int = 100):
    users = await User.find_all(skip=skip, limit=limit).sort("+username").to_list()
    return [to_response(User.Response, user) for user in users]


# --- POST / ---
@router.post(
    "/",
    response_model=User.Response,
    status_code=status.HTTP_201_CREATED,
    summary="Create User (Admin Only)"
)
@limiter.limit("10/hour")
async def create_user_by_admin(
    request: Request,
    user_in: User.AdminCreate = Body(...),
    current_admin: User = Depends(require_admin),
    services: LendingServices = Depends(get_services),
):
    logger.info(f"Admin '{current_admin.username}' creating user: {user_in.username}")
    if await User.find_one(User.username == user_in.username):
        raise DuplicateError("Username already exists")
    if user_in.email and await User.find_one(User.email == user_in.email):
        raise DuplicateError("Email already exists")

    user_obj = User(**user_in.model_dump(exclude={"password"}), hashed_password=get_password_hash(user_in.password))
    await user_obj.insert()
    await services.activity.record(current_admin.id, f"Created user {user_obj.username}", EntityType.USER,
                                   user_obj.id, {"role": user_obj.role.value}, **client_info(request))
    return to_response(User.Response, user_obj)


# --- GET /{user_id} ---
@router.get("/{user_id}", response_model=User.Response, summary="Get User Details (Admin Only)")
@limiter.limit("60/minute")
async def read_user(request: Request, user_id: str = Path(..., description="The ID of the user to retrieve")):
    return to_response(User.Response, await get_user_or_404(user_id))


# --- PUT /{user_id} ---
@router.put("/{user_id}", response_model=User.Response, summary="Update User (Admin Only)")
@limiter.limit("20/hour")
async def update_user(
    request: Request,
    user_id: str = Path(...),
    user_in: User.AdminUpdate = Body(...),
    current_admin: User = Depends(require_admin),
    services: LendingServices = Depends(get_services),
):
    """Update user details (email, name, password, role, disabled)."""
    user = await get_user_or_404(user_id)
    update_data = user_in.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=400, detail="No update data provided.")

    if update_data.get("email") and update_data["email"] != user.email:
        if await User.find_one(User.email == update_data["email"], User.id != user.id):
            raise DuplicateError("Email already exists")
    if "password" in update_data:
        password = update_data.pop("password")
        if password:
            update_data["hashed_password"] = get_password_hash(password)

    update_data["updated_at"] = utc_now()
    await user.update({"$set": update_data})
    updated = await get_user_or_404(user_id)
    logger.info(f"User '{updated.username}' updated by admin '{current_admin.username}'")
    await services.activity.record(current_admin.id, f"Updated user {updated.username}", EntityType.USER,
                                   updated.id, {"fields": sorted(user_in.model_fields_set)},
                                   **client_info(request))
    return to_response(User.Response, updated)


async def _set_disabled(user_id: str, disabled: bool, admin: User, services: LendingServices, request: Request) -> dict:
    user = await get_user_or_404(user_id)
    if user.disabled != disabled:
        await user.update({"$set": {"disabled": disabled, "updated_at": utc_now()}})
        action = "Disabled" if disabled else "Enabled"
        logger.info(f"User '{user.username}' (ID: {user_id}) {action.lower()} by '{admin.username}'.")
        await services.activity.record(admin.id, f"{action} user {user.username}", EntityType.USER, user.id,
                                       **client_info(request))
    return {"message": f"User {'disabled' if disabled else 'enabled'} successfully", "user_id": user_id,
            "disabled": disabled}


# --- PATCH /{user_id}/disable ---
@router.patch("/{user_id}/disable", summary="Disable User (Admin Only)")
@limiter.limit("30/hour")
async def disable_user(
    request: Request,
    user_id: str = Path(...),
    current_admin: User = Depends(require_admin),
    services: LendingServices = Depends(get_services),
):
    return await _set_disabled(user_id, True, current_admin, services, request)


# --- PATCH /{user_id}/enable ---
@router.patch("/{user_id}/enable", summary="Enable User (Admin Only)")
@limiter.limit("30/hour")
async def enable_user(
    request: Request,
    user_id: str = Path(...),
    current_admin: User = Depends(require_admin),
    services: LendingServices = Depends(get_services),
):
    return await _set_disabled(user_id, False, current_admin, services, request)


# --- DELETE /{user_id} ---
@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete User (Admin Only)")
@limiter.limit("5/hour")
async def delete_user(
    request: Request,
    user_id: str = Path(...),
    current_admin: User = Depends(require_admin),
    services: LendingServices = Depends(get_services),
):
    """Delete a user with their borrowings and notifications; stock they still hold is released."""
    logger.warning(f"Admin '{current_admin.username}' attempting to delete user: {user_id}")
    await services.accounts.delete(parse_object_id(user_id, "user ID"), current_admin, audit=client_info(request))
    return None

# equiploan/api/v1/endpoints/auth.py
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from loguru import logger

from equiploan.api.deps import client_info, get_services, to_response
from equiploan.core.config import ACCESS_TOKEN_EXPIRE_MINUTES
from equiploan.core.errors import DuplicateError
from equiploan.core.rate_limiter import limiter
from equiploan.core.security import (
    create_access_token,
    verify_password,
    get_current_active_user,
    get_password_hash,
)
from equiploan.models.enum import EntityType, UserRole
from equiploan.models.token import Token
from equiploan.models.user import User, utc_now
from equiploan.services.container import LendingServices

router = APIRouter(tags=["Authentication"])


# --- POST /token ---
@router.post("/token", response_model=Token)
@limiter.limit("20/minute")
async def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    services: LendingServices = Depends(get_services),
):
    user = await User.find_one(User.username == form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"Failed login attempt for '{form_data.username}'")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.disabled:
        raise HTTPException(status_code=400, detail="Inactive user")

    await user.update({"$set": {"last_login": utc_now()}})
    access_token = create_access_token(
        data={"sub": user.username, "role": user.role.value},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    await services.activity.record(user.id, "Logged in", EntityType.USER, user.id, **client_info(request))
    return {"access_token": access_token, "token_type": "bearer"}


# --- POST /register ---
@router.post("/register", response_model=User.Response, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/hour")
async def register_user(
    request: Request,
    user_in: User.Create,
    services: LendingServices = Depends(get_services),
):
    if await User.find_one(User.username == user_in.username):
        raise DuplicateError("Username already registered")
    if user_in.email and await User.find_one(User.email == user_in.email):
        raise DuplicateError("Email already registered")

    user_obj = User(
        **user_in.model_dump(exclude={"password"}),
        hashed_password=get_password_hash(user_in.password),
        disabled=False,
        role=UserRole.USER,
    )
    await user_obj.insert()
    logger.info(f"User '{user_obj.username}' registered")
    await services.activity.record(user_obj.id, "Registered", EntityType.USER, user_obj.id, **client_info(request))
    return to_response(User.Response, user_obj)


# --- GET /me ---
@router.get("/me", response_model=User.Response)
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return to_response(User.Response, current_user)

# equiploan/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Optional, List
import logging

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from beanie.odm.operators.find.comparison import Eq

from equiploan.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from equiploan.models.token import TokenData
from equiploan.models.user import User
from equiploan.models.enum import UserRole

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


# --- Password Functions ---
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# --- Token Functions ---
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[TokenData]:
    """Returns None for an invalid or expired token."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    username = payload.get("sub")
    if not username:
        return None
    return TokenData(username=username)


async def get_user_from_token(token: str) -> Optional[User]:
    """Resolve a bearer token to an active user. Used where no Request is available (websockets)."""
    token_data = decode_access_token(token)
    if token_data is None:
        return None
    user = await User.find_one(Eq(User.username, token_data.username))
    if user is None or user.disabled:
        return None
    return user


# --- Current User ---
async def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme)
) -> User:
    """
    Gets the current user from the request state (set by AuthMiddleware)
    or decodes the token if state is not available.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    username: Optional[str] = getattr(request.state, "username", None)

    if not username:
        logger.warning("Username not found in request state, attempting token decode in dependency.")
        token_data = decode_access_token(token)
        if token_data is None:
            logger.warning("Token decode failed in get_current_user dependency.")
            raise credentials_exception
        username = token_data.username

    user = await User.find_one(Eq(User.username, username))
    if user is None:
        logger.warning(f"User '{username}' not found in database.")
        raise credentials_exception
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user)
) -> User:
    if current_user.disabled:
        logger.warning(f"Access denied for disabled user '{current_user.username}'.")
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


# --- Role Checking Dependencies ---
def require_role(required_role: UserRole):
    """Factory for a dependency that checks the current user has exactly ``required_role``."""
    async def role_checker(current_user: User = Depends(get_current_active_user)):
        if current_user.role != required_role:
            logger.warning(
                f"Forbidden: User '{current_user.username}' with role '{current_user.role.value}' "
                f"attempted action requiring role '{required_role.value}'."
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Operation not permitted. Required role: {required_role.value}"
            )
        return current_user
    return role_checker


def require_roles(required_roles: List[UserRole]):
    """Factory for a dependency that checks the current user has one of ``required_roles``."""
    async def roles_checker(current_user: User = Depends(get_current_active_user)):
        if current_user.role not in required_roles:
            logger.warning(
                f"Forbidden: User '{current_user.username}' with role '{current_user.role.value}' "
                f"attempted action requiring one of roles: {[r.value for r in required_roles]}."
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Operation not permitted. Required roles: {[r.value for r in required_roles]}"
            )
        return current_user
    return roles_checker


require_admin = require_role(UserRole.ADMIN)
require_officer = require_role(UserRole.OFFICER)
require_admin_or_officer = require_roles([UserRole.ADMIN, UserRole.OFFICER])

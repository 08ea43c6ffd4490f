# equiploan/middleware/authentication.py
from typing import Optional, Callable, Awaitable, FrozenSet, Tuple

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.security.utils import get_authorization_scheme_param
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from loguru import logger

from equiploan.core.security import decode_access_token

PUBLIC_PATHS: FrozenSet[str] = frozenset({
    "/",
    "/openapi.json",
    "/api/v1/auth/token",
    "/api/v1/auth/register",
})

# /ws/ sockets authenticate with ?token= inside the endpoint
PUBLIC_PREFIXES: Tuple[str, ...] = ("/docs", "/redoc", "/health", "/ws/")


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def bearer_token(request: Request) -> Optional[str]:
    scheme, token = get_authorization_scheme_param(request.headers.get("Authorization") or "")
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def unauthorized(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )


class AuthMiddleware(BaseHTTPMiddleware):
    """Rejects protected requests without a valid JWT and stores the username on ``request.state``."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        path = request.url.path
        request_id = getattr(request.state, "request_id", "N/A")

        if request.method == "OPTIONS" or is_public_path(path):
            return await call_next(request)

        token = bearer_token(request)
        if token is None:
            logger.warning(f"RID:{request_id} No bearer token for protected path {request.method} {path}")
            return unauthorized("Not authenticated")

        token_data = decode_access_token(token)
        if token_data is None:
            logger.warning(f"RID:{request_id} Invalid or expired token for {request.method} {path}")
            return unauthorized("Invalid or expired token")

        request.state.username = token_data.username
        logger.debug(f"RID:{request_id} '{token_data.username}' authenticated for {path}")
        return await call_next(request)

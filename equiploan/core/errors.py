# equiploan/core/errors.py
from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger


class LendingError(Exception):
    """Base class for errors that map to a 4xx response."""
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(LendingError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidStateError(LendingError):
    status_code = status.HTTP_400_BAD_REQUEST


class InsufficientStockError(LendingError):
    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedRoleError(LendingError):
    status_code = status.HTTP_403_FORBIDDEN


class AlreadyApprovedError(LendingError):
    status_code = status.HTTP_409_CONFLICT


class DuplicateError(LendingError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidRequestError(LendingError):
    """Malformed ids or values the schemas cannot catch."""
    status_code = status.HTTP_400_BAD_REQUEST


class TransactionConflictError(LendingError):
    """Raised when a concurrent transaction touched the same documents."""
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str = "The record was modified by another request. Please try again."):
        super().__init__(message)


async def lending_error_handler(request: Request, exc: LendingError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "N/A")
    logger.warning(
        f"RID:{request_id} {type(exc).__name__} on {request.method} {request.url.path}: {exc.message}"
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

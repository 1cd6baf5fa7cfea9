"""
Shared router helpers: caller identity and error translation.

Authentication happens upstream of this service; the gateway forwards the
authenticated user's id in the X-User-Id header.
"""

from typing import Optional

from fastapi import Header, HTTPException
from sqlalchemy.exc import IntegrityError

from ..errors import (
    AppError, BatchError, NotFound, PreconditionFailed, StoreError, ValidationError,
)


def get_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """FastAPI dependency: the calling user's id, required for writes."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id


def to_http(exc: AppError) -> HTTPException:
    """
    Map a domain error to an HTTPException.

    ValidationError → 400, NotFound → 404, PreconditionFailed → 409,
    StoreError → 409 for constraint violations, else 500.
    """
    detail: dict = {"detail": exc.message}

    if isinstance(exc, ValidationError):
        status_code, detail["error_code"] = 400, "VALIDATION_ERROR"
        detail["errors"] = exc.errors
    elif isinstance(exc, NotFound):
        status_code, detail["error_code"] = 404, "NOT_FOUND"
    elif isinstance(exc, PreconditionFailed):
        status_code, detail["error_code"] = 409, "PRECONDITION_FAILED"
    elif isinstance(exc, StoreError) and isinstance(exc.__cause__, IntegrityError):
        status_code, detail["error_code"] = 409, "CONSTRAINT_VIOLATION"
    else:
        status_code, detail["error_code"] = 500, "STORE_ERROR"

    if isinstance(exc, BatchError):
        detail["context"] = {
            "completedIds": [row.id for row in exc.completed],
            "failedIndex": exc.failed_index,
        }

    return HTTPException(status_code=status_code, detail=detail)

"""
Maps application exceptions onto the JSON error envelope:

    {"error": {"message": "...", "code": "..."}}
"""

import logging
from typing import Any, Optional

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import ConcurrentRunRejected, DatabaseError, ExternalServiceError, FetchError

logger = logging.getLogger(__name__)


def error_response(
    status_code: int, message: str, code: Optional[str] = None, **extra: Any
) -> JSONResponse:
    error: dict = {"message": message}
    if code:
        error["code"] = code
    error.update(extra)
    return JSONResponse(status_code=status_code, content={"error": jsonable_encoder(error)})


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render any exception raised by a route as an error envelope."""
    path = request.url.path

    if isinstance(exc, ConcurrentRunRejected):
        # Expected while a sync is running, not a system error
        logger.info(f"{path}: sync for owner {exc.owner_id} already running")
        return error_response(exc.status_code, exc.detail)

    if isinstance(exc, FetchError):
        logger.error(f"{path}: Gmail fetch failed ({exc.code}): {exc.message}")
        return error_response(exc.status_code, exc.detail, code=exc.code)

    if isinstance(exc, (DatabaseError, ExternalServiceError)):
        logger.error(f"{path}: {exc.detail}")
        return error_response(exc.status_code, exc.detail)

    if isinstance(exc, HTTPException):
        # 4xx: validation, not found, conflicts and disabled sync
        logger.warning(f"{path}: {exc.status_code} {exc.detail}")
        return error_response(exc.status_code, str(exc.detail))

    if isinstance(exc, RequestValidationError):
        logger.warning(f"{path}: validation error {exc.errors()}")
        return error_response(422, "Validation failed", details=exc.errors())

    if isinstance(exc, SQLAlchemyError):
        logger.error(f"{path}: database error {exc}")
        return error_response(500, "Database operation failed")

    logger.error(f"{path}: unexpected error {exc}", exc_info=True)
    return error_response(500, "An unexpected error occurred")

"""
FastAPI exception handlers.

Converts the domain error taxonomy into JSON responses:
``{"detail": ..., "code": ..., "errors": [...]}``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .exceptions import AppError, ErrorCode

logger = logging.getLogger(__name__)


def error_response(status_code: int, code: ErrorCode, detail: str, errors=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "code": code.value, "errors": errors or []},
    )


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle categorized domain errors."""
    logger.warning(
        "%s %s rejected: %s (%s)",
        request.method,
        request.url.path,
        exc.message,
        exc.code.value,
    )
    return error_response(exc.status_code, exc.code, exc.message, exc.errors)


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Unexpected storage failures surface as a generic internal error."""
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return error_response(500, ErrorCode.INTERNAL_ERROR, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers on the FastAPI app.

    Usage:
        from projecthub.core.exception_handlers import register_exception_handlers
        register_exception_handlers(app)
    """
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

"""
Exception handlers for mongosession.

This module provides FastAPI exception handlers that convert session
errors and MongoDB failures to structured JSON error responses with a
consistent format: error_code, message, details and request_id.
"""

import logging
import traceback
import uuid
from typing import Any, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pymongo.errors import ConnectionFailure, PyMongoError

from mongosession.errors.codes import ErrorCode
from mongosession.errors.exceptions import (
    AppException,
    session_store_unavailable,
    validation_error,
)

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """
    Structured error response model.

    All error responses from the API follow this format for consistency
    and to enable programmatic error handling by clients.
    """
    error_code: str
    message: str
    details: Optional[dict[str, Any]] = None
    request_id: str


def get_request_id(request: Request) -> str:
    """
    Get the request ID from the request state or generate a new one.

    Args:
        request: The FastAPI request object

    Returns:
        The request ID string
    """
    if hasattr(request.state, "request_id"):
        return request.state.request_id

    # Middleware not installed
    return str(uuid.uuid4())


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle known application exceptions and convert to structured response.

    This handler processes AppException instances, which represent expected
    error conditions such as a malformed session identity.

    Args:
        request: The FastAPI request object
        exc: The AppException that was raised

    Returns:
        JSONResponse with structured error format
    """
    request_id = get_request_id(request)

    logger.warning(
        "Application error occurred",
        extra={
            "extra_data": {
                "error_code": exc.error_code.value,
                "error_message": exc.message,
                "status_code": exc.status_code,
                "details": exc.details,
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
            }
        }
    )

    error_response = ErrorResponse(
        error_code=exc.error_code.value,
        message=exc.message,
        details=exc.details,
        request_id=request_id,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(exclude_none=True),
    )


async def handle_validation_exception(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Convert FastAPI request validation failures to a VALIDATION_ERROR response.

    Only the location and message of each failure are returned.
    """
    errors = [
        {"loc": [str(part) for part in error.get("loc", [])], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    return await handle_app_exception(
        request,
        validation_error("Invalid request payload", details={"errors": errors}),
    )


async def handle_database_exception(request: Request, exc: PyMongoError) -> JSONResponse:
    """
    Handle MongoDB errors that escaped the session store.

    Connection failures (including server selection timeouts) become a 503
    SESSION_STORE_UNAVAILABLE response; every other driver error is treated
    as unexpected.

    Args:
        request: The FastAPI request object
        exc: The pymongo error that was raised

    Returns:
        JSONResponse with structured error format
    """
    if not isinstance(exc, ConnectionFailure):
        return await handle_unexpected_exception(request, exc)

    logger.error(
        "Session store unreachable",
        extra={
            "extra_data": {
                "error_code": ErrorCode.SESSION_STORE_UNAVAILABLE.value,
                "exception_type": type(exc).__name__,
                "path": request.url.path,
                "method": request.method,
            }
        }
    )
    return await handle_app_exception(request, session_store_unavailable())


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions safely without exposing internal details.

    This handler catches all unhandled exceptions, logs the full stack trace
    for debugging, and returns a generic error response to the client.

    Args:
        request: The FastAPI request object
        exc: The unexpected exception that was raised

    Returns:
        JSONResponse with generic error message (no internal details exposed)
    """
    request_id = get_request_id(request)

    logger.error(
        "Unexpected error occurred",
        extra={
            "extra_data": {
                "error_code": ErrorCode.INTERNAL_ERROR.value,
                "request_id": request_id,
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
                "stack_trace": traceback.format_exc(),
            }
        },
        exc_info=True,
    )

    error_response = ErrorResponse(
        error_code=ErrorCode.INTERNAL_ERROR.value,
        message="An unexpected error occurred. Please try again later.",
        details=None,  # Never expose internal details
        request_id=request_id,
    )

    return JSONResponse(
        status_code=500,
        content=error_response.model_dump(exclude_none=True),
    )


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_exception)
    app.add_exception_handler(PyMongoError, handle_database_exception)
    app.add_exception_handler(Exception, handle_unexpected_exception)

    logger.info("Exception handlers registered successfully")

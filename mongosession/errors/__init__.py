"""
Error handling module for mongosession.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- AppException and the session error classes
- Error response models for consistent API responses
- Exception handlers for FastAPI integration
"""

from mongosession.errors.codes import ErrorCode
from mongosession.errors.exceptions import (
    AppException,
    CodecError,
    InvalidSessionIDError,
    InvalidTimestampError,
    SessionNotFoundError,
)
from mongosession.errors.handlers import (
    ErrorResponse,
    handle_app_exception,
    handle_database_exception,
    handle_unexpected_exception,
    handle_validation_exception,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "AppException",
    "CodecError",
    "InvalidSessionIDError",
    "InvalidTimestampError",
    "SessionNotFoundError",
    "ErrorResponse",
    "handle_app_exception",
    "handle_database_exception",
    "handle_unexpected_exception",
    "handle_validation_exception",
    "register_exception_handlers",
]

"""
Exception classes for mongosession.

This module provides the AppException base class and the distinguishable
session errors raised by the codec chain, the record store and the
lifecycle orchestrator. Database errors from pymongo are never wrapped;
they propagate to the caller unmodified.
"""

from typing import Any, Optional

from mongosession.errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Base exception class for all application-specific errors.

    This exception provides structured error information including:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message
    - status_code: The HTTP status code to return
    - details: Optional additional context

    Example:
        raise AppException(
            error_code=ErrorCode.VALIDATION_ERROR,
            message="Invalid cookie name",
            details={"field": "name"}
        )
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize an AppException.

        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            status_code: The HTTP status code (defaults to the error code's default)
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for JSON serialization.

        Returns:
            Dictionary containing error_code, message, and details
        """
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"details={self.details!r})"
        )


class InvalidSessionIDError(AppException):
    """Raised when a session identity is not a valid ObjectId hex string."""

    def __init__(self, message: str = "Invalid session ID", details: Optional[dict[str, Any]] = None):
        super().__init__(ErrorCode.INVALID_SESSION_ID, message, details=details)


class InvalidTimestampError(AppException):
    """Raised when a session timestamp override is not a datetime."""

    def __init__(self, message: str = "Invalid session timestamp", details: Optional[dict[str, Any]] = None):
        super().__init__(ErrorCode.INVALID_TIMESTAMP, message, details=details)


class SessionNotFoundError(AppException):
    """Raised when no record exists (or it has expired) for an identity."""

    def __init__(self, message: str = "Session not found", details: Optional[dict[str, Any]] = None):
        super().__init__(ErrorCode.SESSION_NOT_FOUND, message, details=details)


class CodecError(AppException):
    """
    Raised when a value cannot be encoded or a token cannot be decoded.

    When raised by decode_multi, ``errors`` holds the failure reported by
    every codec that was tried, in order.
    """

    def __init__(
        self,
        message: str = "Token could not be decoded",
        errors: Optional[list["CodecError"]] = None,
        details: Optional[dict[str, Any]] = None
    ):
        self.errors = errors or []
        super().__init__(ErrorCode.INVALID_TOKEN, message, details=details)


# Convenience factory functions for common error types

def validation_error(
    message: str,
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a validation error exception."""
    return AppException(
        error_code=ErrorCode.VALIDATION_ERROR,
        message=message,
        details=details
    )


def session_store_unavailable(
    message: str = "Session store unavailable",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a session store unavailable exception."""
    return AppException(
        error_code=ErrorCode.SESSION_STORE_UNAVAILABLE,
        message=message,
        details=details
    )


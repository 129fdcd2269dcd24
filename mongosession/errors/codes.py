"""
Error code catalog for mongosession.

This module defines all error codes raised by the session backend,
covering malformed input, missing sessions, token failures, store
availability, and internal errors.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used by the session backend.

    Each error code maps to a specific HTTP status code and error category:
    - Malformed input (4xx): Rejected before any database access
    - Not found / token errors (4xx): Missing or unreadable sessions
    - Infrastructure errors (5xx): MongoDB failures
    - Internal errors (5xx): Server-side issues
    """

    # Malformed input (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Request payload validation failed (HTTP 400)"""

    INVALID_SESSION_ID = "INVALID_SESSION_ID"
    """Session identity is not a valid ObjectId hex string (HTTP 400)"""

    INVALID_TIMESTAMP = "INVALID_TIMESTAMP"
    """Session timestamp override is not a datetime (HTTP 400)"""

    # Not found / token errors (4xx)
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    """No record exists for the session identity (HTTP 404)"""

    INVALID_TOKEN = "INVALID_TOKEN"
    """Token or payload failed to authenticate or decode (HTTP 401)"""

    # Infrastructure errors (5xx)
    SESSION_STORE_UNAVAILABLE = "SESSION_STORE_UNAVAILABLE"
    """MongoDB unreachable (HTTP 503)"""

    # Internal errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


# Mapping of error codes to their default HTTP status codes
ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_SESSION_ID: 400,
    ErrorCode.INVALID_TIMESTAMP: 400,
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.INVALID_TOKEN: 401,
    ErrorCode.SESSION_STORE_UNAVAILABLE: 503,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """
    Get the default HTTP status code for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        The default HTTP status code for the error code
    """
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)

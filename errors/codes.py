"""
Error code catalog for the session service.

This module defines all error codes raised by the session lifecycle engine,
covering configuration errors, codec failures, storage failures, and
internal errors.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used by the session service.

    Each error code maps to a specific HTTP status code and error category:
    - Client errors (4xx): Tampered or malformed session payloads
    - Storage errors (5xx): Session store dependency failures
    - Internal errors (5xx): Misconfiguration and server-side issues
    """

    # Client errors (4xx)
    SESSION_DECODE_ERROR = "SESSION_DECODE_ERROR"
    """Session payload is malformed, tampered, or sealed with another secret (HTTP 400)"""

    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    """No session is bound to the request (HTTP 404)"""

    # Storage errors (5xx)
    SESSION_STORE_UNAVAILABLE = "SESSION_STORE_UNAVAILABLE"
    """Memory/file/Redis session store failed (HTTP 503)"""

    # Internal errors (5xx)
    SESSION_NOT_CONFIGURED = "SESSION_NOT_CONFIGURED"
    """Session secret is not set (HTTP 500)"""

    SESSION_ENCODE_ERROR = "SESSION_ENCODE_ERROR"
    """Session data could not be serialized (HTTP 500)"""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


# Mapping of error codes to their default HTTP status codes
ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.SESSION_DECODE_ERROR: 400,
    ErrorCode.SESSION_NOT_FOUND: 404,
    ErrorCode.SESSION_STORE_UNAVAILABLE: 503,
    ErrorCode.SESSION_NOT_CONFIGURED: 500,
    ErrorCode.SESSION_ENCODE_ERROR: 500,
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

"""
Exception classes for the session service.

This module provides the AppException base class, the session-specific
subclasses raised by the codec, the stores and the manager, and
convenience factory functions for creating them.
"""

from typing import Any, Optional

from errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Base exception class for all session service errors.

    This exception provides structured error information including:
    - error_code: A standardized error code from the ErrorCode enum
    - message: A human-readable error message
    - status_code: The HTTP status code to return
    - details: Optional additional context (e.g., the failing store)

    Example:
        raise AppException(
            error_code=ErrorCode.SESSION_STORE_UNAVAILABLE,
            message="Failed to write session",
            details={"store": "file", "session_id": "..."}
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


class NotConfiguredError(AppException):
    """Raised when the session manager is used before a secret is set."""

    def __init__(
        self,
        message: str = "Session secret is not configured",
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(ErrorCode.SESSION_NOT_CONFIGURED, message, details=details)


class DecodeError(AppException):
    """
    Raised when a session payload cannot be decoded.

    Covers malformed ciphertext, failed integrity checks (tampering or a
    different secret) and plaintext that is not a JSON object. The manager
    recovers from this locally by treating the session as empty.
    """

    def __init__(
        self,
        message: str = "Session payload could not be decoded",
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(ErrorCode.SESSION_DECODE_ERROR, message, details=details)


class EncodeError(AppException):
    """Raised when session data contains values that cannot be serialized."""

    def __init__(
        self,
        message: str = "Session data could not be encoded",
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(ErrorCode.SESSION_ENCODE_ERROR, message, details=details)


class StorageError(AppException):
    """
    Raised when a session store write or destroy fails.

    Reads never raise this; they degrade to "no session" instead.
    """

    def __init__(
        self,
        message: str = "Session store unavailable",
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(ErrorCode.SESSION_STORE_UNAVAILABLE, message, details=details)


# Convenience factory functions for common error types

def session_not_configured(
    message: str = "Session secret is not configured",
    details: Optional[dict[str, Any]] = None
) -> NotConfiguredError:
    """Create a not-configured exception."""
    return NotConfiguredError(message=message, details=details)


def session_decode_failed(
    message: str = "Session payload could not be decoded",
    details: Optional[dict[str, Any]] = None
) -> DecodeError:
    """Create a decode error exception."""
    return DecodeError(message=message, details=details)


def session_store_unavailable(
    message: str = "Session store unavailable",
    details: Optional[dict[str, Any]] = None
) -> StorageError:
    """Create a session store unavailable exception."""
    return StorageError(message=message, details=details)


def session_not_found(
    message: str = "No session is bound to this request",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a session not found exception."""
    return AppException(
        error_code=ErrorCode.SESSION_NOT_FOUND,
        message=message,
        details=details
    )


def internal_error(
    message: str = "An unexpected error occurred",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an internal error exception."""
    return AppException(
        error_code=ErrorCode.INTERNAL_ERROR,
        message=message,
        details=details
    )

"""
Error handling module for the session service.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- AppException and its session-specific subclasses
- Error response models for consistent API responses
- Exception handlers for FastAPI integration
"""

from errors.codes import ErrorCode
from errors.exceptions import (
    AppException,
    DecodeError,
    EncodeError,
    NotConfiguredError,
    StorageError,
)
from errors.handlers import (
    ErrorResponse,
    handle_app_exception,
    handle_unexpected_exception,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "AppException",
    "DecodeError",
    "EncodeError",
    "NotConfiguredError",
    "StorageError",
    "ErrorResponse",
    "handle_app_exception",
    "handle_unexpected_exception",
    "register_exception_handlers",
]

"""
Exception handlers for applications mounting the session middleware.

Route handlers that call the session manager directly (for example
``destroy`` on logout) may see a StorageError or NotConfiguredError. These
FastAPI handlers convert such exceptions to structured JSON error responses
without leaking storage internals.
"""

import logging
import traceback
from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from errors.codes import ErrorCode
from errors.exceptions import AppException, internal_error
from telemetry.service import session_ref

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """
    Structured error response model.

    ``session_ref`` is the short session reference written to the JSON logs,
    so a reported error can be matched with its log entries. The full
    identifier never appears in a response body.
    """
    error_code: str
    message: str
    details: Optional[dict[str, Any]] = None
    session_ref: Optional[str] = None


def get_session_ref(request: Request) -> Optional[str]:
    """
    Get the log reference of the session bound to the request, if any.

    Args:
        request: The FastAPI request object

    Returns:
        The short session reference, or None when no session middleware ran
        or the session has been destroyed
    """
    boundary = getattr(request.state, "session_boundary", None)
    if boundary is None or boundary.session is None:
        return None
    return session_ref(boundary.session.id) or None


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle known session exceptions and convert to structured response.

    Args:
        request: The FastAPI request object
        exc: The AppException that was raised

    Returns:
        JSONResponse with structured error format
    """
    logger.warning(
        "Session error occurred",
        extra={"extra_data": {
            "error_code": exc.error_code.value,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "details": exc.details,
            "path": request.url.path,
            "method": request.method,
        }}
    )

    # Storage details stay in the logs
    details = exc.details if exc.status_code < 500 else None
    error_response = ErrorResponse(
        error_code=exc.error_code.value,
        message=exc.message,
        details=details,
        session_ref=get_session_ref(request),
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(exclude_none=True),
    )


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions safely without exposing internal details.

    Args:
        request: The FastAPI request object
        exc: The unexpected exception that was raised

    Returns:
        JSONResponse with generic error message
    """
    logger.error(
        "Unexpected error occurred",
        extra={"extra_data": {
            "error_code": ErrorCode.INTERNAL_ERROR.value,
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "stack_trace": traceback.format_exc(),
        }},
        exc_info=True,
    )

    generic = internal_error("An unexpected error occurred. Please try again later.")
    error_response = ErrorResponse(
        error_code=generic.error_code.value,
        message=generic.message,
        session_ref=get_session_ref(request),
    )

    return JSONResponse(
        status_code=generic.status_code,
        content=error_response.model_dump(exclude_none=True),
    )


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(Exception, handle_unexpected_exception)

    logger.info("Exception handlers registered successfully")

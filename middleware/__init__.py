"""
Middleware components for the session service.

This module contains the Starlette/FastAPI middleware that binds sessions
to requests, and the helpers route handlers use to reach them.
"""

from middleware.session import (
    SessionMiddleware,
    StarletteSessionBoundary,
    get_session,
    get_session_boundary,
)

__all__ = [
    "SessionMiddleware",
    "StarletteSessionBoundary",
    "get_session",
    "get_session_boundary",
]

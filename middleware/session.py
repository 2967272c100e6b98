"""
Session middleware for Starlette and FastAPI applications.

This middleware starts a session for every request, exposes it to route
handlers, commits it once the handler has produced a response, and writes
the resulting cookie operations onto that response.

Route handlers reach the session through ``get_session(request)`` (usable
as a FastAPI dependency) and the manager through the boundary returned by
``get_session_boundary(request)``:

    @app.post("/logout")
    async def logout(request: Request):
        await manager.destroy(get_session_boundary(request))
        return RedirectResponse("/", status_code=303)
"""

import logging
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from errors.exceptions import AppException, session_not_found
from session.boundary import CookieAttributes
from session.manager import SessionManager
from session.record import Session
from telemetry.service import session_ref, session_ref_var

logger = logging.getLogger(__name__)


class StarletteSessionBoundary:
    """
    Session boundary over a Starlette request.

    Cookie operations are queued and overlaid on the request cookies, so a
    cookie set during the request is visible to later reads. ``apply``
    turns the queued operations into Set-Cookie headers.
    """

    def __init__(self, request: Request):
        self.request = request
        self.session: Optional[Session] = None
        self._pending: dict[str, tuple[Optional[str], CookieAttributes]] = {}

    def get_cookie(self, name: str) -> Optional[str]:
        if name in self._pending:
            return self._pending[name][0]
        return self.request.cookies.get(name)

    def set_cookie(self, name: str, value: str, attributes: CookieAttributes) -> None:
        self._pending[name] = (value, attributes)

    def delete_cookie(self, name: str, attributes: CookieAttributes) -> None:
        self._pending[name] = (None, attributes)

    def apply(self, response: Response) -> None:
        """Write the queued cookie operations onto the response."""
        for name, (value, attributes) in self._pending.items():
            if value is None:
                response.delete_cookie(
                    name,
                    path=attributes.path,
                    domain=attributes.domain,
                    secure=attributes.secure,
                    httponly=attributes.http_only,
                    samesite=attributes.same_site,
                )
            else:
                response.set_cookie(
                    name,
                    value,
                    max_age=attributes.max_age,
                    path=attributes.path,
                    domain=attributes.domain,
                    secure=attributes.secure,
                    httponly=attributes.http_only,
                    samesite=attributes.same_site,
                )


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Middleware that binds a session to each request.

    For every request:
    1. Start (or resume) the session through the manager
    2. Store the boundary in request.state for route handlers
    3. Bind the session reference to the logging context
    4. Commit the session after the handler returns
    5. Write cookie changes to the response
    6. Give the manager a chance to run its rate-limited GC sweep

    A failed commit is logged and the response is still returned; session
    persistence failing should not fail the whole response.
    """

    def __init__(self, app: ASGIApp, manager: SessionManager, run_gc: bool = True):
        """
        Initialize the middleware.

        Args:
            app: The ASGI application to wrap
            manager: The session manager shared by all requests
            run_gc: Whether to trigger the manager's GC after each request
        """
        super().__init__(app)
        self.manager = manager
        self.run_gc = run_gc

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        boundary = StarletteSessionBoundary(request)
        session = await self.manager.start(boundary)
        request.state.session_boundary = boundary

        token = session_ref_var.set(session_ref(session.id))
        try:
            response = await call_next(request)

            try:
                await self.manager.commit(boundary)
            except AppException as e:
                logger.error(
                    "Failed to persist session",
                    extra={"extra_data": {
                        "error_code": e.error_code.value,
                        "reason": e.message,
                        "path": request.url.path,
                    }}
                )

            boundary.apply(response)

            if self.run_gc:
                await self.manager.gc()

            return response
        finally:
            session_ref_var.reset(token)


def get_session_boundary(request: Request) -> StarletteSessionBoundary:
    """
    Return the session boundary bound to the request.

    Raises:
        AppException: SESSION_NOT_FOUND if SessionMiddleware is not installed.
    """
    boundary = getattr(request.state, "session_boundary", None)
    if boundary is None:
        raise session_not_found("SessionMiddleware is not installed")
    return boundary


def get_session(request: Request) -> Session:
    """
    Return the session bound to the request.

    Usable as a FastAPI dependency: ``session: Session = Depends(get_session)``.

    Raises:
        AppException: SESSION_NOT_FOUND if no session is bound (for
            example after ``manager.abort``).
    """
    session = get_session_boundary(request).session
    if session is None:
        raise session_not_found()
    return session

"""
Contract between the session manager and the web framework.

The manager never touches framework request or response objects directly.
Instead it talks to a boundary: something that can read, set and delete
cookies for the current request and that holds the active session for
route handlers. ``middleware.session.StarletteSessionBoundary`` is the
Starlette implementation.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol

if TYPE_CHECKING:
    from session.record import Session


@dataclass(frozen=True)
class CookieAttributes:
    """
    Cookie attributes passed through verbatim to the boundary.

    ``max_age`` is left unset here; the manager fills it with the
    configured session duration when it issues a cookie.
    """
    path: str = "/"
    domain: Optional[str] = None
    secure: bool = False
    http_only: bool = True
    same_site: Optional[str] = "lax"
    max_age: Optional[int] = None


class SessionBoundary(Protocol):
    """
    Per-request cookie access plus a slot for the active session.

    A cookie set during the request must be returned by later
    ``get_cookie`` calls for the same request, and a deleted cookie must
    read as absent.
    """

    session: Optional["Session"]

    def get_cookie(self, name: str) -> Optional[str]:
        ...

    def set_cookie(self, name: str, value: str, attributes: CookieAttributes) -> None:
        ...

    def delete_cookie(self, name: str, attributes: CookieAttributes) -> None:
        ...

"""
The in-request session record.

A Session is the mutable key/value bag route handlers read and write. It
belongs to exactly one request; nothing is persisted until the manager
commits it.
"""

from typing import TYPE_CHECKING, Any, Iterator, Optional

if TYPE_CHECKING:
    from session.boundary import SessionBoundary
    from session.manager import SessionManager


class Session:
    """
    Mutable session data bound to one request.

    Supports both an explicit API (``get``/``set``/``delete``) and the
    mapping protocol:

        session.set("logged_in", True)
        session["flash"] = {"type": "info", "message": "Saved"}
        flash = session.pop("flash", None)
    """

    def __init__(
        self,
        manager: "SessionManager",
        boundary: "SessionBoundary",
        data: Optional[dict[str, Any]] = None,
        expires: int = 0,
    ):
        self._manager = manager
        self._boundary = boundary
        self._data: dict[str, Any] = dict(data or {})
        self._expires = expires

    @property
    def id(self) -> Optional[str]:
        """Identifier currently bound to the request (follows rotation)."""
        return self._manager.id(self._boundary)

    @property
    def expires(self) -> int:
        """Epoch-millisecond expiry of the persisted record, 0 if never persisted."""
        return self._expires

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def pop(self, key: str, default: Any = None) -> Any:
        return self._data.pop(key, default)

    def clear(self) -> None:
        self._data.clear()

    def items(self):
        return self._data.items()

    def to_dict(self) -> dict[str, Any]:
        """Return a shallow copy of the session data."""
        return dict(self._data)

    def _mark_persisted(self, expires: int) -> None:
        self._expires = expires

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Session(id={self.id!r}, keys={sorted(self._data)!r})"

"""
Session store abstraction for durable session storage.

This module defines the abstract interface every storage backend
implements. A backend stores opaque ciphertext together with an expiry
timestamp; it never sees decoded session data.

Expiry policy: stores treat a record whose expiry is at or before "now" as
absent on read. The store's clock is the single clock of the system; the
session manager asks the store for the time when computing expiries and
when sweeping, so the two can never disagree.
"""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass(frozen=True)
class StoredSession:
    """
    Persisted form of a session.

    Attributes:
        data: Codec ciphertext of the session record.
        expires: Expiry as epoch milliseconds. The only expiration signal.
    """
    data: str
    expires: int

    def is_expired(self, now: int) -> bool:
        return self.expires <= now

    def to_json(self) -> str:
        return json.dumps({"data": self.data, "expires": self.expires})

    @classmethod
    def from_json(cls, raw: str) -> "StoredSession":
        """
        Parse the persisted JSON document.

        Raises:
            ValueError: If the document is not a well-formed stored session.
        """
        document = json.loads(raw)
        if not isinstance(document, dict):
            raise ValueError("Stored session is not an object")
        data = document.get("data")
        expires = document.get("expires")
        if not isinstance(data, str) or isinstance(expires, bool) or not isinstance(expires, int):
            raise ValueError("Stored session is missing data or expires")
        return cls(data=data, expires=expires)


class SessionStore(ABC):
    """
    Abstract base class for session storage implementations.

    Implementations may keep sessions in process memory, on the local
    filesystem, in Redis, or in any other key/value system. All methods
    are async to support non-blocking I/O with external storage systems.

    Attributes:
        clock: Callable returning the current time in epoch milliseconds.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self.clock = clock or now_ms

    def now(self) -> int:
        """Current time in epoch milliseconds according to this store."""
        return self.clock()

    @abstractmethod
    async def read(self, session_id: str) -> Optional[StoredSession]:
        """
        Retrieve a stored session by identifier.

        Args:
            session_id: Unique identifier for the session.

        Returns:
            The stored session, or None if it does not exist, has expired,
            is corrupt, or the store could not be reached.

        Note:
            This method must not raise. Read failures degrade to "no session".
        """
        pass

    @abstractmethod
    async def write(self, session_id: str, data: str, expires: int) -> None:
        """
        Store session ciphertext, replacing any existing record.

        Args:
            session_id: Unique identifier for the session.
            data: Codec ciphertext of the session record.
            expires: Expiry as epoch milliseconds.

        Raises:
            StorageError: If the record could not be persisted.
        """
        pass

    @abstractmethod
    async def destroy(self, session_id: str) -> None:
        """
        Delete a stored session.

        This operation is idempotent - deleting a non-existent
        session does not raise an error.

        Args:
            session_id: Unique identifier for the session to delete.

        Raises:
            StorageError: If the record exists but could not be removed.
        """
        pass

    @abstractmethod
    async def list_expired(self, now: int) -> set[str]:
        """
        List identifiers of sessions whose expiry is at or before ``now``.

        Used only by the garbage-collection sweep.

        Args:
            now: Reference time in epoch milliseconds.

        Returns:
            Set of expired session identifiers.

        Raises:
            StorageError: If the store could not be enumerated.
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check connectivity and health of the session store.

        Returns:
            True if the store is healthy and accessible, False otherwise.

        Note:
            This method should not raise exceptions.
        """
        pass

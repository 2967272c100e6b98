"""
In-memory session store.

Sessions live in a dictionary owned by the store instance and are lost on
process restart. Suitable for development and single-process deployments.
"""

import asyncio
import logging
from typing import Callable, Optional

from session.store import SessionStore, StoredSession

logger = logging.getLogger(__name__)


class InMemorySessionStore(SessionStore):
    """
    Process-local session store guarded by a single asyncio lock.

    Create one instance at startup and hand it to the session manager;
    there is no module-level session table.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        super().__init__(clock)
        self._sessions: dict[str, StoredSession] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    async def read(self, session_id: str) -> Optional[StoredSession]:
        async with self._lock:
            stored = self._sessions.get(session_id)
        if stored is None or stored.is_expired(self.now()):
            return None
        return stored

    async def write(self, session_id: str, data: str, expires: int) -> None:
        async with self._lock:
            self._sessions[session_id] = StoredSession(data=data, expires=expires)

    async def destroy(self, session_id: str) -> None:
        async with self._lock:
            self._sessions.pop(session_id, None)

    async def list_expired(self, now: int) -> set[str]:
        # Snapshot under the lock, filter outside it
        async with self._lock:
            snapshot = list(self._sessions.items())
        return {session_id for session_id, stored in snapshot if stored.is_expired(now)}

    async def health_check(self) -> bool:
        return True

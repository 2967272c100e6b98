"""
File-backed session store.

Each session is one JSON document ``{"data": <ciphertext>, "expires": <ms>}``
stored as ``<session_id>.json`` under the configured directory. Writes go
through a temporary file and ``os.replace`` so a reader never observes a
half-written record. Temp files orphaned by an interrupted write are
removed by the GC scan once they are an hour old. Blocking filesystem
calls run in a worker thread.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Optional, Union

from errors.exceptions import session_store_unavailable
from session.ids import is_safe_session_key
from session.store import SessionStore, StoredSession
from telemetry.service import session_ref

logger = logging.getLogger(__name__)

SESSION_FILE_SUFFIX = ".json"
TEMP_FILE_PREFIX = ".tmp-"
# Temp files older than this are left over from an interrupted write.
STALE_TEMP_FILE_SECONDS = 60 * 60


class FileSessionStore(SessionStore):
    """
    Session store keeping one file per session.

    Attributes:
        directory: Directory holding the session files. Created on
            construction if it does not exist.
    """

    def __init__(self, directory: Union[str, os.PathLike], clock: Optional[Callable[[], int]] = None):
        super().__init__(clock)
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _session_path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}{SESSION_FILE_SUFFIX}"

    def _load(self, session_id: str) -> Optional[StoredSession]:
        try:
            raw = self._session_path(session_id).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return StoredSession.from_json(raw)

    def _store(self, session_id: str, stored: StoredSession) -> None:
        # mkdir again in case the directory was removed underneath us
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=TEMP_FILE_PREFIX, suffix=SESSION_FILE_SUFFIX)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(stored.to_json())
            os.replace(tmp_path, self._session_path(session_id))
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def _remove(self, session_id: str) -> None:
        self._session_path(session_id).unlink(missing_ok=True)

    def _sweep_stale_temp_files(self, now: int) -> None:
        cutoff = now - STALE_TEMP_FILE_SECONDS * 1000
        for path in list(self.directory.glob(f"{TEMP_FILE_PREFIX}*{SESSION_FILE_SUFFIX}")):
            try:
                if path.stat().st_mtime * 1000 <= cutoff:
                    path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(
                    "Failed to remove stale session temp file",
                    extra={"extra_data": {"path": str(path), "error": str(e)}}
                )

    def _scan_expired(self, now: int) -> set[str]:
        self._sweep_stale_temp_files(now)
        expired = set()
        for path in list(self.directory.glob(f"*{SESSION_FILE_SUFFIX}")):
            session_id = path.name[: -len(SESSION_FILE_SUFFIX)]
            if not is_safe_session_key(session_id):
                continue
            try:
                stored = self._load(session_id)
            except (OSError, ValueError):
                # Unreadable records can never be served again; reclaim them
                logger.warning(
                    "Corrupt session file scheduled for reclamation",
                    extra={"extra_data": {"path": str(path)}}
                )
                expired.add(session_id)
                continue
            if stored is not None and stored.is_expired(now):
                expired.add(session_id)
        return expired

    async def read(self, session_id: str) -> Optional[StoredSession]:
        if not is_safe_session_key(session_id):
            return None
        try:
            stored = await asyncio.to_thread(self._load, session_id)
        except (OSError, ValueError) as e:
            logger.warning(
                "Failed to read session file",
                extra={"extra_data": {"session_ref": session_ref(session_id), "error": str(e)}}
            )
            return None
        if stored is None or stored.is_expired(self.now()):
            return None
        return stored

    async def write(self, session_id: str, data: str, expires: int) -> None:
        if not is_safe_session_key(session_id):
            raise session_store_unavailable(
                "Refusing to write a session with a malformed identifier",
                details={"store": "file"}
            )
        try:
            await asyncio.to_thread(self._store, session_id, StoredSession(data=data, expires=expires))
        except OSError as e:
            raise session_store_unavailable(
                "Failed to write session file",
                details={"store": "file", "session_ref": session_ref(session_id), "error": str(e)}
            ) from e

    async def destroy(self, session_id: str) -> None:
        if not is_safe_session_key(session_id):
            return
        try:
            await asyncio.to_thread(self._remove, session_id)
        except OSError as e:
            raise session_store_unavailable(
                "Failed to delete session file",
                details={"store": "file", "session_ref": session_ref(session_id), "error": str(e)}
            ) from e

    async def list_expired(self, now: int) -> set[str]:
        try:
            return await asyncio.to_thread(self._scan_expired, now)
        except OSError as e:
            raise session_store_unavailable(
                "Failed to scan session directory",
                details={"store": "file", "directory": str(self.directory), "error": str(e)}
            ) from e

    async def health_check(self) -> bool:
        return self.directory.is_dir() and os.access(self.directory, os.W_OK)

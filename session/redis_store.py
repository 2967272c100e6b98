"""
Redis-based session store implementation.

This module provides a Redis-backed implementation of the SessionStore
interface. Each session is stored under ``session:<id>`` as the same JSON
document the file store writes, and the key is given an absolute Redis
expiry equal to the session expiry, so Redis evicts it on its own while
reads still check the embedded timestamp against the store clock.
"""

import logging
from typing import Callable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from errors.exceptions import session_store_unavailable
from session.store import SessionStore, StoredSession
from telemetry.service import session_ref

logger = logging.getLogger(__name__)

KEY_PREFIX = "session:"


class RedisSessionStore(SessionStore):
    """
    Redis-backed session store implementation.

    Attributes:
        redis_url: Redis connection URL (e.g., "redis://localhost:6379")
        client: Redis async client instance (initialized via connect())
    """

    def __init__(
        self,
        redis_url: str,
        clock: Optional[Callable[[], int]] = None
    ):
        """
        Initialize the Redis session store.

        Args:
            redis_url: Redis connection URL (e.g., "redis://localhost:6379/0")
            clock: Optional epoch-millisecond clock, mainly for tests.
        """
        super().__init__(clock)
        self.redis_url = redis_url
        self.client = None

    async def connect(self) -> None:
        """
        Create the async Redis client from the configured URL.

        This method must be called before using any other methods.
        """
        self.client = redis.from_url(self.redis_url, decode_responses=True)

    async def disconnect(self) -> None:
        """
        Close the Redis connection.

        Should be called during application shutdown to cleanly
        release resources.
        """
        if self.client:
            await self.client.aclose()
            self.client = None

    def _get_key(self, session_id: str) -> str:
        return f"{KEY_PREFIX}{session_id}"

    def _require_client(self):
        if not self.client:
            raise session_store_unavailable(
                "Redis client not connected. Call connect() first.",
                details={"store": "redis"}
            )
        return self.client

    async def read(self, session_id: str) -> Optional[StoredSession]:
        if not self.client:
            logger.warning("Session read attempted before Redis connect()")
            return None

        try:
            raw = await self.client.get(self._get_key(session_id))
            if raw is None:
                return None
            stored = StoredSession.from_json(raw)
        except (RedisError, ValueError) as e:
            logger.warning(
                "Failed to read session from Redis",
                extra={"extra_data": {"session_ref": session_ref(session_id), "error": str(e)}}
            )
            return None

        if stored.is_expired(self.now()):
            return None
        return stored

    async def write(self, session_id: str, data: str, expires: int) -> None:
        client = self._require_client()
        key = self._get_key(session_id)
        stored = StoredSession(data=data, expires=expires)

        try:
            if stored.is_expired(self.now()):
                # Redis rejects expiries in the past; an expired record is absent anyway
                await client.delete(key)
            else:
                await client.set(key, stored.to_json(), pxat=expires)
        except RedisError as e:
            raise session_store_unavailable(
                "Failed to write session to Redis",
                details={"store": "redis", "session_ref": session_ref(session_id), "error": str(e)}
            ) from e

    async def destroy(self, session_id: str) -> None:
        client = self._require_client()
        try:
            await client.delete(self._get_key(session_id))
        except RedisError as e:
            raise session_store_unavailable(
                "Failed to delete session from Redis",
                details={"store": "redis", "session_ref": session_ref(session_id), "error": str(e)}
            ) from e

    async def list_expired(self, now: int) -> set[str]:
        client = self._require_client()
        expired = set()
        try:
            keys = [key async for key in client.scan_iter(match=f"{KEY_PREFIX}*")]
            if not keys:
                return expired
            values = await client.mget(keys)
        except RedisError as e:
            raise session_store_unavailable(
                "Failed to scan sessions in Redis",
                details={"store": "redis", "error": str(e)}
            ) from e

        for key, raw in zip(keys, values):
            if raw is None:
                continue
            try:
                stored = StoredSession.from_json(raw)
            except ValueError:
                expired.add(key[len(KEY_PREFIX):])
                continue
            if stored.is_expired(now):
                expired.add(key[len(KEY_PREFIX):])
        return expired

    async def health_check(self) -> bool:
        """
        Check connectivity and health of the Redis store.

        Returns:
            True if Redis answers PING, False otherwise.
        """
        if not self.client:
            return False

        try:
            result = await self.client.ping()
            return result is True
        except (RedisError, OSError):
            return False

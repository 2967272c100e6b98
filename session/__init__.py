"""
Session management module.

This module provides cookie-keyed server-side sessions: identifier
issuance, encrypted serialization, pluggable stores with expiry, identifier
rotation and garbage collection of expired records.
"""

from session.boundary import CookieAttributes, SessionBoundary
from session.codec import SessionCodec
from session.factory import create_session_store
from session.file_store import FileSessionStore
from session.ids import generate_session_id, is_safe_session_key, is_valid_session_id
from session.manager import DEFAULT_COOKIE_NAME, SessionManager
from session.memory_store import InMemorySessionStore
from session.record import Session
from session.redis_store import RedisSessionStore
from session.store import SessionStore, StoredSession

__all__ = [
    "CookieAttributes",
    "SessionBoundary",
    "SessionCodec",
    "create_session_store",
    "FileSessionStore",
    "generate_session_id",
    "is_valid_session_id",
    "is_safe_session_key",
    "DEFAULT_COOKIE_NAME",
    "SessionManager",
    "InMemorySessionStore",
    "Session",
    "RedisSessionStore",
    "SessionStore",
    "StoredSession",
]
